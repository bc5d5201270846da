"""
Statistical primitives for anomaly detection.

Pure, stateless functions over numeric sequences: z-score, IQR fences,
moving averages and additive seasonal decomposition. Quantiles are positional
(no interpolation) so results are reproducible across implementations.
"""

from __future__ import annotations

from math import floor, sqrt
from typing import List, Sequence

from .schema import IQRBounds, SeasonalDecomposition


def z_score(value: float, mean: float, std_dev: float) -> float:
    """
    Absolute z-score of value against a baseline.

    A zero std means "no variability", which carries no anomaly signal, so
    0.0 is returned instead of dividing by zero.
    """
    if std_dev == 0:
        return 0.0
    return abs(value - mean) / std_dev


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def population_std(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    mu = mean(values)
    return sqrt(sum((v - mu) ** 2 for v in values) / len(values))


def iqr_bounds(values: Sequence[float], multiplier: float = 1.5) -> IQRBounds:
    """
    Interquartile range and Tukey fences.

    q1/q3 are the sorted values at indices floor(n*0.25) and floor(n*0.75).

    Raises:
        ValueError: if values is empty
    """
    if not values:
        raise ValueError("iqr_bounds requires at least one value")

    ordered = sorted(values)
    n = len(ordered)
    q1 = ordered[floor(n * 0.25)]
    q3 = ordered[floor(n * 0.75)]
    iqr = q3 - q1
    return IQRBounds(
        q1=q1,
        q3=q3,
        iqr=iqr,
        lower_bound=q1 - multiplier * iqr,
        upper_bound=q3 + multiplier * iqr,
    )


def moving_average(values: Sequence[float], window: int) -> List[float]:
    """
    Trailing moving average.

    Point i averages values[max(0, i-window+1) .. i]; the first points use a
    partial window and nothing looks ahead.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")

    result: List[float] = []
    for i in range(len(values)):
        start = max(0, i - window + 1)
        result.append(mean(values[start : i + 1]))
    return result


def ewma(values: Sequence[float], alpha: float = 0.3) -> List[float]:
    """
    Exponentially weighted moving average seeded with the first value.
    """
    result: List[float] = []
    if not values:
        return result

    current = values[0]
    for value in values:
        current = alpha * value + (1.0 - alpha) * current
        result.append(current)
    return result


def decompose(
    values: Sequence[float], seasonal_period: int = 7, seasonal: bool = True
) -> SeasonalDecomposition:
    """
    Additive decomposition into trend, seasonal and residual components.

    Trend is a trailing moving average over one season. The seasonal component
    for each phase is the mean detrended value sharing that phase, tiled across
    the series. With seasonal=False the seasonal component is all zeros.

    Fewer points than seasonal_period give a weak seasonal estimate; callers
    are expected to gate on sample size.
    """
    if seasonal_period < 1:
        raise ValueError(f"seasonal_period must be >= 1, got {seasonal_period}")

    data = list(values)
    trend = moving_average(data, seasonal_period)
    detrended = [v - t for v, t in zip(data, trend)]

    if seasonal:
        phase_means = []
        for phase in range(seasonal_period):
            phase_values = detrended[phase::seasonal_period]
            phase_means.append(mean(phase_values))
        seasonal_component = [phase_means[i % seasonal_period] for i in range(len(data))]
    else:
        seasonal_component = [0.0] * len(data)

    residual = [v - t - s for v, t, s in zip(data, trend, seasonal_component)]
    return SeasonalDecomposition(trend=trend, seasonal=seasonal_component, residual=residual)
