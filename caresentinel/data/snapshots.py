"""
Snapshot building from raw metric observations.

Converts raw time series into PerformanceMetric snapshots suitable for the
detection engine. Statistics are computed over the full series with pandas:

    long-format DataFrame (metric_name, timestamp, value)
        ↓
    snapshots_from_frame → one cleaned series per metric
        ↓
    build_metric_snapshot → PerformanceMetric

Design:
- Population std (ddof=0) to match the engine's statistics
- Quartiles use the "lower" interpolation, so they are always observed values
- Unparsable or non-finite rows are dropped and logged, never guessed at
"""

import logging
from typing import Iterable, List, Tuple, Union

import numpy as np
import pandas as pd
from pydantic import ValidationError

from caresentinel.anomaly.schema import (
    Percentiles,
    PerformanceMetric,
    TimeSeriesPoint,
    TrendDirection,
)
from caresentinel.anomaly.statistics import z_score
from caresentinel.core.exceptions import DataValidationError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("metric_name", "timestamp", "value")

PointInput = Union[TimeSeriesPoint, Tuple[object, float]]


def _to_series(points: Iterable[PointInput], metric_name: str) -> pd.Series:
    timestamps = []
    values = []
    for position, point in enumerate(points):
        if isinstance(point, TimeSeriesPoint):
            timestamps.append(point.timestamp)
            values.append(point.value)
        else:
            try:
                ts, value = point
            except (TypeError, ValueError) as exc:
                raise DataValidationError(
                    f"Observation {position} for {metric_name!r} is not a (timestamp, value) pair"
                ) from exc
            timestamps.append(ts)
            values.append(value)

    numeric = pd.to_numeric(pd.Series(values, dtype=object), errors="coerce")
    index = pd.DatetimeIndex(
        pd.to_datetime(
            pd.Series(timestamps, dtype=object), errors="coerce", utc=True, format="mixed"
        )
    )
    return pd.Series(numeric.to_numpy(dtype=float), index=index)


def _clean(series: pd.Series, metric_name: str) -> pd.Series:
    mask = np.isfinite(series.to_numpy()) & series.index.notna()
    valid = series[mask]
    dropped = len(series) - len(valid)
    if dropped:
        logger.warning("Dropped %d malformed observations for %s", dropped, metric_name)
    return valid.sort_index(kind="stable")


def classify_trend(
    values: pd.Series, window: int = 5, tolerance: float = 0.05
) -> TrendDirection:
    """
    Compare the latest window mean with the window before it.

    Rising values map to IMPROVING, falling values to DECLINING; shifts
    within ±tolerance (relative) count as stable.
    """
    if len(values) < 2 * window:
        return TrendDirection.STABLE

    recent = values.iloc[-window:].mean()
    older = values.iloc[-2 * window : -window].mean()
    if older == 0:
        change = recent - older
    else:
        change = (recent - older) / abs(older)

    if change > tolerance:
        return TrendDirection.IMPROVING
    if change < -tolerance:
        return TrendDirection.DECLINING
    return TrendDirection.STABLE


def build_metric_snapshot(
    metric_name: str,
    points: Iterable[PointInput],
    *,
    trend_window: int = 5,
    anomaly_z: float = 3.0,
) -> PerformanceMetric:
    """
    Build a PerformanceMetric from raw observations.

    Args:
        metric_name: Metric identifier
        points: TimeSeriesPoint objects or (timestamp, value) pairs, any order
        trend_window: Window size used to classify the trend
        anomaly_z: z-score above which the snapshot is flagged is_anomaly

    Returns:
        PerformanceMetric whose current value is the latest observation

    Raises:
        DataValidationError: if no valid observation remains
    """
    series = _clean(_to_series(points, metric_name), metric_name)
    if series.empty:
        raise DataValidationError(f"No valid observations for metric {metric_name!r}")

    current = float(series.iloc[-1])
    mean = float(series.mean())
    std = float(series.std(ddof=0))
    p25 = float(series.quantile(0.25, interpolation="lower"))
    p75 = float(series.quantile(0.75, interpolation="lower"))
    pct_change = 0.0 if mean == 0 else (current - mean) / abs(mean) * 100.0

    history = [
        TimeSeriesPoint(timestamp=ts.to_pydatetime(), value=float(v)) for ts, v in series.items()
    ]

    try:
        return PerformanceMetric(
            metric_name=metric_name,
            current_value=current,
            mean=mean,
            std_deviation=std,
            historical_values=history,
            percentage_change=pct_change,
            percentiles=Percentiles(p25=p25, p75=p75),
            trend=classify_trend(series, window=trend_window),
            is_anomaly=z_score(current, mean, std) > anomaly_z,
        )
    except ValidationError as exc:
        raise DataValidationError(f"Invalid snapshot for {metric_name!r}: {exc}") from exc


def snapshots_from_frame(
    df: pd.DataFrame, *, trend_window: int = 5, anomaly_z: float = 3.0
) -> List[PerformanceMetric]:
    """
    Build one snapshot per metric from a long-format DataFrame.

    Args:
        df: DataFrame with columns metric_name, timestamp, value
        trend_window: Window size used to classify trends
        anomaly_z: z-score above which a snapshot is flagged is_anomaly

    Returns:
        Snapshots sorted by metric name

    Raises:
        DataValidationError: if required columns are missing
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise DataValidationError(f"Missing required columns: {missing}")

    snapshots: List[PerformanceMetric] = []
    for metric_name, group in df.groupby("metric_name", sort=True):
        points = list(zip(group["timestamp"], group["value"]))
        try:
            snapshots.append(
                build_metric_snapshot(
                    str(metric_name), points, trend_window=trend_window, anomaly_z=anomaly_z
                )
            )
        except DataValidationError as exc:
            logger.warning("Skipping metric %s: %s", metric_name, exc)

    logger.info("Built %d metric snapshots from %d rows", len(snapshots), len(df))
    return snapshots
