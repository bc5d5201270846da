"""
Detectors for statistical deviations in healthcare metrics.

Implements explainable methods:
- Z-score detection confirmed by IQR fences
- Trend-change detection over two adjacent windows
- Residual detection after seasonal decomposition
- Partition-based isolation scoring

Every detector works on one immutable snapshot at a time (isolation scoring
needs the whole batch) and returns None when a metric cannot be analysed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .schema import AnomalyType, DetectedAnomaly, PerformanceMetric
from .scoring import SeverityMapper, clamp_confidence
from .statistics import decompose, iqr_bounds, mean, population_std, z_score

logger = logging.getLogger(__name__)


@dataclass
class RateOfChangeDetector:
    """
    Relative rate-of-change detector.

    Computes |delta| / max(|prev|, epsilon) to avoid division by zero.
    """

    epsilon: float = 1e-6

    def compute(self, observed: float, previous: Optional[float]) -> Optional[float]:
        if previous is None:
            return None
        delta = observed - previous
        denom = max(abs(previous), self.epsilon)
        return abs(delta) / denom


@dataclass
class OutlierDetector:
    """
    Z-score detector with an IQR confirmation step.

    Both signals must agree: the z-score must exceed the threshold and the
    current value must sit outside the Tukey fences of the history. A metric
    without history cannot be confirmed and never fires.
    """

    z_threshold: float
    iqr_multiplier: float
    severity_mapper: SeverityMapper
    confidence_scale: float = 4.0

    def detect(self, metric: PerformanceMetric) -> Optional[DetectedAnomaly]:
        z = z_score(metric.current_value, metric.mean, metric.std_deviation)
        if z <= self.z_threshold:
            return None

        history = metric.history
        if not history:
            logger.debug("No history to confirm outlier for %s", metric.metric_name)
            return None

        bounds = iqr_bounds(history, self.iqr_multiplier)
        if bounds.lower_bound <= metric.current_value <= bounds.upper_bound:
            return None

        anomaly_type = AnomalyType.SPIKE if metric.current_value > metric.mean else AnomalyType.DROP
        return DetectedAnomaly(
            metric_name=metric.metric_name,
            anomaly_type=anomaly_type,
            severity=self.severity_mapper.severity(z),
            confidence=clamp_confidence(z / self.confidence_scale),
            value=metric.current_value,
            expected_range=(bounds.lower_bound, bounds.upper_bound),
            description=f"Detected {z:.2f} standard deviations from mean",
        )


@dataclass
class TrendChangeDetector:
    """
    Compares the mean of the latest window with the window before it.

    Notes:
    - Needs at least min_points (and two full windows) of history.
    - The relative shift is scaled by severity_scale before severity mapping.
    """

    change_threshold: float
    severity_mapper: SeverityMapper
    min_points: int = 10
    window: int = 5
    severity_scale: float = 6.0
    rate_detector: RateOfChangeDetector = None

    def __post_init__(self) -> None:
        if self.rate_detector is None:
            self.rate_detector = RateOfChangeDetector()

    def detect(self, metric: PerformanceMetric) -> Optional[DetectedAnomaly]:
        values = metric.history
        if len(values) < max(self.min_points, 2 * self.window):
            return None

        recent_mean = mean(values[-self.window :])
        older_mean = mean(values[-2 * self.window : -self.window])
        change = self.rate_detector.compute(recent_mean, older_mean)
        if change is None or change <= self.change_threshold:
            return None

        low, high = sorted((older_mean * 0.8, older_mean * 1.2))
        return DetectedAnomaly(
            metric_name=metric.metric_name,
            anomaly_type=AnomalyType.PATTERN_CHANGE,
            severity=self.severity_mapper.severity(change * self.severity_scale),
            confidence=clamp_confidence(change),
            value=metric.current_value,
            expected_range=(low, high),
            description=f"Trend change detected: {change * 100:.2f}% shift",
        )


@dataclass
class ResidualDetector:
    """
    Decomposition-based detector.

    Decomposes the history into trend/seasonal/residual and scores the latest
    residual against the residual series itself. Metrics with fewer than
    min_points observations are skipped.
    """

    residual_threshold: float
    severity_mapper: SeverityMapper
    min_points: int = 100
    seasonal_period: int = 7
    seasonal_adjustment: bool = True
    confidence_scale: float = 3.0

    def detect(self, metric: PerformanceMetric) -> Optional[DetectedAnomaly]:
        values = metric.history
        if not values or len(values) < self.min_points:
            logger.debug(
                "Skipping %s: %d points < %d required",
                metric.metric_name,
                len(values),
                self.min_points,
            )
            return None

        parts = decompose(values, self.seasonal_period, seasonal=self.seasonal_adjustment)
        residuals = parts.residual
        z = z_score(residuals[-1], mean(residuals), population_std(residuals))
        if z <= self.residual_threshold:
            return None

        if self.seasonal_adjustment:
            anomaly_type = AnomalyType.SEASONAL_DEVIATION
            description = "Unusual pattern detected after seasonal adjustment"
        else:
            anomaly_type = AnomalyType.PATTERN_CHANGE
            description = "Unusual pattern detected after trend removal"

        spread = 2 * metric.std_deviation
        return DetectedAnomaly(
            metric_name=metric.metric_name,
            anomaly_type=anomaly_type,
            severity=self.severity_mapper.severity(z),
            confidence=clamp_confidence(z / self.confidence_scale),
            value=metric.current_value,
            expected_range=(metric.mean - spread, metric.mean + spread),
            description=description,
        )


def feature_vector(metric: PerformanceMetric) -> List[float]:
    """[current_value, percentage_change, std_deviation, trend sign]"""
    return [
        metric.current_value,
        metric.percentage_change,
        metric.std_deviation,
        float(metric.trend.sign),
    ]


@dataclass
class IsolationScorer:
    """
    Random-partition isolation score.

    For each tree a random feature is drawn and the sample is narrowed to the
    points strictly below the target on that feature, until at most one point
    remains, the sample empties, or max_depth is reached. Short paths mean the
    target is easy to isolate. The score is 1 - mean_depth / max_depth,
    clamped to [0, 1].
    """

    n_trees: int = 10
    max_depth: int = 10

    def score(self, point: np.ndarray, points: np.ndarray, rng: np.random.Generator) -> float:
        n_features = point.shape[0]
        total_depth = 0

        for _ in range(self.n_trees):
            depth = 0
            subset = points
            while len(subset) > 1 and depth < self.max_depth:
                feature = int(rng.integers(n_features))
                subset = subset[subset[:, feature] < point[feature]]
                depth += 1
                if len(subset) == 0:
                    break
            total_depth += depth

        avg_path = total_depth / self.n_trees
        return min(max(1.0 - avg_path / self.max_depth, 0.0), 1.0)


@dataclass
class IsolationForestDetector:
    """
    Batch detector flagging metrics that are easy to isolate from their peers.
    """

    score_threshold: float
    severity_mapper: SeverityMapper
    scorer: IsolationScorer
    severity_scale: float = 3.75

    def detect_all(
        self, metrics: Sequence[PerformanceMetric], rng: np.random.Generator
    ) -> List[DetectedAnomaly]:
        anomalies: List[DetectedAnomaly] = []
        if not metrics:
            return anomalies

        features = np.array([feature_vector(m) for m in metrics], dtype=float)
        for i, metric in enumerate(metrics):
            score = self.scorer.score(features[i], features, rng)
            if score <= self.score_threshold:
                continue

            anomalies.append(
                DetectedAnomaly(
                    metric_name=metric.metric_name,
                    anomaly_type=AnomalyType.PATTERN_CHANGE,
                    severity=self.severity_mapper.severity(score * self.severity_scale),
                    confidence=score,
                    value=metric.current_value,
                    expected_range=(metric.percentiles.p25, metric.percentiles.p75),
                    description="Isolated anomaly detected",
                )
            )
        return anomalies
