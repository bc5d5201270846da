"""
Detection algorithms and their dispatch table.

Each DetectionAlgorithm variant has exactly one runner with the same
signature. The registry is read-only and covers every variant, so selecting an
algorithm is a lookup rather than string branching.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Sequence

import numpy as np

from caresentinel.core.config import AnomalyDetectionConfig, DetectionAlgorithm
from caresentinel.core.exceptions import ConfigurationError

from .detectors import (
    IsolationForestDetector,
    IsolationScorer,
    OutlierDetector,
    ResidualDetector,
    TrendChangeDetector,
)
from .schema import DetectedAnomaly, PerformanceMetric
from .scoring import SeverityMapper


@dataclass
class DetectorSuite:
    """
    Detectors configured for one engine, with sensitivity already applied.
    """

    outlier: OutlierDetector
    trend: TrendChangeDetector
    residual: ResidualDetector
    isolation: IsolationForestDetector

    @classmethod
    def from_config(cls, settings: AnomalyDetectionConfig) -> "DetectorSuite":
        mapper = SeverityMapper(settings.severity)
        sensitivity = settings.sensitivity
        return cls(
            outlier=OutlierDetector(
                z_threshold=settings.z_score_threshold * sensitivity,
                iqr_multiplier=settings.iqr_multiplier,
                severity_mapper=mapper,
            ),
            trend=TrendChangeDetector(
                change_threshold=settings.trend_change_threshold * sensitivity,
                severity_mapper=mapper,
                min_points=settings.trend_min_points,
                window=settings.trend_window,
                severity_scale=settings.trend_severity_scale,
            ),
            residual=ResidualDetector(
                residual_threshold=settings.residual_threshold * sensitivity,
                severity_mapper=mapper,
                min_points=settings.minimum_data_points,
                seasonal_period=settings.seasonal_period,
                seasonal_adjustment=settings.seasonal_adjustment,
            ),
            isolation=IsolationForestDetector(
                score_threshold=settings.isolation_threshold * sensitivity,
                severity_mapper=mapper,
                scorer=IsolationScorer(
                    n_trees=settings.isolation.n_trees,
                    max_depth=settings.isolation.max_depth,
                ),
                severity_scale=settings.isolation_severity_scale,
            ),
        )


AlgorithmRunner = Callable[
    [DetectorSuite, Sequence[PerformanceMetric], np.random.Generator], List[DetectedAnomaly]
]


def statistical_detection(
    suite: DetectorSuite, metrics: Sequence[PerformanceMetric], rng: np.random.Generator
) -> List[DetectedAnomaly]:
    """Z-score outliers confirmed by IQR, plus trend changes."""
    anomalies: List[DetectedAnomaly] = []
    for metric in metrics:
        outlier = suite.outlier.detect(metric)
        if outlier is not None:
            anomalies.append(outlier)

        trend = suite.trend.detect(metric)
        if trend is not None:
            anomalies.append(trend)
    return anomalies


def decomposition_detection(
    suite: DetectorSuite, metrics: Sequence[PerformanceMetric], rng: np.random.Generator
) -> List[DetectedAnomaly]:
    """Residual analysis after seasonal decomposition (the "ml_based" variant)."""
    anomalies: List[DetectedAnomaly] = []
    for metric in metrics:
        anomaly = suite.residual.detect(metric)
        if anomaly is not None:
            anomalies.append(anomaly)
    return anomalies


def isolation_forest_detection(
    suite: DetectorSuite, metrics: Sequence[PerformanceMetric], rng: np.random.Generator
) -> List[DetectedAnomaly]:
    return suite.isolation.detect_all(metrics, rng)


def hybrid_detection(
    suite: DetectorSuite, metrics: Sequence[PerformanceMetric], rng: np.random.Generator
) -> List[DetectedAnomaly]:
    """
    Union of statistical and isolation results, one entry per metric.

    A later entry replaces an earlier one only with strictly higher confidence.
    """
    combined: Dict[str, DetectedAnomaly] = {}
    candidates = statistical_detection(suite, metrics, rng) + isolation_forest_detection(
        suite, metrics, rng
    )
    for anomaly in candidates:
        existing = combined.get(anomaly.metric_name)
        if existing is None or anomaly.confidence > existing.confidence:
            combined[anomaly.metric_name] = anomaly
    return list(combined.values())


ALGORITHMS: Mapping[DetectionAlgorithm, AlgorithmRunner] = MappingProxyType(
    {
        DetectionAlgorithm.STATISTICAL: statistical_detection,
        DetectionAlgorithm.ML_BASED: decomposition_detection,
        DetectionAlgorithm.ISOLATION_FOREST: isolation_forest_detection,
        DetectionAlgorithm.HYBRID: hybrid_detection,
    }
)


def dispatch_algorithm(
    algorithm: DetectionAlgorithm,
    suite: DetectorSuite,
    metrics: Sequence[PerformanceMetric],
    rng: np.random.Generator,
) -> List[DetectedAnomaly]:
    """
    Run the runner registered for algorithm.

    Raises:
        ConfigurationError: if algorithm is not a registered variant
    """
    try:
        runner = ALGORITHMS[DetectionAlgorithm(algorithm)]
    except (KeyError, ValueError) as exc:
        raise ConfigurationError(f"Unknown detection algorithm: {algorithm!r}") from exc
    return runner(suite, metrics, rng)
