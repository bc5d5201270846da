"""
Healthcare anomaly detection engine.

Validates metric snapshots at the boundary, runs the configured detection
algorithm, filters and ranks the anomalies, overlays healthcare analyses and
produces a summary with recommendations.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional, Union

import numpy as np
from pydantic import ValidationError

from caresentinel.core.config import AnomalyDetectionConfig, config
from caresentinel.core.exceptions import AnomalyDetectionError, DataValidationError

from .algorithms import DetectorSuite, dispatch_algorithm
from .patterns import DEFAULT_HEALTHCARE_TABLES, HealthcarePatternMatcher, HealthcareTables
from .schema import (
    AnomalyDetectionResult,
    AnomalySeverity,
    AnomalySummary,
    AnomalyType,
    DetectedAnomaly,
    DetectionContext,
    PerformanceMetric,
)
from .scoring import rank_anomalies

logger = logging.getLogger(__name__)

MetricInput = Union[PerformanceMetric, Mapping[str, Any]]
ContextInput = Union[DetectionContext, Mapping[str, Any]]

RECOMMENDATION_TEMPLATES: Mapping[AnomalyType, str] = MappingProxyType(
    {
        AnomalyType.SPIKE: (
            "Investigate sudden increase in {metric}. "
            "Consider scaling resources or reviewing recent changes."
        ),
        AnomalyType.DROP: (
            "Address decline in {metric}. Check for system issues or configuration problems."
        ),
        AnomalyType.PATTERN_CHANGE: (
            "Review changes in {metric} patterns. "
            "May indicate shifting user behavior or system modifications."
        ),
        AnomalyType.SEASONAL_DEVIATION: (
            "Unusual seasonal pattern in {metric}. "
            "Compare with historical data and external factors."
        ),
    }
)


def summarize(anomalies: List[DetectedAnomaly]) -> AnomalySummary:
    """
    Summarize ranked anomalies.

    most_critical is the metric of the first critical anomaly, if any.
    """
    most_critical = next(
        (a.metric_name for a in anomalies if a.severity == AnomalySeverity.CRITICAL), None
    )
    return AnomalySummary(
        total_anomalies=len(anomalies),
        by_severity=dict(Counter(a.severity for a in anomalies)),
        by_type=dict(Counter(a.anomaly_type for a in anomalies)),
        highest_confidence=max((a.confidence for a in anomalies), default=0.0),
        most_critical=most_critical,
    )


def recommend(anomalies: List[DetectedAnomaly], limit: int = 5) -> List[str]:
    """One recommendation per anomaly among the top `limit` ranked anomalies."""
    return [
        RECOMMENDATION_TEMPLATES[a.anomaly_type].format(metric=a.metric_name)
        for a in anomalies[:limit]
    ]


@dataclass
class AnomalyDetectionService:
    """
    Stateless detection service.

    Notes:
    - Each call validates its inputs and builds a fresh RNG, so one instance
      can serve concurrent callers.
    - Metrics that cannot be analysed (too little history) are skipped, not
      reported as errors.
    """

    settings: Optional[AnomalyDetectionConfig] = None
    tables: HealthcareTables = DEFAULT_HEALTHCARE_TABLES

    def __post_init__(self) -> None:
        if self.settings is None:
            self.settings = config.anomaly
        self._detectors = DetectorSuite.from_config(self.settings)
        self._matcher = HealthcarePatternMatcher(self.tables)

    def detect_anomalies(
        self,
        metrics: Iterable[MetricInput],
        context: Optional[ContextInput] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> AnomalyDetectionResult:
        """
        Detect anomalies across a batch of metric snapshots.

        Args:
            metrics: PerformanceMetric objects or mappings with the same fields
            context: optional patient segments / compliance categories
            rng: random generator for isolation scoring (seeded from config by default)

        Returns:
            AnomalyDetectionResult with ranked anomalies, optional healthcare
            analyses, a summary and recommendations.

        Raises:
            DataValidationError: if a metric or the context is malformed
            AnomalyDetectionError: if a detector builds an anomaly that fails validation
        """
        settings = self.settings
        snapshots = self._validate_metrics(metrics)
        ctx = self._validate_context(context)
        if rng is None:
            rng = np.random.default_rng(settings.random_seed)

        try:
            detected = dispatch_algorithm(settings.algorithm, self._detectors, snapshots, rng)
        except ValidationError as exc:
            raise AnomalyDetectionError(
                f"{settings.algorithm.value} detection produced an invalid anomaly: {exc}"
            ) from exc
        confident = [a for a in detected if a.confidence >= settings.confidence_threshold]
        ranked = rank_anomalies(confident)

        safety = None
        compliance = None
        journey = None

        if settings.detect_safety_concerns and ctx.patient_segments is not None:
            safety = self._matcher.detect_patient_safety_anomalies(snapshots, ctx.patient_segments)

        if settings.detect_compliance_deviations and ctx.compliance_categories is not None:
            compliance = self._matcher.detect_compliance_violations(
                snapshots, ctx.compliance_categories
            )

        if settings.detect_patient_journey_anomalies and ctx.patient_segments is not None:
            journey = self._matcher.detect_patient_journey_anomalies(ranked, ctx.patient_segments)

        logger.info(
            "Detection run: algorithm=%s metrics=%d detected=%d kept=%d",
            settings.algorithm.value,
            len(snapshots),
            len(detected),
            len(ranked),
        )

        return AnomalyDetectionResult(
            algorithm=settings.algorithm,
            anomalies=ranked,
            patient_safety_analysis=safety,
            compliance_analysis=compliance,
            patient_journey_analysis=journey,
            summary=summarize(ranked),
            recommendations=recommend(ranked, settings.max_recommendations),
        )

    def _validate_metrics(self, metrics: Iterable[MetricInput]) -> List[PerformanceMetric]:
        snapshots: List[PerformanceMetric] = []
        for index, item in enumerate(metrics):
            if isinstance(item, PerformanceMetric):
                snapshots.append(item)
                continue
            try:
                snapshots.append(PerformanceMetric.model_validate(item))
            except ValidationError as exc:
                raise DataValidationError(f"Invalid metric at index {index}: {exc}") from exc
        return snapshots

    def _validate_context(self, context: Optional[ContextInput]) -> DetectionContext:
        if context is None:
            return DetectionContext()
        if isinstance(context, DetectionContext):
            return context
        try:
            return DetectionContext.model_validate(context)
        except ValidationError as exc:
            raise DataValidationError(f"Invalid detection context: {exc}") from exc
