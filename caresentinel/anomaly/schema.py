"""
Schema definitions for healthcare metric anomaly detection.

All detection outputs are deterministic and explainable. Each anomaly references
its observed value, the range it was expected in, and how confident the
detector is. Input snapshots are frozen so a detection run can never mutate
the caller's data.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from caresentinel.core.config import DetectionAlgorithm


class AnomalySeverity(str, Enum):
    """Severity levels for anomalies."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AnomalyType(str, Enum):
    """Shape of a detected deviation."""

    SPIKE = "spike"
    DROP = "drop"
    PATTERN_CHANGE = "pattern_change"
    SEASONAL_DEVIATION = "seasonal_deviation"


class TrendDirection(str, Enum):
    """Caller-reported direction of a metric."""

    DECLINING = "declining"
    STABLE = "stable"
    IMPROVING = "improving"

    @property
    def sign(self) -> int:
        if self is TrendDirection.DECLINING:
            return -1
        if self is TrendDirection.IMPROVING:
            return 1
        return 0


class PatientSegment(str, Enum):
    """Fixed healthcare cohorts used as lookup keys."""

    NEW_PATIENTS = "new_patients"
    RETURNING_PATIENTS = "returning_patients"
    AT_RISK_PATIENTS = "at_risk_patients"
    CHRONIC_CARE_PATIENTS = "chronic_care_patients"
    PREVENTIVE_CARE_PATIENTS = "preventive_care_patients"
    EMERGENCY_PATIENTS = "emergency_patients"


class ComplianceCategory(str, Enum):
    """Regulatory areas a metric can be audited against."""

    HIPAA_PRIVACY = "hipaa_privacy"
    HIPAA_SECURITY = "hipaa_security"
    HITECH = "hitech"
    GDPR = "gdpr"
    MEDICAL_ACCURACY = "medical_accuracy"
    PATIENT_CONSENT = "patient_consent"
    DATA_RETENTION = "data_retention"


class HealthcareUrgency(str, Enum):
    """Clinical urgency attached to a patient-safety finding."""

    ROUTINE = "routine"
    URGENT = "urgent"
    EMERGENCY = "emergency"
    CRITICAL = "critical"


class TimeSeriesPoint(BaseModel):
    """A single observation in a metric's history."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    timestamp: datetime
    value: float


class Percentiles(BaseModel):
    """Lower and upper quartile of a metric's history."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    p25: float = 0.0
    p75: float = 0.0

    @model_validator(mode="after")
    def _check_order(self) -> "Percentiles":
        if self.p25 > self.p75:
            raise ValueError("p25 must not exceed p75")
        return self


class PerformanceMetric(BaseModel):
    """
    Immutable per-metric snapshot handed to a detection run.

    Fields:
    - metric_name: metric identifier (e.g. "medication_accuracy")
    - current_value: latest observed value
    - mean / std_deviation: rolling baseline supplied by the caller
    - historical_values: chronological history, sorted on construction
    - percentage_change: change vs baseline, in percent
    - percentiles: p25/p75 of the history
    - trend: caller-reported direction
    - is_anomaly: flag set by the caller or a previous pass
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    metric_name: str = Field(..., min_length=1)
    current_value: float
    mean: float
    std_deviation: float = Field(..., ge=0.0)
    historical_values: Tuple[TimeSeriesPoint, ...] = ()
    percentage_change: float = 0.0
    percentiles: Percentiles = Percentiles()
    trend: TrendDirection = TrendDirection.STABLE
    is_anomaly: bool = False

    @field_validator("historical_values")
    @classmethod
    def _sort_history(cls, points: Tuple[TimeSeriesPoint, ...]) -> Tuple[TimeSeriesPoint, ...]:
        try:
            return tuple(sorted(points, key=lambda p: p.timestamp))
        except TypeError as exc:
            raise ValueError(
                "historical timestamps must be all naive or all timezone-aware"
            ) from exc

    @property
    def history(self) -> List[float]:
        """Historical values without timestamps, oldest first."""
        return [p.value for p in self.historical_values]


class DetectedAnomaly(BaseModel):
    """
    A single anomaly produced by a detection run.

    Fields:
    - metric_name: metric the anomaly belongs to
    - anomaly_type: spike, drop, pattern_change or seasonal_deviation
    - severity: derived from the triggering score only
    - confidence: detector confidence in [0.0, 1.0]
    - detected_at: detection timestamp (UTC)
    - value: observed value at detection time
    - expected_range: (low, high) band the value was expected in
    - description: short human-readable explanation
    """

    metric_name: str
    anomaly_type: AnomalyType
    severity: AnomalySeverity
    confidence: float = Field(ge=0.0, le=1.0)
    detected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    value: float
    expected_range: Tuple[float, float]
    description: str

    @model_validator(mode="after")
    def _check_range(self) -> "DetectedAnomaly":
        low, high = self.expected_range
        if low > high:
            raise ValueError("expected_range lower bound must not exceed upper bound")
        return self


class ComplianceViolation(BaseModel):
    """A compliance finding derived from an anomalous metric."""

    category: ComplianceCategory
    metric: str
    severity: AnomalySeverity
    description: str
    remediation: str


class PatientSafetyAnalysis(BaseModel):
    """Patient-safety overlay over critical clinical metrics."""

    has_anomaly: bool
    urgency: HealthcareUrgency
    affected_segments: List[PatientSegment]
    risk_score: float = Field(ge=0.0, le=100.0)


class ComplianceAnalysis(BaseModel):
    """Compliance overlay: violations plus a 0-100 overall score."""

    violations: List[ComplianceViolation]
    overall_compliance_score: float = Field(ge=0.0, le=100.0)


class PatientJourneyAnalysis(BaseModel):
    """
    Detected anomalies grouped by the patient cohorts they touch.

    Fields:
    - segment_metrics: segment -> anomalous member metric names
    - affected_segments: segments with at least one anomalous metric
    """

    segment_metrics: Dict[PatientSegment, List[str]]
    affected_segments: List[PatientSegment]


class AnomalySummary(BaseModel):
    """Counts and headline figures for a detection run."""

    total_anomalies: int = Field(ge=0)
    by_severity: Dict[AnomalySeverity, int] = Field(default_factory=dict)
    by_type: Dict[AnomalyType, int] = Field(default_factory=dict)
    highest_confidence: float = Field(0.0, ge=0.0, le=1.0)
    most_critical: Optional[str] = None


class AnomalyDetectionResult(BaseModel):
    """Aggregate output of one detection call."""

    model_config = ConfigDict(frozen=True)

    algorithm: DetectionAlgorithm
    anomalies: List[DetectedAnomaly]
    patient_safety_analysis: Optional[PatientSafetyAnalysis] = None
    compliance_analysis: Optional[ComplianceAnalysis] = None
    patient_journey_analysis: Optional[PatientJourneyAnalysis] = None
    summary: AnomalySummary
    recommendations: List[str]


class DetectionContext(BaseModel):
    """
    Optional healthcare context for a detection call.

    None means "not supplied"; an empty list is supplied and still runs the
    corresponding analysis.
    """

    patient_segments: Optional[List[PatientSegment]] = None
    compliance_categories: Optional[List[ComplianceCategory]] = None


class IQRBounds(BaseModel):
    """Quartiles and Tukey fences of a sample."""

    q1: float
    q3: float
    iqr: float
    lower_bound: float
    upper_bound: float


class SeasonalDecomposition(BaseModel):
    """Additive decomposition: value = trend + seasonal + residual."""

    trend: List[float]
    seasonal: List[float]
    residual: List[float]
