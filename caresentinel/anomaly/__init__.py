"""
Anomaly module: statistical anomaly detection for healthcare metrics.

Implements deterministic statistics, detectors, healthcare pattern matching,
algorithm dispatch and the detection service.
"""

from .algorithms import ALGORITHMS, DetectorSuite, dispatch_algorithm
from .detectors import (
	IsolationForestDetector,
	IsolationScorer,
	OutlierDetector,
	RateOfChangeDetector,
	ResidualDetector,
	TrendChangeDetector,
)
from .engine import AnomalyDetectionService
from .patterns import DEFAULT_HEALTHCARE_TABLES, HealthcarePatternMatcher, HealthcareTables
from .schema import (
	AnomalyDetectionResult,
	AnomalySeverity,
	AnomalySummary,
	AnomalyType,
	ComplianceAnalysis,
	ComplianceCategory,
	ComplianceViolation,
	DetectedAnomaly,
	DetectionContext,
	HealthcareUrgency,
	PatientJourneyAnalysis,
	PatientSafetyAnalysis,
	PatientSegment,
	Percentiles,
	PerformanceMetric,
	TimeSeriesPoint,
	TrendDirection,
)
from .scoring import SeverityMapper, rank_anomalies

__all__ = [
	"AnomalyDetectionService",
	"ALGORITHMS",
	"DetectorSuite",
	"dispatch_algorithm",
	"OutlierDetector",
	"TrendChangeDetector",
	"ResidualDetector",
	"IsolationScorer",
	"IsolationForestDetector",
	"RateOfChangeDetector",
	"HealthcarePatternMatcher",
	"HealthcareTables",
	"DEFAULT_HEALTHCARE_TABLES",
	"AnomalyDetectionResult",
	"AnomalySeverity",
	"AnomalySummary",
	"AnomalyType",
	"ComplianceAnalysis",
	"ComplianceCategory",
	"ComplianceViolation",
	"DetectedAnomaly",
	"DetectionContext",
	"HealthcareUrgency",
	"PatientJourneyAnalysis",
	"PatientSafetyAnalysis",
	"PatientSegment",
	"Percentiles",
	"PerformanceMetric",
	"TimeSeriesPoint",
	"TrendDirection",
	"SeverityMapper",
	"rank_anomalies",
]
