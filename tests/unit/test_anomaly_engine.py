"""
Unit tests for the anomaly detection service.
"""

import numpy as np
import pytest

from caresentinel.anomaly import engine
from caresentinel.anomaly.engine import AnomalyDetectionService, recommend, summarize
from caresentinel.anomaly.schema import (
    AnomalySeverity,
    AnomalyType,
    ComplianceCategory,
    DetectedAnomaly,
    DetectionContext,
    HealthcareUrgency,
    PatientSegment,
)
from caresentinel.core.config import AnomalyDetectionConfig, DetectionAlgorithm
from caresentinel.core.exceptions import AnomalyDetectionError, DataValidationError

NARROW_HISTORY = [float(v) for v in range(95, 105)] * 2


def _service(**overrides) -> AnomalyDetectionService:
    settings = AnomalyDetectionConfig(random_seed=1234, **overrides)
    return AnomalyDetectionService(settings=settings)


def test_default_algorithm_is_ml_based():
    assert AnomalyDetectionConfig().algorithm == DetectionAlgorithm.ML_BASED
    assert AnomalyDetectionService().settings.algorithm == DetectionAlgorithm.ML_BASED


def test_default_service_ignores_quiet_batches(metric_factory):
    service = AnomalyDetectionService()

    single = service.detect_anomalies([metric_factory("response_time")])
    identical = service.detect_anomalies([metric_factory(f"m{i}") for i in range(3)])

    assert single.anomalies == []
    assert identical.anomalies == []
    assert identical.recommendations == []


def test_empty_metrics_give_neutral_result():
    result = _service().detect_anomalies([])

    assert result.anomalies == []
    assert result.summary.total_anomalies == 0
    assert result.summary.by_severity == {}
    assert result.summary.by_type == {}
    assert result.summary.highest_confidence == 0.0
    assert result.summary.most_critical is None
    assert result.recommendations == []
    assert result.patient_safety_analysis is None
    assert result.compliance_analysis is None
    assert result.patient_journey_analysis is None


def test_medication_accuracy_scenario(metric_factory):
    metric = metric_factory("medication_accuracy", current_value=40.0, mean=95.0, std_deviation=5.0)
    context = DetectionContext(
        patient_segments=[PatientSegment.CHRONIC_CARE_PATIENTS],
        compliance_categories=[ComplianceCategory.HIPAA_PRIVACY],
    )

    result = AnomalyDetectionService().detect_anomalies([metric], context)

    safety = result.patient_safety_analysis
    assert safety is not None
    assert safety.urgency == HealthcareUrgency.CRITICAL
    assert safety.risk_score == 100.0
    assert PatientSegment.CHRONIC_CARE_PATIENTS in safety.affected_segments
    assert result.compliance_analysis is not None
    assert result.compliance_analysis.overall_compliance_score == 100.0


def test_ranking_summary_and_recommendations(metric_factory):
    service = _service(algorithm=DetectionAlgorithm.STATISTICAL, confidence_threshold=0.5)
    metrics = [
        # trend shift of 60% -> severity score 3.6 (high), confidence 0.6
        metric_factory("visit_volume", current_value=160.0, mean=160.0, history=[100.0] * 5 + [160.0] * 5),
        # z = 50 -> critical, confidence 1.0
        metric_factory("error_rate", current_value=200.0, mean=100.0, std_deviation=2.0, history=NARROW_HISTORY),
    ]

    result = service.detect_anomalies(metrics)

    assert [a.metric_name for a in result.anomalies] == ["error_rate", "visit_volume"]
    assert [a.severity for a in result.anomalies] == [AnomalySeverity.CRITICAL, AnomalySeverity.HIGH]

    summary = result.summary
    assert summary.total_anomalies == 2
    assert summary.by_severity == {AnomalySeverity.CRITICAL: 1, AnomalySeverity.HIGH: 1}
    assert summary.by_type == {AnomalyType.SPIKE: 1, AnomalyType.PATTERN_CHANGE: 1}
    assert summary.highest_confidence == 1.0
    assert summary.most_critical == "error_rate"

    assert result.recommendations == [
        "Investigate sudden increase in error_rate. "
        "Consider scaling resources or reviewing recent changes.",
        "Review changes in visit_volume patterns. "
        "May indicate shifting user behavior or system modifications.",
    ]


def test_confidence_threshold_filters(metric_factory):
    metric = metric_factory("visit_volume", current_value=160.0, mean=160.0, history=[100.0] * 5 + [160.0] * 5)

    strict = _service(algorithm=DetectionAlgorithm.STATISTICAL).detect_anomalies([metric])
    lenient = _service(
        algorithm=DetectionAlgorithm.STATISTICAL, confidence_threshold=0.6
    ).detect_anomalies([metric])

    assert strict.anomalies == []
    assert len(lenient.anomalies) == 1


def test_recommendations_capped_at_five(metric_factory):
    metrics = [
        metric_factory(f"metric_{i}", current_value=200.0, mean=100.0, std_deviation=2.0, history=NARROW_HISTORY)
        for i in range(7)
    ]

    result = _service(algorithm=DetectionAlgorithm.STATISTICAL).detect_anomalies(metrics)

    assert len(result.anomalies) == 7
    assert len(result.recommendations) == 5


def test_most_critical_absent_without_critical(metric_factory):
    metric = metric_factory("visit_volume", current_value=160.0, mean=160.0, history=[100.0] * 5 + [160.0] * 5)

    result = _service(
        algorithm=DetectionAlgorithm.STATISTICAL, confidence_threshold=0.5
    ).detect_anomalies([metric])

    assert result.summary.total_anomalies == 1
    assert result.summary.most_critical is None


def test_mapping_inputs_are_validated():
    service = _service(algorithm=DetectionAlgorithm.STATISTICAL)
    result = service.detect_anomalies(
        [{"metric_name": "error_rate", "current_value": 1.0, "mean": 1.0, "std_deviation": 0.1}],
        {"patient_segments": ["emergency_patients"]},
    )

    assert result.anomalies == []
    assert result.patient_safety_analysis is not None
    assert result.compliance_analysis is None


@pytest.mark.parametrize(
    "payload",
    [
        {"metric_name": "error_rate", "current_value": 1.0, "std_deviation": 0.1},
        {"metric_name": "error_rate", "current_value": 1.0, "mean": 1.0, "std_deviation": -1.0},
        {"metric_name": "error_rate", "current_value": "high", "mean": 1.0, "std_deviation": 1.0},
        {"metric_name": "", "current_value": 1.0, "mean": 1.0, "std_deviation": 1.0},
    ],
)
def test_malformed_metric_fails_fast(payload):
    with pytest.raises(DataValidationError):
        _service().detect_anomalies([payload])


def test_malformed_context_fails_fast(metric_factory):
    with pytest.raises(DataValidationError):
        _service().detect_anomalies([metric_factory()], {"patient_segments": ["pediatric"]})


def test_toggles_disable_healthcare_analyses(metric_factory):
    service = _service(
        detect_safety_concerns=False,
        detect_compliance_deviations=False,
        detect_patient_journey_anomalies=False,
    )
    context = DetectionContext(
        patient_segments=list(PatientSegment),
        compliance_categories=list(ComplianceCategory),
    )

    result = service.detect_anomalies([metric_factory()], context)

    assert result.patient_safety_analysis is None
    assert result.compliance_analysis is None
    assert result.patient_journey_analysis is None


def test_empty_context_lists_still_run_analyses(metric_factory):
    context = DetectionContext(patient_segments=[], compliance_categories=[])

    result = _service().detect_anomalies([metric_factory()], context)

    assert result.patient_safety_analysis is not None
    assert result.patient_safety_analysis.affected_segments == []
    assert result.compliance_analysis.overall_compliance_score == 100.0
    assert result.patient_journey_analysis.segment_metrics == {}


def test_inputs_are_not_mutated(metric_factory):
    metric = metric_factory("error_rate", current_value=200.0, mean=100.0, std_deviation=2.0, history=NARROW_HISTORY)
    before = metric.model_dump()

    _service(algorithm=DetectionAlgorithm.HYBRID).detect_anomalies(
        [metric], {"patient_segments": list(PatientSegment)}
    )

    assert metric.model_dump() == before


def test_decomposition_skips_short_history(metric_factory):
    metric = metric_factory("error_rate", current_value=500.0, history=NARROW_HISTORY)

    result = _service(algorithm=DetectionAlgorithm.ML_BASED).detect_anomalies([metric])

    assert result.anomalies == []


def test_isolation_results_reproducible_with_seed(metric_factory):
    metrics = [
        metric_factory(f"m{i}", current_value=float(i * 10), percentage_change=float(i), std_deviation=float(i % 3))
        for i in range(6)
    ]
    service = _service(algorithm=DetectionAlgorithm.ISOLATION_FOREST, confidence_threshold=0.0)

    first = service.detect_anomalies(metrics)
    second = service.detect_anomalies(metrics)
    explicit = service.detect_anomalies(metrics, rng=np.random.default_rng(1234))

    def key(result):
        return [(a.metric_name, a.confidence) for a in result.anomalies]

    assert key(first) == key(second) == key(explicit)


def test_anomaly_invariants_hold(metric_factory):
    metrics = [
        metric_factory("error_rate", current_value=200.0, mean=100.0, std_deviation=2.0, history=NARROW_HISTORY),
        metric_factory("visit_volume", current_value=-160.0, mean=-160.0, history=[-100.0] * 5 + [-160.0] * 5),
        metric_factory("portal_engagement", current_value=3.0, percentiles={"p25": 1.0, "p75": 5.0}),
    ]

    result = _service(
        algorithm=DetectionAlgorithm.HYBRID, confidence_threshold=0.0
    ).detect_anomalies(metrics)

    for anomaly in result.anomalies:
        assert 0.0 <= anomaly.confidence <= 1.0
        assert anomaly.expected_range[0] <= anomaly.expected_range[1]


def test_summarize_and_recommend_helpers():
    assert summarize([]).total_anomalies == 0
    assert recommend([], limit=5) == []


def test_invalid_detector_output_raises_detection_error(monkeypatch, metric_factory):
    def broken_dispatch(algorithm, suite, metrics, rng):
        return [
            DetectedAnomaly(
                metric_name="error_rate",
                anomaly_type=AnomalyType.SPIKE,
                severity=AnomalySeverity.HIGH,
                confidence=1.5,
                value=1.0,
                expected_range=(0.0, 1.0),
                description="broken",
            )
        ]

    monkeypatch.setattr(engine, "dispatch_algorithm", broken_dispatch)

    with pytest.raises(AnomalyDetectionError):
        _service().detect_anomalies([metric_factory()])
