"""
Integration tests for the detection pipeline.

Tests the complete flow: raw observations → snapshots → detection → result.
"""

import pytest

from caresentinel import AnomalyDetectionService, DetectionAlgorithm
from caresentinel.anomaly.schema import (
    AnomalyType,
    ComplianceCategory,
    DetectionContext,
    PatientSegment,
)
from caresentinel.anomaly.scoring import severity_rank
from caresentinel.core.config import AnomalyDetectionConfig
from caresentinel.data import snapshots_from_frame


def _service(**overrides) -> AnomalyDetectionService:
    return AnomalyDetectionService(settings=AnomalyDetectionConfig(random_seed=99, **overrides))


@pytest.mark.integration
class TestDetectionPipeline:
    """Test end-to-end detection on generated observations."""

    def test_decomposition_flags_spike_after_seasonal_adjustment(self, observation_frame):
        snapshots = snapshots_from_frame(observation_frame)

        result = _service(algorithm=DetectionAlgorithm.ML_BASED).detect_anomalies(snapshots)

        assert [a.metric_name for a in result.anomalies] == ["spiking_metric"]
        anomaly = result.anomalies[0]
        assert anomaly.anomaly_type == AnomalyType.SEASONAL_DEVIATION
        assert anomaly.value == 60.0
        assert result.summary.by_type == {AnomalyType.SEASONAL_DEVIATION: 1}
        assert result.recommendations[0].startswith("Unusual seasonal pattern in spiking_metric")

    def test_statistical_flags_spike(self, observation_frame):
        snapshots = snapshots_from_frame(observation_frame)

        result = _service(algorithm=DetectionAlgorithm.STATISTICAL).detect_anomalies(snapshots)

        spikes = [a for a in result.anomalies if a.anomaly_type == AnomalyType.SPIKE]
        assert [a.metric_name for a in spikes] == ["spiking_metric"]
        assert all(a.metric_name != "flat_metric" for a in result.anomalies)

    @pytest.mark.parametrize("algorithm", list(DetectionAlgorithm))
    def test_every_algorithm_honours_invariants(self, observation_frame, algorithm):
        snapshots = snapshots_from_frame(observation_frame)

        result = _service(algorithm=algorithm, confidence_threshold=0.0).detect_anomalies(snapshots)

        assert result.algorithm == algorithm
        assert result.summary.total_anomalies == len(result.anomalies)
        for anomaly in result.anomalies:
            assert 0.0 <= anomaly.confidence <= 1.0
            assert anomaly.expected_range[0] <= anomaly.expected_range[1]

        keys = [(severity_rank(a.severity), a.confidence) for a in result.anomalies]
        assert keys == sorted(keys, reverse=True)
        assert len(result.recommendations) <= 5

    def test_hybrid_reports_each_metric_once(self, observation_frame):
        snapshots = snapshots_from_frame(observation_frame)

        result = _service(
            algorithm=DetectionAlgorithm.HYBRID, confidence_threshold=0.0
        ).detect_anomalies(snapshots)

        names = [a.metric_name for a in result.anomalies]
        assert len(names) == len(set(names))
        assert "spiking_metric" in names

    def test_healthcare_overlays(self, metric_factory):
        metrics = [
            metric_factory("medication_accuracy", current_value=40.0, mean=95.0, std_deviation=5.0),
            metric_factory(
                "access_logs",
                current_value=180.0,
                mean=100.0,
                std_deviation=10.0,
                percentage_change=80.0,
                is_anomaly=True,
            ),
        ]
        context = DetectionContext(
            patient_segments=[PatientSegment.CHRONIC_CARE_PATIENTS, PatientSegment.EMERGENCY_PATIENTS],
            compliance_categories=[ComplianceCategory.HIPAA_PRIVACY],
        )

        result = _service(
            algorithm=DetectionAlgorithm.HYBRID, confidence_threshold=0.0
        ).detect_anomalies(metrics, context)

        safety = result.patient_safety_analysis
        assert safety.has_anomaly is True
        assert safety.risk_score == 100.0
        assert safety.affected_segments == [PatientSegment.CHRONIC_CARE_PATIENTS]

        compliance = result.compliance_analysis
        assert len(compliance.violations) == 1
        assert compliance.violations[0].metric == "access_logs"
        assert compliance.overall_compliance_score == 60.0

        journey = result.patient_journey_analysis
        assert journey is not None
        assert set(journey.segment_metrics) == {
            PatientSegment.CHRONIC_CARE_PATIENTS,
            PatientSegment.EMERGENCY_PATIENTS,
        }
        assert journey.segment_metrics[PatientSegment.EMERGENCY_PATIENTS] == []
