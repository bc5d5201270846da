"""
Healthcare pattern matching on top of raw metric anomalies.

Maps metric deviations onto patient-safety risk, compliance violations and
affected patient cohorts. All domain knowledge lives in HealthcareTables, an
immutable structure injected into the matcher, so the matching itself is pure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Sequence, Tuple

from .schema import (
    AnomalySeverity,
    ComplianceAnalysis,
    ComplianceCategory,
    ComplianceViolation,
    DetectedAnomaly,
    HealthcareUrgency,
    PatientJourneyAnalysis,
    PatientSafetyAnalysis,
    PatientSegment,
    PerformanceMetric,
)
from .statistics import z_score

logger = logging.getLogger(__name__)


def _frozen(mapping: Mapping) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class HealthcareTables:
    """
    Static domain configuration for the pattern matcher.

    Fields:
    - critical_metrics: metrics that can raise patient-safety risk
    - metric_weights: importance of a metric in the risk score (default_weight otherwise)
    - segment_metrics: patient segment -> member metric names
    - compliance_metrics: compliance category -> audited metric names
    - remediations: compliance category -> remediation text
    - violation_impact: severity -> points removed from a category score
    - compliance_severity_cuts: (|percentage_change| floor, severity), highest first
    - urgency_cuts: (risk score floor, urgency), highest first
    """

    critical_metrics: Tuple[str, ...] = (
        "error_rate",
        "response_time",
        "medication_accuracy",
        "appointment_compliance",
        "emergency_response",
    )
    metric_weights: Mapping[str, float] = field(
        default_factory=lambda: {
            "error_rate": 10,
            "response_time": 8,
            "medication_accuracy": 10,
            "appointment_compliance": 6,
            "emergency_response": 10,
            "data_breach": 10,
            "patient_identification": 9,
            "consent_tracking": 7,
        }
    )
    default_weight: float = 5
    segment_metrics: Mapping[PatientSegment, FrozenSet[str]] = field(
        default_factory=lambda: {
            PatientSegment.NEW_PATIENTS: frozenset(
                {"onboarding_time", "first_visit_completion", "registration_errors"}
            ),
            PatientSegment.RETURNING_PATIENTS: frozenset(
                {"appointment_adherence", "prescription_refills", "portal_engagement"}
            ),
            PatientSegment.AT_RISK_PATIENTS: frozenset(
                {"monitoring_frequency", "alert_response_time", "intervention_success"}
            ),
            PatientSegment.CHRONIC_CARE_PATIENTS: frozenset(
                {
                    "medication_adherence",
                    "medication_accuracy",
                    "vital_monitoring",
                    "care_plan_compliance",
                }
            ),
            PatientSegment.PREVENTIVE_CARE_PATIENTS: frozenset(
                {"screening_completion", "vaccination_rates", "wellness_visits"}
            ),
            PatientSegment.EMERGENCY_PATIENTS: frozenset(
                {"triage_time", "emergency_response", "critical_care_metrics"}
            ),
        }
    )
    compliance_metrics: Mapping[ComplianceCategory, Tuple[str, ...]] = field(
        default_factory=lambda: {
            ComplianceCategory.HIPAA_PRIVACY: (
                "access_logs",
                "data_encryption",
                "user_authentication",
            ),
            ComplianceCategory.HIPAA_SECURITY: (
                "intrusion_attempts",
                "audit_trail_completeness",
                "backup_integrity",
            ),
            ComplianceCategory.HITECH: ("breach_notifications", "ehr_adoption", "meaningful_use"),
            ComplianceCategory.GDPR: ("consent_tracking", "data_portability", "right_to_deletion"),
            ComplianceCategory.MEDICAL_ACCURACY: (
                "clinical_guideline_adherence",
                "diagnosis_accuracy",
                "treatment_outcomes",
            ),
            ComplianceCategory.PATIENT_CONSENT: (
                "consent_forms_completed",
                "opt_out_requests",
                "preference_updates",
            ),
            ComplianceCategory.DATA_RETENTION: (
                "retention_policy_compliance",
                "data_purge_schedule",
                "archive_integrity",
            ),
        }
    )
    remediations: Mapping[ComplianceCategory, str] = field(
        default_factory=lambda: {
            ComplianceCategory.HIPAA_PRIVACY: "Review access controls and audit user permissions",
            ComplianceCategory.HIPAA_SECURITY: "Conduct security assessment and update safeguards",
            ComplianceCategory.HITECH: (
                "Update breach notification procedures and review EHR configurations"
            ),
            ComplianceCategory.GDPR: "Verify consent management processes and data subject rights",
            ComplianceCategory.MEDICAL_ACCURACY: (
                "Review clinical guidelines and update treatment protocols"
            ),
            ComplianceCategory.PATIENT_CONSENT: "Audit consent forms and update tracking systems",
            ComplianceCategory.DATA_RETENTION: "Review retention policies and schedule data purge",
        }
    )
    default_remediation: str = "Investigate and address the compliance issue"
    violation_impact: Mapping[AnomalySeverity, float] = field(
        default_factory=lambda: {
            AnomalySeverity.CRITICAL: 40,
            AnomalySeverity.HIGH: 25,
            AnomalySeverity.MEDIUM: 15,
            AnomalySeverity.LOW: 5,
        }
    )
    compliance_severity_cuts: Tuple[Tuple[float, AnomalySeverity], ...] = (
        (50.0, AnomalySeverity.CRITICAL),
        (30.0, AnomalySeverity.HIGH),
        (15.0, AnomalySeverity.MEDIUM),
    )
    urgency_cuts: Tuple[Tuple[float, HealthcareUrgency], ...] = (
        (80.0, HealthcareUrgency.CRITICAL),
        (60.0, HealthcareUrgency.EMERGENCY),
        (40.0, HealthcareUrgency.URGENT),
    )
    safety_z_threshold: float = 3.0
    risk_multiplier: float = 10.0
    max_risk_score: float = 100.0
    safety_alert_score: float = 30.0
    base_compliance_score: float = 100.0

    def __post_init__(self) -> None:
        # Mappings are read-only once constructed.
        for name in (
            "metric_weights",
            "segment_metrics",
            "compliance_metrics",
            "remediations",
            "violation_impact",
        ):
            object.__setattr__(self, name, _frozen(getattr(self, name)))

    def weight_for(self, metric_name: str) -> float:
        return self.metric_weights.get(metric_name, self.default_weight)

    def segment_has_metric(self, segment: PatientSegment, metric_name: str) -> bool:
        return metric_name in self.segment_metrics.get(segment, frozenset())

    def urgency_for(self, risk_score: float) -> HealthcareUrgency:
        for floor, urgency in self.urgency_cuts:
            if risk_score > floor:
                return urgency
        return HealthcareUrgency.ROUTINE

    def compliance_severity(self, percentage_change: float) -> AnomalySeverity:
        deviation = abs(percentage_change)
        for floor, severity in self.compliance_severity_cuts:
            if deviation > floor:
                return severity
        return AnomalySeverity.LOW


DEFAULT_HEALTHCARE_TABLES = HealthcareTables()


def _unique(items: Iterable) -> List:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


class HealthcarePatternMatcher:
    """
    Overlays healthcare semantics on metric snapshots and detected anomalies.
    """

    def __init__(self, tables: HealthcareTables = DEFAULT_HEALTHCARE_TABLES) -> None:
        self.tables = tables

    def detect_patient_safety_anomalies(
        self,
        metrics: Sequence[PerformanceMetric],
        segments: Sequence[PatientSegment],
    ) -> PatientSafetyAnalysis:
        """
        Score patient-safety risk from critical metrics.

        Each critical metric deviating by more than safety_z_threshold standard
        deviations contributes min(100, z * weight * 10); the maximum wins.
        Segments whose member metrics deviate are reported as affected.
        """
        tables = self.tables
        max_risk = 0.0
        affected: List[PatientSegment] = []

        for metric in metrics:
            if metric.metric_name not in tables.critical_metrics:
                continue

            z = z_score(metric.current_value, metric.mean, metric.std_deviation)
            if z <= tables.safety_z_threshold:
                continue

            for segment in segments:
                if segment not in affected and tables.segment_has_metric(segment, metric.metric_name):
                    affected.append(segment)

            weight = tables.weight_for(metric.metric_name)
            risk = min(tables.max_risk_score, z * weight * tables.risk_multiplier)
            max_risk = max(max_risk, risk)
            logger.debug("Safety risk %.1f from %s (z=%.2f)", risk, metric.metric_name, z)

        return PatientSafetyAnalysis(
            has_anomaly=max_risk > tables.safety_alert_score,
            urgency=tables.urgency_for(max_risk),
            affected_segments=affected,
            risk_score=max_risk,
        )

    def detect_compliance_violations(
        self,
        metrics: Sequence[PerformanceMetric],
        categories: Sequence[ComplianceCategory],
    ) -> ComplianceAnalysis:
        """
        Turn flagged metrics into compliance violations per category.

        Every category starts at base_compliance_score and loses the impact of
        each violation, floored at 0. The overall score is the mean category
        score, or the base score when no categories were requested.
        """
        tables = self.tables
        by_name: Dict[str, PerformanceMetric] = {}
        for metric in metrics:
            by_name.setdefault(metric.metric_name, metric)

        violations: List[ComplianceViolation] = []
        scores: List[float] = []

        for category in categories:
            category_score = tables.base_compliance_score
            for metric_name in tables.compliance_metrics.get(category, ()):
                metric = by_name.get(metric_name)
                if metric is None or not metric.is_anomaly:
                    continue

                severity = tables.compliance_severity(metric.percentage_change)
                violations.append(
                    ComplianceViolation(
                        category=category,
                        metric=metric_name,
                        severity=severity,
                        description=(
                            f"{category.value} violation detected: {metric_name} shows "
                            f"{metric.percentage_change:.2f}% deviation from baseline"
                        ),
                        remediation=tables.remediations.get(category, tables.default_remediation),
                    )
                )
                category_score -= tables.violation_impact[severity]

            scores.append(max(0.0, category_score))

        overall = sum(scores) / len(scores) if scores else tables.base_compliance_score
        return ComplianceAnalysis(violations=violations, overall_compliance_score=overall)

    def detect_patient_journey_anomalies(
        self,
        anomalies: Sequence[DetectedAnomaly],
        segments: Sequence[PatientSegment],
    ) -> PatientJourneyAnalysis:
        """Group detected anomalies by the patient segments their metrics belong to."""
        segment_metrics: Dict[PatientSegment, List[str]] = {}
        for segment in _unique(segments):
            segment_metrics[segment] = _unique(
                a.metric_name
                for a in anomalies
                if self.tables.segment_has_metric(segment, a.metric_name)
            )

        affected = [s for s, names in segment_metrics.items() if names]
        return PatientJourneyAnalysis(segment_metrics=segment_metrics, affected_segments=affected)
