"""
Scoring, severity mapping and ranking for anomalies.

Maps deviation scores to severity levels with configurable thresholds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from caresentinel.core.config import SeverityThresholds

from .schema import AnomalySeverity, DetectedAnomaly

SEVERITY_ORDER = (
    AnomalySeverity.LOW,
    AnomalySeverity.MEDIUM,
    AnomalySeverity.HIGH,
    AnomalySeverity.CRITICAL,
)


@dataclass
class SeverityMapper:
    """
    Maps a deviation score to a severity level.

    The same cut points apply to every detector; detectors whose native score
    is not in standard-deviation units scale it before calling in.
    """

    thresholds: SeverityThresholds

    def severity(self, score: float) -> AnomalySeverity:
        s = abs(score)
        if s > self.thresholds.critical:
            return AnomalySeverity.CRITICAL
        if s > self.thresholds.high:
            return AnomalySeverity.HIGH
        if s > self.thresholds.medium:
            return AnomalySeverity.MEDIUM
        return AnomalySeverity.LOW


def severity_rank(severity: AnomalySeverity) -> int:
    return SEVERITY_ORDER.index(severity)


def clamp_confidence(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def rank_anomalies(anomalies: Iterable[DetectedAnomaly]) -> List[DetectedAnomaly]:
    """
    Order anomalies by severity (critical first), then by confidence descending.

    The sort is stable, so equal entries keep detection order.
    """

    return sorted(
        anomalies,
        key=lambda a: (severity_rank(a.severity), a.confidence),
        reverse=True,
    )
