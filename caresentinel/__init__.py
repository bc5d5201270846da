"""
CareSentinel: statistical anomaly detection for healthcare operational metrics.
"""

from caresentinel.anomaly import (
    AnomalyDetectionResult,
    AnomalyDetectionService,
    DetectionContext,
    PerformanceMetric,
)
from caresentinel.core import AnomalyDetectionConfig, DetectionAlgorithm

__version__ = "0.1.0"

__all__ = [
    "AnomalyDetectionService",
    "AnomalyDetectionConfig",
    "AnomalyDetectionResult",
    "DetectionAlgorithm",
    "DetectionContext",
    "PerformanceMetric",
]
