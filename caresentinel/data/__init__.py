"""
Data module: turning raw metric observations into detection-ready snapshots.

Pipeline:

    Raw observations (DataFrame / (timestamp, value) pairs)
        ↓
    Snapshot building (caresentinel/data/snapshots.py) → PerformanceMetric
        ↓
    Ready for AnomalyDetectionService.detect_anomalies
"""

from caresentinel.data.snapshots import (
    build_metric_snapshot,
    classify_trend,
    snapshots_from_frame,
)

__all__ = [
    "build_metric_snapshot",
    "classify_trend",
    "snapshots_from_frame",
]
