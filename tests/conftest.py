"""
Pytest configuration and shared fixtures.

Provides detection settings, metric snapshot factories and sample observation
data for unit and integration tests.
"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

import pandas as pd

from caresentinel.anomaly.schema import PerformanceMetric, TimeSeriesPoint
from caresentinel.core.config import AnomalyDetectionConfig

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def detection_settings() -> AnomalyDetectionConfig:
    """
    Fixture providing deterministic detection settings.

    Uses an explicit seed so isolation scores are reproducible and keeps
    every other value at its default.
    """
    return AnomalyDetectionConfig(random_seed=1234)


@pytest.fixture
def history_factory() -> Callable[..., List[TimeSeriesPoint]]:
    """
    Fixture returning a builder for daily history points.

    The builder takes a sequence of values and returns TimeSeriesPoint objects
    one day apart, oldest first.
    """

    def _build(values: Sequence[float], start: datetime = BASE_TIME) -> List[TimeSeriesPoint]:
        return [
            TimeSeriesPoint(timestamp=start + timedelta(days=i), value=float(v))
            for i, v in enumerate(values)
        ]

    return _build


@pytest.fixture
def metric_factory(history_factory) -> Callable[..., PerformanceMetric]:
    """
    Fixture returning a builder for PerformanceMetric snapshots.

    Defaults describe a quiet metric (current value at the mean, no history);
    any field can be overridden by keyword.
    """

    def _build(
        metric_name: str = "response_time",
        current_value: float = 100.0,
        mean: float = 100.0,
        std_deviation: float = 10.0,
        history: Optional[Sequence[float]] = None,
        **overrides,
    ) -> PerformanceMetric:
        data = {
            "metric_name": metric_name,
            "current_value": current_value,
            "mean": mean,
            "std_deviation": std_deviation,
            "historical_values": history_factory(history or []),
        }
        data.update(overrides)
        return PerformanceMetric(**data)

    return _build


@pytest.fixture
def observation_frame() -> pd.DataFrame:
    """
    Fixture providing 120 days of long-format observations for three metrics.

    - steady_metric: clean weekly pattern
    - spiking_metric: same weekly pattern with a spike on the last day
    - flat_metric: constant value
    """
    rows = []
    for i in range(120):
        ts = BASE_TIME + timedelta(days=i)
        weekly = 10.0 + (i % 7)
        rows.append({"metric_name": "steady_metric", "timestamp": ts, "value": weekly})
        spike = 60.0 if i == 119 else weekly
        rows.append({"metric_name": "spiking_metric", "timestamp": ts, "value": spike})
        rows.append({"metric_name": "flat_metric", "timestamp": ts, "value": 50.0})
    return pd.DataFrame(rows)


def pytest_configure(config):
    """
    Pytest hook for custom configuration.

    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (deferred CI)"
    )
