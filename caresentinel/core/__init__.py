"""
Core module: Configuration, logging, and exception handling.
"""

from .config import AnomalyDetectionConfig, Config, DetectionAlgorithm, config
from .exceptions import (
    AnomalyDetectionError,
    CareSentinelError,
    ConfigurationError,
    DataValidationError,
)
from .logging_config import setup_logging

__all__ = [
    "AnomalyDetectionConfig",
    "DetectionAlgorithm",
    "Config",
    "config",
    "setup_logging",
    "CareSentinelError",
    "AnomalyDetectionError",
    "DataValidationError",
    "ConfigurationError",
]
