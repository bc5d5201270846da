"""
Custom exceptions for CareSentinel.

These exceptions provide clear error semantics across the system.
Use them to distinguish between bad input data, detection failures, and configuration errors.
"""


class CareSentinelError(Exception):
    """Base exception for all library errors."""
    pass


class AnomalyDetectionError(CareSentinelError):
    """Base exception for anomaly detection failures."""
    pass


class DataValidationError(CareSentinelError):
    """Raised when input metrics fail validation at the library boundary."""
    pass


class ConfigurationError(CareSentinelError):
    """Raised when configuration is invalid or missing."""
    pass
