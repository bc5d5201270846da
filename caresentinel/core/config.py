"""
Application configuration for the CareSentinel anomaly engine.

Provides environment-aware settings with conservative defaults. All detection
thresholds are configurable to avoid hard-coded "magic numbers".
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DetectionAlgorithm(str, Enum):
	"""Closed set of detection strategies the engine can dispatch to."""

	STATISTICAL = "statistical"
	ML_BASED = "ml_based"
	ISOLATION_FOREST = "isolation_forest"
	HYBRID = "hybrid"


class SeverityThresholds(BaseModel):
	"""
	Cut points mapping a deviation score to a severity level.

	Scores are compared with strict ">" so a score sitting exactly on a cut
	point falls into the lower level.
	"""

	critical: float = Field(4.0, ge=0.0, description="Score above which severity is critical")
	high: float = Field(3.0, ge=0.0, description="Score above which severity is high")
	medium: float = Field(2.0, ge=0.0, description="Score above which severity is medium")


class IsolationForestConfig(BaseModel):
	"""
	Configuration for the partition-based isolation score.

	Notes:
	- n_trees: number of random split paths averaged per metric.
	- max_depth: path length cap, also the normalizer of the score.
	"""

	n_trees: int = Field(10, ge=1)
	max_depth: int = Field(10, ge=1)


class AnomalyDetectionConfig(BaseModel):
	"""
	Detection engine configuration.

	Rationale:
	- sensitivity multiplies every detection threshold; lower values flag more.
	- minimum_data_points gates decomposition so seasonal estimates are stable.
	- confidence_threshold drops weak signals before ranking.
	"""

	algorithm: DetectionAlgorithm = DetectionAlgorithm.ML_BASED
	sensitivity: float = Field(0.7, gt=0.0, le=1.0)
	training_period_days: int = Field(
		30, ge=1, description="Informational only: history span the caller is expected to supply; not read by detection"
	)
	minimum_data_points: int = Field(100, ge=1)
	seasonal_adjustment: bool = True
	seasonal_period: int = Field(7, ge=1, description="Weekly pattern by default")
	confidence_threshold: float = Field(0.8, ge=0.0, le=1.0)

	detect_patient_journey_anomalies: bool = True
	detect_compliance_deviations: bool = True
	detect_safety_concerns: bool = True

	z_score_threshold: float = Field(3.0, ge=0.0)
	iqr_multiplier: float = Field(1.5, ge=0.0)
	residual_threshold: float = Field(2.5, ge=0.0)
	isolation_threshold: float = Field(0.6, ge=0.0, le=1.0)

	trend_change_threshold: float = Field(
		0.30, ge=0.0, description="Relative shift between trend windows (0.30 = 30%)"
	)
	trend_min_points: int = Field(10, ge=2)
	trend_window: int = Field(5, ge=1)

	# A 50% trend shift and a 0.8 isolation score both land on the "high" cut point.
	trend_severity_scale: float = Field(
		6.0, gt=0.0, description="Multiplier bringing a relative trend shift onto the severity scale"
	)
	isolation_severity_scale: float = Field(
		3.75, gt=0.0, description="Multiplier bringing an isolation score onto the severity scale"
	)

	max_recommendations: int = Field(5, ge=0)
	random_seed: Optional[int] = Field(None, description="Seed for the isolation RNG")

	severity: SeverityThresholds = SeverityThresholds()
	isolation: IsolationForestConfig = IsolationForestConfig()


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.

	Nested values use a double underscore, e.g. CARESENTINEL_ANOMALY__SENSITIVITY=0.9.
	"""

	model_config = SettingsConfigDict(
		env_prefix="CARESENTINEL_",
		env_file=".env",
		env_nested_delimiter="__",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	log_to_file: bool = Field(False, description="Also write rotating log files under logs_dir")
	anomaly: AnomalyDetectionConfig = AnomalyDetectionConfig()


config = Config()
