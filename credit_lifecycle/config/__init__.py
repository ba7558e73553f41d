"""
Config Module

Pydantic-based configuration for the model lifecycle.
"""

from credit_lifecycle.config.schema import (
    LifecycleConfig,
    ExtractionConfig,
    PreparationConfig,
    SplittingConfig,
    ExternalTrainerConfig,
    TrainingConfig,
    EvaluationConfig,
    RegistryConfig,
    DriftConfig,
    TrackingConfig,
    JobsConfig,
    LoggingConfig,
)
from credit_lifecycle.config.loader import load_config, save_config

__all__ = [
    "LifecycleConfig",
    "ExtractionConfig",
    "PreparationConfig",
    "SplittingConfig",
    "ExternalTrainerConfig",
    "TrainingConfig",
    "EvaluationConfig",
    "RegistryConfig",
    "DriftConfig",
    "TrackingConfig",
    "JobsConfig",
    "LoggingConfig",
    "load_config",
    "save_config",
]
