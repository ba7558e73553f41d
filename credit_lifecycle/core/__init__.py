"""
Credit Lifecycle - Core Package

This package provides the core infrastructure for the lifecycle components:
- Base class for all components
- Logging utilities
- Custom exceptions
"""

from credit_lifecycle.core.base import PipelineComponent
from credit_lifecycle.core.logger import (
    get_logger,
    setup_logging,
    LoggerMixin,
    PipelineLogger,
)
from credit_lifecycle.core.exceptions import (
    LifecycleError,
    ConfigurationError,
    DataError,
    InsufficientDataError,
    FeatureExtractionError,
    ModelTrainingError,
    EvaluationError,
    RegistryError,
    ModelNotFoundError,
    DeploymentConflictError,
    DriftCheckError,
    ScoringError,
)

__all__ = [
    # Base classes
    "PipelineComponent",
    # Logging
    "get_logger",
    "setup_logging",
    "LoggerMixin",
    "PipelineLogger",
    # Exceptions
    "LifecycleError",
    "ConfigurationError",
    "DataError",
    "InsufficientDataError",
    "FeatureExtractionError",
    "ModelTrainingError",
    "EvaluationError",
    "RegistryError",
    "ModelNotFoundError",
    "DeploymentConflictError",
    "DriftCheckError",
    "ScoringError",
]
