"""
Pipeline Module

The lifecycle service tying extraction, training, registry and monitoring
together.
"""

from credit_lifecycle.pipeline.lifecycle import (
    ModelLifecycleService,
    TrainingOutcome,
    PredictionResult,
    DeploymentResult,
)

__all__ = [
    "ModelLifecycleService",
    "TrainingOutcome",
    "PredictionResult",
    "DeploymentResult",
]
