"""Training attempt tracking."""

from credit_lifecycle.tracking.training_log import TrainingLog

__all__ = ["TrainingLog"]
