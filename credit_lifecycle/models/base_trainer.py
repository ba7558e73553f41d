"""
Base Trainer

Abstract base class for all training strategies.
"""

from abc import abstractmethod
from typing import Any, Dict, Optional

from credit_lifecycle.config.schema import TrainingConfig
from credit_lifecycle.core.base import PipelineComponent
from credit_lifecycle.core.exceptions import ModelTrainingError
from credit_lifecycle.data.dataset import Dataset
from credit_lifecycle.models.trained_model import TrainedModel


class Trainer(PipelineComponent):
    """
    Abstract base class for trainers.

    Both the local and the delegated trainer implement the same contract:
    ``train(train_set, options) -> TrainedModel``. Which one is used is
    decided once, when the trainer is created from configuration.
    """

    method: str = ""

    def __init__(self, config: Optional[TrainingConfig] = None, name: Optional[str] = None):
        super().__init__(config or TrainingConfig(), name)

    def run(self, train_set: Dataset, options: Optional[Dict[str, Any]] = None) -> TrainedModel:
        """Run training."""
        return self.train(train_set, options)

    @abstractmethod
    def train(
        self,
        train_set: Dataset,
        options: Optional[Dict[str, Any]] = None,
        validation_set: Optional[Dataset] = None
    ) -> TrainedModel:
        """
        Fit a model.

        Args:
            train_set: Cleaned training dataset
            options: Per-call options (algorithm, hyperparameters, ...)
            validation_set: Optional validation dataset

        Returns:
            TrainedModel

        Raises:
            ModelTrainingError: If training fails
        """
        pass

    def _check_trainable(self, train_set: Dataset) -> None:
        if len(train_set) == 0:
            raise ModelTrainingError(
                "Cannot train on an empty dataset",
                model_name=self.name,
            )
