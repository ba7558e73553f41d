"""
Trainer Factory

Selects the training strategy once, from configuration.
"""

from typing import Dict, List, Type

from credit_lifecycle.config.schema import TrainingConfig
from credit_lifecycle.models.base_trainer import Trainer
from credit_lifecycle.models.external_trainer import ExternalTrainer
from credit_lifecycle.models.logistic_trainer import LocalLogisticTrainer


class TrainerFactory:
    """
    Factory for creating trainer instances.

    An external endpoint in the config selects the delegated trainer;
    otherwise the local logistic regression is used.
    """

    _trainers: Dict[str, Type[Trainer]] = {
        'local': LocalLogisticTrainer,
        'external': ExternalTrainer,
    }

    @classmethod
    def create(cls, config: TrainingConfig) -> Trainer:
        """
        Create the trainer for a configuration.

        Args:
            config: Training configuration

        Returns:
            Trainer instance
        """
        kind = 'external' if config.external.enabled else 'local'
        return cls._trainers[kind](config)

    @classmethod
    def list_trainers(cls) -> List[str]:
        return list(cls._trainers.keys())


def create_trainer(config: TrainingConfig) -> Trainer:
    return TrainerFactory.create(config)
