"""
Models Module

Trained model container, training strategies and scoring.
"""

from credit_lifecycle.models.trained_model import (
    TrainedModel,
    METHOD_LOCAL,
    METHOD_EXTERNAL,
)
from credit_lifecycle.models.base_trainer import Trainer
from credit_lifecycle.models.logistic_trainer import LocalLogisticTrainer
from credit_lifecycle.models.external_trainer import ExternalTrainer
from credit_lifecycle.models.scoring import (
    LogisticScorer,
    RemoteScorer,
    get_scorer,
    predict_proba,
    predict_one,
)
from credit_lifecycle.models.trainer_factory import TrainerFactory, create_trainer

__all__ = [
    "TrainedModel",
    "METHOD_LOCAL",
    "METHOD_EXTERNAL",
    "Trainer",
    "LocalLogisticTrainer",
    "ExternalTrainer",
    "LogisticScorer",
    "RemoteScorer",
    "get_scorer",
    "predict_proba",
    "predict_one",
    "TrainerFactory",
    "create_trainer",
]
