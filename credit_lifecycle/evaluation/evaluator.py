"""
Model Evaluator

Scores a trained model on the validation set and turns weak metrics into
improvement recommendations.
"""

from typing import List, Optional

from credit_lifecycle.config.schema import EvaluationConfig, ExternalTrainerConfig
from credit_lifecycle.core.base import PipelineComponent
from credit_lifecycle.core.exceptions import EvaluationError, ScoringError
from credit_lifecycle.data.dataset import Dataset
from credit_lifecycle.evaluation.metrics import ClassificationMetrics, compute_metrics
from credit_lifecycle.models.scoring import predict_proba
from credit_lifecycle.models.trained_model import TrainedModel


def improvement_recommendations(metrics: ClassificationMetrics) -> List[str]:
    """Suggested next steps for a model that missed its targets."""
    recommendations = []

    if metrics.accuracy < 0.7:
        recommendations.extend(['increase_training_data', 'feature_engineering'])

    if metrics.precision < 0.8:
        recommendations.extend(['adjust_classification_threshold', 'balance_training_data'])

    if metrics.recall < 0.7:
        recommendations.extend(['improve_positive_class_detection', 'add_behavioral_features'])

    return recommendations


class Evaluator(PipelineComponent):
    """
    Evaluates a trained model on held-out data.

    Computes:
    - Confusion counts at the classification threshold
    - Accuracy, precision, recall, F1
    - Rank-based AUC and Gini
    """

    def __init__(
        self,
        config: Optional[EvaluationConfig] = None,
        external_config: Optional[ExternalTrainerConfig] = None,
        name: Optional[str] = None
    ):
        super().__init__(config or EvaluationConfig(), name or "Evaluator")
        self.external_config = external_config

    def run(self, model: TrainedModel, validation_set: Dataset) -> ClassificationMetrics:
        """Run evaluation."""
        return self.evaluate(model, validation_set)

    def evaluate(self, model: TrainedModel, validation_set: Dataset) -> ClassificationMetrics:
        """
        Evaluate a model.

        Args:
            model: Trained model
            validation_set: Validation dataset

        Returns:
            ClassificationMetrics

        Raises:
            EvaluationError: If the validation set is empty or scoring fails
        """
        if len(validation_set) == 0:
            raise EvaluationError("Validation set is empty")

        try:
            scores = predict_proba(
                model,
                [example.features for example in validation_set.examples],
                self.external_config,
            )
        except ScoringError as e:
            raise EvaluationError(
                "Could not score validation set",
                details={'samples': len(validation_set)},
                cause=e,
            )

        metrics = compute_metrics(
            validation_set.labels,
            scores,
            threshold=self.config.classification_threshold,
        )

        self.logger.info(
            f"Evaluated {metrics.total_samples:,} samples: "
            f"accuracy={metrics.accuracy:.4f}, precision={metrics.precision:.4f}, "
            f"recall={metrics.recall:.4f}, f1={metrics.f1_score:.4f}, "
            f"auc={metrics.auc_roc:.4f}"
        )
        if metrics.positive_samples == 0 or metrics.negative_samples == 0:
            self.logger.warning(
                "Validation set has a single class; AUC reported at chance level"
            )

        return metrics

    @staticmethod
    def improvement_recommendations(metrics: ClassificationMetrics) -> List[str]:
        return improvement_recommendations(metrics)
