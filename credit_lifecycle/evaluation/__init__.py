"""
Evaluation Module

Classification metrics and the validation-set evaluator.
"""

from credit_lifecycle.evaluation.metrics import (
    ClassificationMetrics,
    compute_metrics,
    confusion_counts,
    rank_auc,
)
from credit_lifecycle.evaluation.evaluator import Evaluator, improvement_recommendations

__all__ = [
    "ClassificationMetrics",
    "compute_metrics",
    "confusion_counts",
    "rank_auc",
    "Evaluator",
    "improvement_recommendations",
]
