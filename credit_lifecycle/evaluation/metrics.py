"""
Classification Metrics

Binary classification metrics for the validation step. All ratios are
defined as 0.0 when their denominator is 0.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Tuple

import numpy as np
from sklearn.metrics import confusion_matrix


@dataclass(frozen=True)
class ClassificationMetrics:
    """Immutable evaluation result."""
    accuracy: float
    precision: float
    recall: float
    f1_score: float
    auc_roc: float
    gini: float
    true_positives: int
    true_negatives: int
    false_positives: int
    false_negatives: int
    total_samples: int
    positive_samples: int
    negative_samples: int
    threshold: float = 0.5

    @property
    def confusion_matrix(self) -> Dict[str, int]:
        return {
            'tp': self.true_positives,
            'tn': self.true_negatives,
            'fp': self.false_positives,
            'fn': self.false_negatives,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['confusion_matrix'] = self.confusion_matrix
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClassificationMetrics":
        fields = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in data.items() if k in fields})


def safe_divide(numerator: float, denominator: float) -> float:
    return float(numerator) / float(denominator) if denominator else 0.0


def confusion_counts(y_true: np.ndarray, y_pred: np.ndarray) -> Tuple[int, int, int, int]:
    """Returns (tp, tn, fp, fn)."""
    if len(y_true) == 0:
        return 0, 0, 0, 0
    tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()
    return int(tp), int(tn), int(fp), int(fn)


def rank_auc(y_true: np.ndarray, y_score: np.ndarray) -> float:
    """
    Rank-based AUC.

    Scores are sorted descending (stable, so ties keep input order); each
    negative adds the number of positives already seen. The sum is divided
    by positives * negatives. Returns 0.5 when either class is empty.

    Args:
        y_true: Binary labels
        y_score: Predicted probabilities

    Returns:
        AUC in [0, 1]
    """
    y_true = np.asarray(y_true, dtype=int)
    y_score = np.asarray(y_score, dtype=float)

    positives = int(y_true.sum())
    negatives = len(y_true) - positives
    if positives == 0 or negatives == 0:
        return 0.5

    order = np.argsort(-y_score, kind='stable')
    ranked = y_true[order]

    # positives seen before each negative
    seen = np.cumsum(ranked)
    auc = float(seen[ranked == 0].sum())
    return auc / (positives * negatives)


def compute_metrics(
    y_true: np.ndarray,
    y_score: np.ndarray,
    threshold: float = 0.5
) -> ClassificationMetrics:
    """
    Compute all classification metrics.

    Args:
        y_true: Binary labels
        y_score: Predicted probabilities
        threshold: Class 1 iff probability > threshold

    Returns:
        ClassificationMetrics
    """
    y_true = np.asarray(y_true, dtype=int)
    y_score = np.asarray(y_score, dtype=float)
    y_pred = (y_score > threshold).astype(int)

    tp, tn, fp, fn = confusion_counts(y_true, y_pred)
    total = len(y_true)

    precision = safe_divide(tp, tp + fp)
    recall = safe_divide(tp, tp + fn)
    f1 = safe_divide(2 * precision * recall, precision + recall)
    auc = rank_auc(y_true, y_score)

    return ClassificationMetrics(
        accuracy=safe_divide(tp + tn, total),
        precision=precision,
        recall=recall,
        f1_score=f1,
        auc_roc=auc,
        gini=2 * auc - 1,
        true_positives=tp,
        true_negatives=tn,
        false_positives=fp,
        false_negatives=fn,
        total_samples=total,
        positive_samples=int(y_true.sum()),
        negative_samples=total - int(y_true.sum()),
        threshold=threshold,
    )
