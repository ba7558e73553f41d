"""
Tests for Classification Metrics

Tests confusion counts, ratio metrics, rank AUC and Gini.
"""

import numpy as np
import pytest

from credit_lifecycle.evaluation.metrics import (
    ClassificationMetrics,
    compute_metrics,
    confusion_counts,
    rank_auc,
    safe_divide,
)


class TestRankAUC:
    """Test suite for rank-based AUC."""

    def test_perfect_ranking(self):
        y_true = np.array([0, 0, 0, 1, 1, 1])
        y_score = np.array([0.1, 0.2, 0.3, 0.7, 0.8, 0.9])

        assert rank_auc(y_true, y_score) == pytest.approx(1.0)

    def test_inverted_ranking(self):
        y_true = np.array([1, 1, 0, 0])
        y_score = np.array([0.1, 0.2, 0.8, 0.9])

        assert rank_auc(y_true, y_score) == pytest.approx(0.0)

    def test_partial_ranking(self):
        # Descending: 0.9(1), 0.8(0), 0.7(1), 0.6(0) -> 1 + 2 = 3 of 4 pairs
        y_true = np.array([1, 0, 1, 0])
        y_score = np.array([0.9, 0.8, 0.7, 0.6])

        assert rank_auc(y_true, y_score) == pytest.approx(0.75)

    @pytest.mark.parametrize("label", [0, 1])
    def test_single_class_is_half(self, label):
        y_true = np.full(20, label)
        y_score = np.linspace(0, 1, 20)

        assert rank_auc(y_true, y_score) == 0.5

    def test_empty(self):
        assert rank_auc(np.array([]), np.array([])) == 0.5

    def test_matches_sklearn_without_ties(self):
        from sklearn.metrics import roc_auc_score

        np.random.seed(42)
        y_true = np.random.choice([0, 1], 500, p=[0.7, 0.3])
        y_score = np.random.rand(500) + 0.3 * y_true

        assert rank_auc(y_true, y_score) == pytest.approx(roc_auc_score(y_true, y_score))

    def test_in_unit_interval(self):
        np.random.seed(7)
        for _ in range(20):
            y_true = np.random.choice([0, 1], 50)
            y_score = np.round(np.random.rand(50), 1)
            assert 0.0 <= rank_auc(y_true, y_score) <= 1.0


class TestComputeMetrics:
    """Test suite for compute_metrics."""

    def test_confusion_counts(self):
        y_true = np.array([1, 1, 0, 0, 1])
        y_pred = np.array([1, 0, 0, 1, 1])

        assert confusion_counts(y_true, y_pred) == (2, 1, 1, 1)

    def test_known_values(self):
        y_true = np.array([1, 1, 1, 0, 0, 0, 0, 1])
        y_score = np.array([0.9, 0.8, 0.4, 0.3, 0.6, 0.2, 0.1, 0.7])

        metrics = compute_metrics(y_true, y_score)

        # tp=3 (0.9, 0.8, 0.7), fn=1 (0.4), fp=1 (0.6), tn=3
        assert metrics.true_positives == 3
        assert metrics.false_negatives == 1
        assert metrics.false_positives == 1
        assert metrics.true_negatives == 3
        assert metrics.accuracy == pytest.approx(0.75)
        assert metrics.precision == pytest.approx(0.75)
        assert metrics.recall == pytest.approx(0.75)
        assert metrics.f1_score == pytest.approx(0.75)
        assert metrics.gini == pytest.approx(2 * metrics.auc_roc - 1)

    def test_threshold_is_strict(self):
        metrics = compute_metrics(np.array([1, 0]), np.array([0.5, 0.5]))

        assert metrics.true_positives == 0
        assert metrics.false_positives == 0

    def test_no_positives(self):
        """Validation set with no positive examples."""
        y_true = np.zeros(10, dtype=int)
        y_score = np.linspace(0.1, 0.9, 10)

        metrics = compute_metrics(y_true, y_score)

        assert metrics.auc_roc == 0.5
        assert metrics.recall == 0.0
        assert metrics.f1_score == 0.0
        assert 0.0 <= metrics.precision <= 1.0
        assert metrics.positive_samples == 0

    def test_no_predicted_positives(self):
        metrics = compute_metrics(np.array([1, 0, 1]), np.array([0.1, 0.2, 0.3]))

        assert metrics.precision == 0.0
        assert metrics.recall == 0.0
        assert metrics.f1_score == 0.0

    def test_empty(self):
        metrics = compute_metrics(np.array([]), np.array([]))

        assert metrics.accuracy == 0.0
        assert metrics.total_samples == 0

    @pytest.mark.parametrize("seed", range(5))
    def test_all_ratios_bounded(self, seed):
        rng = np.random.RandomState(seed)
        y_true = rng.choice([0, 1], 30)
        y_score = rng.rand(30)

        metrics = compute_metrics(y_true, y_score)

        for name in ('accuracy', 'precision', 'recall', 'f1_score', 'auc_roc'):
            value = getattr(metrics, name)
            assert 0.0 <= value <= 1.0
            assert not np.isnan(value)

    def test_safe_divide(self):
        assert safe_divide(1, 0) == 0.0
        assert safe_divide(1, 4) == 0.25


class TestClassificationMetrics:
    """Immutable metrics value."""

    def test_frozen(self):
        metrics = compute_metrics(np.array([1, 0]), np.array([0.9, 0.1]))

        with pytest.raises(Exception):
            metrics.accuracy = 0.1

    def test_dict_round_trip(self):
        metrics = compute_metrics(np.array([1, 0, 1]), np.array([0.9, 0.1, 0.4]))

        data = metrics.to_dict()
        assert data['confusion_matrix'] == {'tp': 1, 'tn': 1, 'fp': 0, 'fn': 1}
        assert ClassificationMetrics.from_dict(data) == metrics
