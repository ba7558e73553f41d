"""
Tests for TrainingLog
"""

import pytest

from credit_lifecycle.tracking.training_log import TrainingLog


@pytest.fixture
def log(tmp_path):
    return TrainingLog(str(tmp_path / "outputs" / "training_log.csv"))


class TestTrainingLog:
    """Test suite for the CSV training log."""

    def test_empty_history(self, log):
        history = log.get_history()

        assert history.empty
        assert list(history.columns) == TrainingLog.COLUMNS

    def test_log_attempts(self, log):
        log.log_attempt("run1", "logistic_regression", {'accuracy': 0.9, 'auc_roc': 0.8}, 1.23,
                        model_id="model_1", version="v1", training_samples=800)
        log.log_attempt("run2", "logistic_regression", None, 0.4,
                        status="failed", reason="insufficient_data")

        history = log.get_history()

        assert len(history) == 2
        assert history.iloc[0]['model_id'] == "model_1"
        assert history.iloc[0]['duration_seconds'] == pytest.approx(1.2)
        assert history.iloc[1]['reason'] == "insufficient_data"

    def test_best_run_skips_failures(self, log):
        log.log_attempt("run1", "logistic_regression", {'auc_roc': 0.70}, 1.0)
        log.log_attempt("run2", "logistic_regression", {'auc_roc': 0.95}, 1.0,
                        status="failed", reason="performance_below_threshold")
        log.log_attempt("run3", "logistic_regression", {'auc_roc': 0.80}, 1.0)

        best = log.get_best_run("auc_roc")

        assert best['run_id'] == "run3"

    def test_best_run_without_history(self, log):
        with pytest.raises(ValueError, match="No training history"):
            log.get_best_run()

    def test_best_run_unknown_metric(self, log):
        log.log_attempt("run1", "logistic_regression", {'auc_roc': 0.7}, 1.0)

        with pytest.raises(ValueError, match="not found"):
            log.get_best_run("ks")

    def test_only_failures(self, log):
        log.log_attempt("run1", "logistic_regression", None, 1.0, status="failed")

        with pytest.raises(ValueError, match="No successful"):
            log.get_best_run()
