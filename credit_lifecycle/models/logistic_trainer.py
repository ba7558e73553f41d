"""
Local Logistic Regression Trainer

Batch gradient descent on the log-loss, no regularization, no scaling.
"""

from typing import Any, Dict, Optional
import time

import numpy as np
from scipy.special import expit

from credit_lifecycle.config.schema import TrainingConfig
from credit_lifecycle.core.exceptions import ModelTrainingError
from credit_lifecycle.data.dataset import Dataset
from credit_lifecycle.models.base_trainer import Trainer
from credit_lifecycle.models.trained_model import METHOD_LOCAL, TrainedModel


ALGORITHM = "logistic_regression"


class LocalLogisticTrainer(Trainer):
    """
    Logistic regression fitted in-process.

    Features:
    - Explicit bias column, zero-initialized weights
    - Batch gradient descent with early stop on max |gradient| < tolerance
    - Non-convergence stops at max_iterations and is not an error
    - Importance = |w_j| / max |w| over non-bias weights
    """

    method = METHOD_LOCAL

    def __init__(self, config: Optional[TrainingConfig] = None, name: Optional[str] = None):
        super().__init__(config, name or "LocalLogisticTrainer")

    def train(
        self,
        train_set: Dataset,
        options: Optional[Dict[str, Any]] = None,
        validation_set: Optional[Dataset] = None
    ) -> TrainedModel:
        self._check_trainable(train_set)

        options = dict(options or {})
        params = self._resolve_params(options)

        requested = options.get('algorithm')
        if requested and requested != ALGORITHM:
            self.logger.warning(
                f"Algorithm '{requested}' is not available locally; using {ALGORITHM}"
            )

        X = train_set.to_matrix()
        if np.isnan(X).any():
            raise ModelTrainingError(
                "Training matrix contains missing values; prepare the dataset first",
                model_name=self.name,
                details={'missing_values': int(np.isnan(X).sum())},
            )
        y = train_set.labels.astype(float)

        self._start_execution()

        started = time.time()
        weights, iterations, converged, max_gradient = self.gradient_descent(
            X, y,
            learning_rate=params['learning_rate'],
            max_iterations=params['max_iterations'],
            tolerance=params['tolerance'],
        )
        elapsed = time.time() - started

        if converged:
            self.logger.info(f"Converged after {iterations} iterations")
        else:
            self.logger.warning(
                f"Did not converge within {iterations} iterations "
                f"(max |gradient| = {max_gradient:.2e}); keeping last weights"
            )

        feature_names = list(train_set.feature_names)
        coefficients = weights[1:]
        model = TrainedModel(
            algorithm=ALGORITHM,
            method=self.method,
            parameters={
                'weights': [float(w) for w in coefficients],
                'intercept': float(weights[0]),
            },
            feature_names=feature_names,
            feature_importance=self.feature_importance(feature_names, coefficients),
            training_options={**options, **params},
            training_metrics={
                'iterations': iterations,
                'converged': converged,
                'max_gradient': max_gradient,
                'log_loss': self._log_loss(X, y, weights),
                'training_samples': len(train_set),
                'training_seconds': elapsed,
            },
        )

        self._end_execution()
        return model

    def _resolve_params(self, options: Dict[str, Any]) -> Dict[str, Any]:
        """Per-call options override the configured defaults."""
        hyperparameters = options.get('hyperparameters') or {}

        def pick(key: str, default: Any) -> Any:
            if options.get(key) is not None:
                return options[key]
            if hyperparameters.get(key) is not None:
                return hyperparameters[key]
            return default

        return {
            'learning_rate': float(pick('learning_rate', self.config.learning_rate)),
            'max_iterations': int(pick('max_iterations', self.config.max_iterations)),
            'tolerance': float(pick('tolerance', self.config.tolerance)),
        }

    @staticmethod
    def gradient_descent(
        X: np.ndarray,
        y: np.ndarray,
        learning_rate: float,
        max_iterations: int,
        tolerance: float
    ):
        """
        Fit weights by batch gradient descent.

        Args:
            X: Feature matrix (n_samples, n_features), no bias column
            y: Labels in {0, 1}
            learning_rate: Step size
            max_iterations: Iteration cap
            tolerance: Early stop when max |gradient| falls below it

        Returns:
            Tuple of (weights with bias first, iterations run, converged, last max |gradient|)
        """
        n_samples = X.shape[0]
        design = np.hstack([np.ones((n_samples, 1)), X])
        weights = np.zeros(design.shape[1])

        iterations = 0
        converged = False
        max_gradient = float('inf')

        for _ in range(max_iterations):
            predictions = expit(design @ weights)
            gradient = design.T @ (predictions - y) / n_samples
            max_gradient = float(np.max(np.abs(gradient)))
            iterations += 1

            if max_gradient < tolerance:
                converged = True
                break

            weights -= learning_rate * gradient

        return weights, iterations, converged, max_gradient

    @staticmethod
    def feature_importance(feature_names, coefficients: np.ndarray) -> Dict[str, float]:
        magnitudes = np.abs(np.asarray(coefficients, dtype=float))
        peak = magnitudes.max() if magnitudes.size else 0.0
        if peak > 0:
            magnitudes = magnitudes / peak
        return {name: float(m) for name, m in zip(feature_names, magnitudes)}

    @staticmethod
    def _log_loss(X: np.ndarray, y: np.ndarray, weights: np.ndarray) -> float:
        design = np.hstack([np.ones((X.shape[0], 1)), X])
        p = np.clip(expit(design @ weights), 1e-15, 1 - 1e-15)
        return float(-np.mean(y * np.log(p) + (1 - y) * np.log(1 - p)))
