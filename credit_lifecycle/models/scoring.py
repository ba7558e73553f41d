"""
Model Scoring

Probability scoring for trained models. Local models are scored in-process
from their weights; external models are scored by the service that
trained them.
"""

from typing import Dict, Mapping, Optional, Sequence

import numpy as np
import requests
from scipy.special import expit

from credit_lifecycle.config.schema import ExternalTrainerConfig
from credit_lifecycle.core.exceptions import ScoringError
from credit_lifecycle.data.dataset import is_missing
from credit_lifecycle.models.external_trainer import auth_headers
from credit_lifecycle.models.trained_model import METHOD_EXTERNAL, TrainedModel, thaw


def feature_matrix(model: TrainedModel, rows: Sequence[Mapping[str, Optional[float]]]) -> np.ndarray:
    """Order rows by the model's schema. Missing features raise ScoringError."""
    matrix = np.empty((len(rows), len(model.feature_names)), dtype=float)
    for i, row in enumerate(rows):
        for j, name in enumerate(model.feature_names):
            value = row.get(name)
            if is_missing(value):
                raise ScoringError(
                    f"Feature '{name}' is missing",
                    model_name=model.algorithm,
                    details={'row': i},
                )
            try:
                matrix[i, j] = float(value)
            except (TypeError, ValueError) as e:
                raise ScoringError(
                    f"Feature '{name}' is not numeric: {value!r}",
                    model_name=model.algorithm,
                    details={'row': i},
                    cause=e,
                )
    return matrix


class LogisticScorer:
    """Scores local logistic regression models."""

    def predict_proba(
        self,
        model: TrainedModel,
        rows: Sequence[Mapping[str, Optional[float]]]
    ) -> np.ndarray:
        X = feature_matrix(model, rows)
        weights = np.asarray(model.parameters['weights'], dtype=float)
        intercept = float(model.parameters['intercept'])
        return expit(X @ weights + intercept)


class RemoteScorer:
    """Scores external models through the configured predict endpoint."""

    def __init__(self, config: ExternalTrainerConfig):
        self.config = config

    def predict_proba(
        self,
        model: TrainedModel,
        rows: Sequence[Mapping[str, Optional[float]]]
    ) -> np.ndarray:
        if not self.config.predict_endpoint:
            raise ScoringError(
                "No predict endpoint configured for external models",
                model_name=model.algorithm,
            )

        payload = {
            'model': thaw(model.parameters.get('model')),
            'feature_names': list(model.feature_names),
            'rows': [
                [float(v) for v in r] for r in feature_matrix(model, rows)
            ],
        }
        try:
            response = requests.post(
                self.config.predict_endpoint,
                json=payload,
                headers=auth_headers(self.config.api_key),
                timeout=self.config.timeout_seconds,
            )
            response.raise_for_status()
            raw = response.json()['probabilities']
            if not isinstance(raw, list):
                raise TypeError(f"'probabilities' must be a list, got {type(raw).__name__}")
            probabilities = np.asarray(raw, dtype=float)
        except requests.RequestException as e:
            raise ScoringError(
                "Remote scoring request failed",
                model_name=model.algorithm,
                cause=e,
            )
        except (ValueError, KeyError, TypeError) as e:
            raise ScoringError(
                "Remote scoring returned a malformed response",
                model_name=model.algorithm,
                cause=e,
            )

        if probabilities.shape != (len(rows),):
            raise ScoringError(
                f"Remote scoring returned {probabilities.size} scores for {len(rows)} rows",
                model_name=model.algorithm,
            )
        if not np.all(np.isfinite(probabilities)):
            raise ScoringError(
                "Remote scoring returned non-numeric scores",
                model_name=model.algorithm,
                details={'rows': np.flatnonzero(~np.isfinite(probabilities)).tolist()},
            )
        return np.clip(probabilities, 0.0, 1.0)


def get_scorer(model: TrainedModel, external_config: Optional[ExternalTrainerConfig] = None):
    """Pick the scorer matching how the model was trained."""
    if model.method == METHOD_EXTERNAL:
        return RemoteScorer(external_config or ExternalTrainerConfig())
    return LogisticScorer()


def predict_proba(
    model: TrainedModel,
    rows: Sequence[Mapping[str, Optional[float]]],
    external_config: Optional[ExternalTrainerConfig] = None
) -> np.ndarray:
    return get_scorer(model, external_config).predict_proba(model, rows)


def predict_one(
    model: TrainedModel,
    features: Mapping[str, Optional[float]],
    external_config: Optional[ExternalTrainerConfig] = None,
    threshold: float = 0.5
) -> Dict[str, float]:
    """Probability and class (1 iff probability > threshold) for one vector."""
    probability = float(predict_proba(model, [features], external_config)[0])
    return {'probability': probability, 'predicted_class': 1 if probability > threshold else 0}
