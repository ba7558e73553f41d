"""
External Trainer

Delegates training to a remote service over HTTP. The returned model blob
is treated as opaque; scoring goes back through the service's predict
endpoint (see scoring.RemoteScorer).
"""

from typing import Any, Dict, List, Optional

import requests

from credit_lifecycle.config.schema import TrainingConfig
from credit_lifecycle.core.exceptions import ModelTrainingError
from credit_lifecycle.data.dataset import Dataset
from credit_lifecycle.models.base_trainer import Trainer
from credit_lifecycle.models.trained_model import METHOD_EXTERNAL, TrainedModel


def serialize_examples(dataset: Optional[Dataset]) -> List[Dict[str, Any]]:
    """Rows as {'features': {...}, 'label': 0|1}."""
    if dataset is None:
        return []
    return [
        {'features': dict(example.features), 'label': example.label}
        for example in dataset.examples
    ]


def auth_headers(api_key: Optional[str]) -> Dict[str, str]:
    headers = {'Content-Type': 'application/json'}
    if api_key:
        headers['Authorization'] = f"Bearer {api_key}"
    return headers


class ExternalTrainer(Trainer):
    """
    Trainer backed by an external training service.

    The call carries a bounded timeout. Transport errors, timeouts,
    non-2xx responses and malformed bodies all fail the training run;
    there are no retries.
    """

    method = METHOD_EXTERNAL

    def __init__(self, config: Optional[TrainingConfig] = None, name: Optional[str] = None):
        super().__init__(config, name or "ExternalTrainer")
        self.external = self.config.external

    def validate(self) -> bool:
        return self.external.enabled

    def train(
        self,
        train_set: Dataset,
        options: Optional[Dict[str, Any]] = None,
        validation_set: Optional[Dataset] = None
    ) -> TrainedModel:
        self._check_trainable(train_set)

        if not self.validate():
            raise ModelTrainingError(
                "No external training endpoint configured",
                model_name=self.name,
            )

        self._start_execution()
        options = dict(options or {})
        algorithm = options.get('algorithm') or self.external.algorithm
        hyperparameters = {
            **self.external.hyperparameters,
            **(options.get('hyperparameters') or {}),
        }

        payload = {
            'train_data': serialize_examples(train_set),
            'validation_data': serialize_examples(validation_set),
            'feature_names': list(train_set.feature_names),
            'algorithm': algorithm,
            'hyperparameters': hyperparameters,
            'cross_validation_folds': self.external.cross_validation_folds,
        }

        self.logger.info(
            f"Submitting {len(train_set):,} samples to external trainer "
            f"({algorithm}, timeout={self.external.timeout_seconds}s)"
        )
        body = self._post(payload)

        if not isinstance(body, dict) or body.get('model') is None:
            raise ModelTrainingError(
                "External trainer response has no model",
                model_name=self.name,
                details={'keys': sorted(body.keys()) if isinstance(body, dict) else None},
            )

        importance = {
            name: max(0.0, float(value))
            for name, value in (body.get('feature_importance') or {}).items()
            if name in train_set.feature_names
        }

        model = TrainedModel(
            algorithm=algorithm,
            method=self.method,
            parameters={'model': body['model']},
            feature_names=train_set.feature_names,
            feature_importance=importance,
            training_options={**options, 'algorithm': algorithm, 'hyperparameters': hyperparameters},
            training_metrics={
                **(body.get('metrics') or {}),
                'training_samples': len(train_set),
            },
        )

        self._end_execution()
        return model

    def _post(self, payload: Dict[str, Any]) -> Any:
        try:
            response = requests.post(
                self.external.endpoint,
                json=payload,
                headers=auth_headers(self.external.api_key),
                timeout=self.external.timeout_seconds,
            )
            response.raise_for_status()
        except requests.Timeout as e:
            raise ModelTrainingError(
                f"External trainer timed out after {self.external.timeout_seconds}s",
                model_name=self.name,
                details={'endpoint': self.external.endpoint},
                cause=e,
            )
        except requests.RequestException as e:
            raise ModelTrainingError(
                "External trainer request failed",
                model_name=self.name,
                details={'endpoint': self.external.endpoint},
                cause=e,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ModelTrainingError(
                "External trainer returned invalid JSON",
                model_name=self.name,
                details={'status_code': response.status_code},
                cause=e,
            )
