"""
Trained Model

Immutable result of a training run. Parameters are frozen on construction
so one instance can serve concurrent predictions.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Tuple


METHOD_LOCAL = "local_algorithm"
METHOD_EXTERNAL = "external_api"


def freeze(value: Any) -> Any:
    """Recursively turn dicts into read-only mappings and lists into tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of freeze, producing JSON-serializable dicts and lists."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class TrainedModel:
    """
    A fitted model.

    Attributes:
        algorithm: Algorithm identifier (e.g. 'logistic_regression')
        method: 'local_algorithm' or 'external_api'
        parameters: Parameter blob; weights + intercept for local models,
            opaque for external ones
        feature_names: Feature schema the model was trained on
        feature_importance: Feature name -> non-negative weight
        training_options: Options used for the run
        training_metrics: Optimizer diagnostics (iterations, converged, ...)
    """
    algorithm: str
    method: str
    parameters: Mapping[str, Any]
    feature_names: Tuple[str, ...]
    feature_importance: Mapping[str, float] = field(default_factory=dict)
    training_options: Mapping[str, Any] = field(default_factory=dict)
    training_metrics: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "parameters", freeze(self.parameters))
        object.__setattr__(self, "feature_names", tuple(self.feature_names))
        object.__setattr__(self, "feature_importance", MappingProxyType(
            {k: float(v) for k, v in self.feature_importance.items()}
        ))
        object.__setattr__(self, "training_options", freeze(self.training_options))
        object.__setattr__(self, "training_metrics", freeze(self.training_metrics))

    @property
    def is_local(self) -> bool:
        return self.method == METHOD_LOCAL

    def top_features(self, n: int = 10) -> List[Tuple[str, float]]:
        """Most important features, highest first."""
        ranked = sorted(self.feature_importance.items(), key=lambda kv: kv[1], reverse=True)
        return ranked[:n]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'algorithm': self.algorithm,
            'method': self.method,
            'parameters': thaw(self.parameters),
            'feature_names': list(self.feature_names),
            'feature_importance': dict(self.feature_importance),
            'training_options': thaw(self.training_options),
            'training_metrics': thaw(self.training_metrics),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrainedModel":
        return cls(
            algorithm=data['algorithm'],
            method=data['method'],
            parameters=data.get('parameters', {}),
            feature_names=tuple(data.get('feature_names', ())),
            feature_importance=data.get('feature_importance', {}),
            training_options=data.get('training_options', {}),
            training_metrics=data.get('training_metrics', {}),
        )
