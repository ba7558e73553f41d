"""
Model Record

Registry entry wrapping a trained model with its lifecycle state. Records
are immutable snapshots; the registry replaces them on every transition.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from credit_lifecycle.data.records import parse_datetime
from credit_lifecycle.evaluation.metrics import ClassificationMetrics
from credit_lifecycle.models.trained_model import TrainedModel, freeze, thaw


class ModelStatus(str, Enum):
    TRAINING = "training"
    TRAINED = "trained"
    DEPLOYED = "deployed"
    RETIRED = "retired"


QUALITY_WEIGHTS = {
    'accuracy': 0.3,
    'precision': 0.2,
    'recall': 0.2,
    'f1_score': 0.2,
    'auc_roc': 0.1,
}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class ModelRecord:
    """
    A versioned model owned by the registry.

    Attributes:
        model_id: Unique id
        version: Sortable version token, never reused
        status: Lifecycle status
        algorithm: Requested algorithm
        model: Trained model (None while training)
        metrics: Validation metrics (None while training)
        drift_metrics: Latest drift report as a mapping (None until first check)
        drift_baseline: Per-feature training distributions for drift checks
    """
    model_id: str
    version: str
    status: ModelStatus
    algorithm: str
    created_at: datetime
    model: Optional[TrainedModel] = None
    metrics: Optional[ClassificationMetrics] = None
    training_options: Mapping[str, Any] = field(default_factory=dict)
    training_samples: int = 0
    validation_results: Mapping[str, Any] = field(default_factory=dict)
    drift_baseline: Mapping[str, Any] = field(default_factory=dict)
    preprocessing: Mapping[str, Any] = field(default_factory=dict)
    drift_metrics: Optional[Mapping[str, Any]] = None
    trained_at: Optional[datetime] = None
    deployed_at: Optional[datetime] = None
    retired_at: Optional[datetime] = None
    usage_count: int = 0
    last_used_at: Optional[datetime] = None
    description: str = ""

    def __post_init__(self):
        object.__setattr__(self, "status", ModelStatus(self.status))
        object.__setattr__(self, "training_options", freeze(self.training_options))
        object.__setattr__(self, "validation_results", freeze(self.validation_results))
        object.__setattr__(self, "drift_baseline", freeze(self.drift_baseline))
        object.__setattr__(self, "preprocessing", freeze(self.preprocessing))
        if self.drift_metrics is not None:
            object.__setattr__(self, "drift_metrics", freeze(self.drift_metrics))

    def evolve(self, **changes) -> "ModelRecord":
        return replace(self, **changes)

    @property
    def is_deployed(self) -> bool:
        return self.status == ModelStatus.DEPLOYED

    @property
    def is_active(self) -> bool:
        """Only the deployed model serves predictions."""
        return self.is_deployed

    @property
    def drift_detected(self) -> bool:
        return bool(self.drift_metrics and self.drift_metrics.get('drift_detected'))

    def days_in_production(self, now: Optional[datetime] = None) -> int:
        if self.deployed_at is None:
            return 0
        end = self.retired_at if self.retired_at and not self.is_deployed else (now or datetime.now())
        return max(0, (end - self.deployed_at).days)

    def age_days(self, now: Optional[datetime] = None) -> int:
        return max(0, ((now or datetime.now()) - self.created_at).days)

    @property
    def quality_score(self) -> float:
        """Weighted blend of the validation metrics, in [0, 1]."""
        if self.metrics is None:
            return 0.0
        return sum(getattr(self.metrics, name) * w for name, w in QUALITY_WEIGHTS.items())

    def top_features(self, n: int = 10) -> List[Tuple[str, float]]:
        return self.model.top_features(n) if self.model else []

    def needs_retraining(
        self,
        max_days_in_production: int = 90,
        min_accuracy: float = 0.8,
        now: Optional[datetime] = None
    ) -> bool:
        if self.days_in_production(now) > max_days_in_production:
            return True
        if self.metrics is not None and self.metrics.accuracy < min_accuracy:
            return True
        return self.drift_detected

    def performance_summary(self) -> Dict[str, Any]:
        metrics = self.metrics
        return {
            'accuracy': metrics.accuracy if metrics else None,
            'precision': metrics.precision if metrics else None,
            'recall': metrics.recall if metrics else None,
            'f1_score': metrics.f1_score if metrics else None,
            'auc_roc': metrics.auc_roc if metrics else None,
            'quality_score': round(self.quality_score, 4),
            'usage_count': self.usage_count,
            'days_in_production': self.days_in_production(),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Export document with everything needed for audit."""
        return {
            'model_id': self.model_id,
            'version': self.version,
            'status': self.status.value,
            'algorithm': self.algorithm,
            'description': self.description,
            'created_at': _iso(self.created_at),
            'trained_at': _iso(self.trained_at),
            'deployed_at': _iso(self.deployed_at),
            'retired_at': _iso(self.retired_at),
            'usage_count': self.usage_count,
            'last_used_at': _iso(self.last_used_at),
            'training_samples': self.training_samples,
            'training_options': thaw(self.training_options),
            'metrics': self.metrics.to_dict() if self.metrics else None,
            'validation_results': thaw(self.validation_results),
            'feature_importance': dict(self.model.feature_importance) if self.model else {},
            'model': self.model.to_dict() if self.model else None,
            'drift_baseline': thaw(self.drift_baseline),
            'preprocessing': thaw(self.preprocessing),
            'drift_metrics': thaw(self.drift_metrics) if self.drift_metrics is not None else None,
            'performance_summary': self.performance_summary(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelRecord":
        return cls(
            model_id=data['model_id'],
            version=data['version'],
            status=ModelStatus(data['status']),
            algorithm=data.get('algorithm', ''),
            description=data.get('description', ''),
            created_at=parse_datetime(data['created_at']),
            trained_at=parse_datetime(data.get('trained_at')),
            deployed_at=parse_datetime(data.get('deployed_at')),
            retired_at=parse_datetime(data.get('retired_at')),
            usage_count=int(data.get('usage_count', 0)),
            last_used_at=parse_datetime(data.get('last_used_at')),
            training_samples=int(data.get('training_samples', 0)),
            training_options=data.get('training_options') or {},
            metrics=ClassificationMetrics.from_dict(data['metrics']) if data.get('metrics') else None,
            validation_results=data.get('validation_results') or {},
            model=TrainedModel.from_dict(data['model']) if data.get('model') else None,
            drift_baseline=data.get('drift_baseline') or {},
            preprocessing=data.get('preprocessing') or {},
            drift_metrics=data.get('drift_metrics'),
        )
