"""
Model Registry

Owns every ModelRecord and enforces the lifecycle state machine:

    training -> trained -> deployed -> retired
    (trained records may also be retired directly)

At most one record is deployed at any time. All transitions run under a
single re-entrant lock; a deploy that fails to persist is rolled back in
memory before the error is raised.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional
import threading
import uuid

from credit_lifecycle.config.schema import RegistryConfig
from credit_lifecycle.core.exceptions import (
    DeploymentConflictError,
    ModelNotFoundError,
    RegistryError,
)
from credit_lifecycle.core.logger import LoggerMixin
from credit_lifecycle.evaluation.metrics import ClassificationMetrics
from credit_lifecycle.models.trained_model import TrainedModel
from credit_lifecycle.registry.model_record import ModelRecord, ModelStatus
from credit_lifecycle.registry.store import JsonModelStore


def _version_millis(version: str) -> int:
    try:
        return int(version.rsplit(".", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class ModelRegistry(LoggerMixin):
    """
    Thread-safe model registry.

    Features:
    - Unique ids and strictly increasing version tokens
    - Atomic deploy (demote current, promote target)
    - Optional JSON directory persistence
    - Usage and drift bookkeeping
    - Lookup helpers for deployment candidates and statistics
    """

    def __init__(
        self,
        config: Optional[RegistryConfig] = None,
        store: Optional[JsonModelStore] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the registry.

        Args:
            config: Registry configuration
            store: Persistence backend (defaults to a JSON store when
                ``storage_dir`` is configured, else in-memory only)
            clock: Time source, for tests
        """
        self.config = config or RegistryConfig()
        self.store = store
        if self.store is None and self.config.storage_dir:
            self.store = JsonModelStore(self.config.storage_dir)
        self._clock = clock or datetime.now

        self._lock = threading.RLock()
        self._records: Dict[str, ModelRecord] = {}
        self._last_version_ms = 0

        if self.store is not None:
            self._load()

    def _load(self) -> None:
        records = self.store.load_all()
        deployed = [r.model_id for r in records if r.is_deployed]
        if len(deployed) > 1:
            raise RegistryError(
                "Stored registry has more than one deployed model",
                details={'deployed': deployed},
            )
        for record in records:
            self._records[record.model_id] = record
            self._last_version_ms = max(self._last_version_ms, _version_millis(record.version))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _next_version(self) -> str:
        now_ms = int(self._clock().timestamp() * 1000)
        ms = max(now_ms, self._last_version_ms + 1)
        self._last_version_ms = ms
        stamp = datetime.fromtimestamp(ms / 1000)
        return f"v{stamp:%Y.%m.%d}.{ms:013d}"

    def _require(self, model_id: str) -> ModelRecord:
        record = self._records.get(model_id)
        if record is None:
            raise ModelNotFoundError(f"Unknown model {model_id}", model_id=model_id)
        return record

    def _persist(self, record: ModelRecord) -> None:
        if self.store is not None:
            self.store.save(record)

    def _commit(self, *records: ModelRecord) -> None:
        """Swap records in and persist them; restore the previous ones on failure."""
        previous = {r.model_id: self._records.get(r.model_id) for r in records}
        for record in records:
            self._records[record.model_id] = record
        try:
            for record in records:
                self._persist(record)
        except RegistryError:
            for model_id, old in previous.items():
                if old is None:
                    self._records.pop(model_id, None)
                else:
                    self._records[model_id] = old
            # re-persist whatever was already written
            for old in previous.values():
                if old is not None:
                    try:
                        self._persist(old)
                    except RegistryError as e:
                        self.logger.error(f"Rollback persist failed for {old.model_id}: {e}")
            raise

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def reserve(
        self,
        algorithm: str,
        options: Optional[Mapping[str, Any]] = None,
        description: str = ""
    ) -> ModelRecord:
        """Create a record in status 'training' for a run about to start."""
        with self._lock:
            now = self._clock()
            record = ModelRecord(
                model_id=f"model_{uuid.uuid4().hex}",
                version=self._next_version(),
                status=ModelStatus.TRAINING,
                algorithm=algorithm,
                created_at=now,
                training_options=dict(options or {}),
                description=description,
            )
            self._commit(record)
            self.logger.info(f"Reserved {record.model_id} ({record.version}) for {algorithm}")
            return record

    def mark_trained(
        self,
        model_id: str,
        model: TrainedModel,
        metrics: ClassificationMetrics,
        training_samples: int = 0,
        validation_results: Optional[Mapping[str, Any]] = None,
        drift_baseline: Optional[Mapping[str, Any]] = None,
        preprocessing: Optional[Mapping[str, Any]] = None
    ) -> ModelRecord:
        """training -> trained."""
        with self._lock:
            record = self._require(model_id)
            if record.status != ModelStatus.TRAINING:
                raise DeploymentConflictError(
                    f"Model {model_id} is not training",
                    model_id=model_id,
                    current_status=record.status.value,
                )
            updated = record.evolve(
                status=ModelStatus.TRAINED,
                model=model,
                metrics=metrics,
                training_options={**record.training_options, **model.training_options},
                training_samples=training_samples,
                validation_results=dict(validation_results or {}),
                drift_baseline=dict(drift_baseline or {}),
                preprocessing=dict(preprocessing or {}),
                trained_at=self._clock(),
            )
            self._commit(updated)
            self.logger.info(
                f"Model {model_id} trained (accuracy={metrics.accuracy:.4f}, auc={metrics.auc_roc:.4f})"
            )
            return updated

    def discard(self, model_id: str) -> None:
        """Remove a record whose training attempt failed."""
        with self._lock:
            record = self._require(model_id)
            if record.status != ModelStatus.TRAINING:
                raise DeploymentConflictError(
                    f"Only training records can be discarded; {model_id} is {record.status.value}",
                    model_id=model_id,
                    current_status=record.status.value,
                )
            self._remove(model_id)
            self.logger.info(f"Discarded failed training record {model_id}")

    def register(
        self,
        model: TrainedModel,
        metrics: ClassificationMetrics,
        training_samples: int = 0,
        validation_results: Optional[Mapping[str, Any]] = None,
        drift_baseline: Optional[Mapping[str, Any]] = None,
        preprocessing: Optional[Mapping[str, Any]] = None,
        description: str = ""
    ) -> ModelRecord:
        """Persist an already trained model as 'trained'."""
        with self._lock:
            record = self.reserve(model.algorithm, model.training_options, description)
            return self.mark_trained(
                record.model_id,
                model,
                metrics,
                training_samples=training_samples,
                validation_results=validation_results,
                drift_baseline=drift_baseline,
                preprocessing=preprocessing,
            )

    def deploy(self, model_id: str) -> ModelRecord:
        """
        Promote a trained model, demoting the current one to retired.

        Args:
            model_id: Model to deploy

        Returns:
            The deployed record

        Raises:
            ModelNotFoundError: Unknown id
            DeploymentConflictError: Model is not in 'trained' status
            RegistryError: Persisting failed (state rolled back)
        """
        with self._lock:
            target = self._require(model_id)
            if target.status != ModelStatus.TRAINED:
                raise DeploymentConflictError(
                    f"Model {model_id} cannot be deployed from status {target.status.value}",
                    model_id=model_id,
                    current_status=target.status.value,
                )

            now = self._clock()
            changes = []
            current = self.get_deployed()
            if current is not None:
                changes.append(current.evolve(status=ModelStatus.RETIRED, retired_at=now))
            promoted = target.evolve(status=ModelStatus.DEPLOYED, deployed_at=now, retired_at=None)
            changes.append(promoted)

            self._commit(*changes)

            if current is not None:
                self.logger.info(f"Retired previously deployed model {current.model_id}")
            self.logger.info(f"Deployed {model_id} ({promoted.version})")
            return promoted

    def retire(self, model_id: str) -> ModelRecord:
        """deployed|trained -> retired."""
        with self._lock:
            record = self._require(model_id)
            if record.status not in (ModelStatus.DEPLOYED, ModelStatus.TRAINED):
                raise DeploymentConflictError(
                    f"Model {model_id} cannot be retired from status {record.status.value}",
                    model_id=model_id,
                    current_status=record.status.value,
                )
            updated = record.evolve(status=ModelStatus.RETIRED, retired_at=self._clock())
            self._commit(updated)
            self.logger.info(f"Retired {model_id}")
            return updated

    def delete(self, model_id: str) -> None:
        """Remove a non-deployed record."""
        with self._lock:
            record = self._require(model_id)
            if record.is_deployed:
                raise DeploymentConflictError(
                    f"Cannot delete deployed model {model_id}; retire it first",
                    model_id=model_id,
                    current_status=record.status.value,
                )
            self._remove(model_id)
            self.logger.info(f"Deleted {model_id}")

    def _remove(self, model_id: str) -> None:
        if self.store is not None:
            self.store.delete(model_id)
        self._records.pop(model_id, None)

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def record_usage(self, model_id: str) -> ModelRecord:
        with self._lock:
            record = self._require(model_id)
            updated = record.evolve(usage_count=record.usage_count + 1, last_used_at=self._clock())
            self._commit(updated)
            return updated

    def update_drift_metrics(self, model_id: str, report: Any) -> ModelRecord:
        """Overwrite the record's drift metrics with the latest report."""
        with self._lock:
            record = self._require(model_id)
            drift = report.to_dict() if hasattr(report, 'to_dict') else dict(report)
            updated = record.evolve(drift_metrics=drift)
            self._commit(updated)
            return updated

    def archive_old_models(self, keep_days: int = 90) -> List[str]:
        """Retire trained (never deployed) records older than ``keep_days``."""
        with self._lock:
            cutoff = self._clock() - timedelta(days=keep_days)
            archived = []
            for record in list(self._records.values()):
                if record.status == ModelStatus.TRAINED and record.created_at < cutoff:
                    self.retire(record.model_id)
                    archived.append(record.model_id)
            if archived:
                self.logger.info(f"Archived {len(archived)} models older than {keep_days} days")
            return archived

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, model_id: str) -> ModelRecord:
        with self._lock:
            return self._require(model_id)

    def get_deployed(self) -> Optional[ModelRecord]:
        with self._lock:
            for record in self._records.values():
                if record.is_deployed:
                    return record
            return None

    def list_models(self, status: Optional[ModelStatus] = None) -> List[ModelRecord]:
        """Records newest first, optionally filtered by status."""
        with self._lock:
            records = list(self._records.values())
        if status is not None:
            status = ModelStatus(status)
            records = [r for r in records if r.status == status]
        return sorted(records, key=lambda r: r.version, reverse=True)

    def export(self, model_id: str) -> Dict[str, Any]:
        return self.get(model_id).to_dict()

    def find_deployment_candidates(self, min_accuracy: Optional[float] = None) -> List[ModelRecord]:
        """Trained records meeting the accuracy bar, best first."""
        threshold = self.config.performance_threshold if min_accuracy is None else min_accuracy
        candidates = [
            r for r in self.list_models(ModelStatus.TRAINED)
            if r.metrics is not None and r.metrics.accuracy >= threshold
        ]
        return sorted(candidates, key=lambda r: r.metrics.accuracy, reverse=True)

    def statistics(self) -> Dict[str, Any]:
        records = self.list_models()
        by_status = {status.value: 0 for status in ModelStatus}
        for record in records:
            by_status[record.status.value] += 1

        evaluated = [r for r in records if r.metrics is not None]
        deployed = self.get_deployed()
        best = max(evaluated, key=lambda r: r.quality_score, default=None)

        return {
            'total_models': len(records),
            'by_status': by_status,
            'deployed_model_id': deployed.model_id if deployed else None,
            'deployed_version': deployed.version if deployed else None,
            'average_accuracy': (
                sum(r.metrics.accuracy for r in evaluated) / len(evaluated) if evaluated else None
            ),
            'best_model_id': best.model_id if best else None,
            'total_predictions': sum(r.usage_count for r in records),
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
