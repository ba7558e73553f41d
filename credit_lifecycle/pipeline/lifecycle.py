"""
Model Lifecycle Service

Entry point for the surrounding loan platform. Runs the training pipeline

    extract -> prepare -> split -> train -> evaluate -> register

as a foreground call or a background job, serves predictions from the
deployed model and exposes deployment, export and drift monitoring.
Failures come back as structured results, never as raw exceptions.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple
import json
import time
import uuid

from credit_lifecycle.config.schema import LifecycleConfig
from credit_lifecycle.core.exceptions import (
    DataError,
    DeploymentConflictError,
    EvaluationError,
    InsufficientDataError,
    LifecycleError,
    ModelNotFoundError,
    ModelTrainingError,
    RegistryError,
)
from credit_lifecycle.core.logger import LoggerMixin, PipelineLogger
from credit_lifecycle.data.data_preparer import DataPreparer
from credit_lifecycle.data.data_splitter import DatasetSplitter
from credit_lifecycle.data.dataset import is_missing
from credit_lifecycle.data.records import LoanRecord
from credit_lifecycle.evaluation.evaluator import Evaluator
from credit_lifecycle.evaluation.metrics import ClassificationMetrics
from credit_lifecycle.features.feature_extractor import FeatureExtractor
from credit_lifecycle.models.scoring import predict_one
from credit_lifecycle.models.trainer_factory import create_trainer
from credit_lifecycle.monitoring.drift_monitor import AlertSink, DriftMonitor, DriftReport, RecentData
from credit_lifecycle.registry.model_registry import ModelRegistry
from credit_lifecycle.tracking.training_log import TrainingLog


TRAINER_OPTION_KEYS = ('algorithm', 'hyperparameters', 'learning_rate', 'max_iterations', 'tolerance')


@dataclass(frozen=True)
class TrainingOutcome:
    """Result of one training attempt."""
    success: bool
    model_id: Optional[str] = None
    version: Optional[str] = None
    metrics: Optional[ClassificationMetrics] = None
    training_samples: int = 0
    validation_samples: int = 0
    features_used: Tuple[str, ...] = ()
    training_time: float = 0.0
    reason: Optional[str] = None
    error: Optional[str] = None
    required_accuracy: Optional[float] = None
    recommendations: Tuple[str, ...] = ()
    deployment_ready: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['metrics'] = self.metrics.to_dict() if self.metrics else None
        data['features_used'] = list(self.features_used)
        data['recommendations'] = list(self.recommendations)
        return data


@dataclass(frozen=True)
class PredictionResult:
    """Score for one feature vector, or the reason there is none."""
    success: bool
    probability: Optional[float] = None
    predicted_class: Optional[int] = None
    model_id: Optional[str] = None
    version: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DeploymentResult:
    """Result of a deploy or retire request."""
    success: bool
    model_id: str
    version: Optional[str] = None
    status: Optional[str] = None
    timestamp: Optional[datetime] = None
    previous_model_id: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def deployed_at(self) -> Optional[datetime]:
        return self.timestamp if self.status == 'deployed' else None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat() if self.timestamp else None
        return data


class ModelLifecycleService(LoggerMixin):
    """
    Credit scoring model lifecycle.

    Features:
    - Training pipeline with a performance gate
    - Background training jobs
    - Deployment with at most one active model
    - Scoring against the deployed model
    - Drift checks, realtime performance, retraining advice and health reports
    - Optional CSV log of training attempts
    """

    def __init__(
        self,
        config: Optional[LifecycleConfig] = None,
        registry: Optional[ModelRegistry] = None,
        alert_sink: Optional[AlertSink] = None,
        training_log: Optional[TrainingLog] = None
    ):
        """
        Initialize the service.

        Args:
            config: Full lifecycle configuration
            registry: Model registry (built from config when omitted)
            alert_sink: Receiver for critical drift alerts
            training_log: Attempt log (built from config when tracking is enabled)
        """
        self.config = config or LifecycleConfig()

        self.extractor = FeatureExtractor(self.config.extraction)
        self.preparer = DataPreparer(self.config.preparation)
        self.splitter = DatasetSplitter(self.config.splitting)
        self.trainer = create_trainer(self.config.training)
        self.evaluator = Evaluator(self.config.evaluation, self.config.training.external)
        self.registry = registry or ModelRegistry(self.config.registry)
        self.drift_monitor = DriftMonitor(
            self.config.drift,
            registry=self.registry,
            alert_sink=alert_sink,
            registry_config=self.config.registry,
        )

        if training_log is None and self.config.tracking.enabled:
            training_log = TrainingLog(self.config.tracking.log_path)
        self.training_log = training_log

        self._executor = ThreadPoolExecutor(
            max_workers=self.config.jobs.max_workers,
            thread_name_prefix="training",
        )

        self.logger.info(
            f"Lifecycle service ready (trainer={self.trainer.name}, "
            f"performance_threshold={self.config.registry.performance_threshold})"
        )

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def submit_training(
        self,
        loans: Iterable[LoanRecord],
        options: Optional[Dict[str, Any]] = None
    ) -> "Future[TrainingOutcome]":
        """Run train_new_model on the background executor."""
        loans = list(loans)
        return self._executor.submit(self.train_new_model, loans, options)

    def train_new_model(
        self,
        loans: Iterable[LoanRecord],
        options: Optional[Dict[str, Any]] = None
    ) -> TrainingOutcome:
        """
        Train, evaluate and register a new model.

        Args:
            loans: Historical loans with their customers
            options: algorithm, max_samples, start_date, end_date,
                hyperparameters, learning_rate, max_iterations, tolerance,
                validation_ratio, description

        Returns:
            TrainingOutcome; on failure ``reason`` is one of
            insufficient_data, performance_below_threshold, training_error
        """
        options = dict(options or {})
        run_id = uuid.uuid4().hex[:8]
        plog = PipelineLogger(self.__class__.__name__)
        plog.set_context(run_id=run_id)
        started = time.time()

        record = None
        split = None
        metrics = None
        algorithm = options.get('algorithm') or (
            self.config.training.external.algorithm
            if self.config.training.external.enabled else 'logistic_regression'
        )

        try:
            plog.step_start("Extraction")
            raw = self.extractor.extract_dataset(
                loans,
                start_date=options.get('start_date'),
                end_date=options.get('end_date'),
                max_samples=options.get('max_samples'),
            )
            plog.data_stats("extracted", len(raw), len(raw.feature_names))

            required = self.config.training.min_samples
            if len(raw) < required:
                raise InsufficientDataError(
                    f"Insufficient training data: {len(raw)} samples (minimum: {required})",
                    available=len(raw),
                    required=required,
                    stage="extraction",
                )

            plog.step_start("Preparation")
            cleaned = self.preparer.prepare(raw)
            plog.data_stats("cleaned", len(cleaned), len(cleaned.feature_names))

            plog.step_start("Splitting")
            split = self.splitter.split(cleaned, options.get('validation_ratio'))
            if len(split.train) == 0 or len(split.validation) == 0:
                raise InsufficientDataError(
                    "Not enough cleaned samples to train and validate",
                    available=len(cleaned),
                    required=required,
                    stage="splitting",
                )

            record = self.registry.reserve(algorithm, options, options.get('description', ''))
            plog.set_context(run_id=run_id, model_id=record.model_id)

            plog.step_start("Training")
            trainer_options = {k: options[k] for k in TRAINER_OPTION_KEYS if k in options}
            model = self.trainer.train(split.train, trainer_options, split.validation)

            plog.step_start("Evaluation")
            metrics = self.evaluator.evaluate(model, split.validation)
            plog.metric("accuracy", f"{metrics.accuracy:.4f}")
            plog.metric("auc_roc", f"{metrics.auc_roc:.4f}")

            threshold = self.config.registry.performance_threshold
            if metrics.accuracy < threshold:
                self.registry.discard(record.model_id)
                plog.warning(
                    f"Accuracy {metrics.accuracy:.4f} below threshold {threshold}; model not kept"
                )
                return self._finish(TrainingOutcome(
                    success=False,
                    reason='performance_below_threshold',
                    metrics=metrics,
                    training_samples=len(split.train),
                    validation_samples=len(split.validation),
                    features_used=split.train.feature_names,
                    training_time=time.time() - started,
                    required_accuracy=threshold,
                    recommendations=tuple(self.evaluator.improvement_recommendations(metrics)),
                ), run_id, algorithm)

            record = self.registry.mark_trained(
                record.model_id,
                model,
                metrics,
                training_samples=len(split.train),
                validation_results={
                    'validation_samples': len(split.validation),
                    'confusion_matrix': metrics.confusion_matrix,
                    'cleaning': {
                        k: cleaned.metadata.get(k)
                        for k in ('original_samples', 'after_critical_filter',
                                  'cleaned_samples', 'cleaning_ratio')
                    },
                    'imputation_strategies': dict(cleaned.metadata.get('imputation_strategies', {})),
                },
                drift_baseline=self.drift_monitor.build_baseline(split.train),
                preprocessing={'fill_values': self.preparer.fill_values(split.train)},
            )

            plog.step_complete("Training pipeline", time.time() - started)
            return self._finish(TrainingOutcome(
                success=True,
                model_id=record.model_id,
                version=record.version,
                metrics=metrics,
                training_samples=len(split.train),
                validation_samples=len(split.validation),
                features_used=model.feature_names,
                training_time=time.time() - started,
                deployment_ready=True,
            ), run_id, algorithm, method=model.method)

        except InsufficientDataError as e:
            plog.warning(str(e))
            return self._finish(TrainingOutcome(
                success=False,
                reason='insufficient_data',
                error=e.message,
                training_samples=e.available,
                training_time=time.time() - started,
                recommendations=('increase_training_data',),
            ), run_id, algorithm)

        except (DataError, ModelTrainingError, EvaluationError, RegistryError) as e:
            plog.error(f"Training failed: {e}")
            self._discard_quietly(record)
            return self._finish(TrainingOutcome(
                success=False,
                reason='training_error',
                error=str(e),
                metrics=metrics,
                training_samples=len(split.train) if split else 0,
                training_time=time.time() - started,
            ), run_id, algorithm)

        except Exception as e:
            plog.exception(f"Unexpected training failure: {e}")
            self._discard_quietly(record)
            return self._finish(TrainingOutcome(
                success=False,
                reason='training_error',
                error=str(e),
                training_time=time.time() - started,
            ), run_id, algorithm)

    def _discard_quietly(self, record) -> None:
        if record is None:
            return
        try:
            self.registry.discard(record.model_id)
        except RegistryError as e:
            self.logger.error(f"Could not discard failed record {record.model_id}: {e}")

    def _finish(
        self,
        outcome: TrainingOutcome,
        run_id: str,
        algorithm: str,
        method: str = ""
    ) -> TrainingOutcome:
        if self.training_log is not None:
            try:
                self.training_log.log_attempt(
                    run_id=run_id,
                    algorithm=algorithm,
                    metrics=outcome.metrics.to_dict() if outcome.metrics else None,
                    duration=outcome.training_time,
                    status='success' if outcome.success else 'failed',
                    reason=outcome.reason or '',
                    model_id=outcome.model_id,
                    version=outcome.version,
                    training_samples=outcome.training_samples,
                    method=method,
                )
            except (OSError, ValueError) as e:
                self.logger.error(f"Failed to log training attempt {run_id}: {e}")
        return outcome

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def predict(self, features: Mapping[str, Optional[float]]) -> PredictionResult:
        """
        Score a feature vector with the deployed model.

        Missing values are filled with the fill table stored at training.
        """
        record = self.registry.get_deployed()
        if record is None or record.model is None:
            return PredictionResult(success=False, reason='no_deployed_model')

        fill_values = record.preprocessing.get('fill_values', {})
        filled = {
            name: fill_values.get(name) if is_missing(features.get(name)) else features.get(name)
            for name in record.model.feature_names
        }

        started = time.perf_counter()
        try:
            scored = predict_one(
                record.model,
                filled,
                self.config.training.external,
                threshold=self.config.evaluation.classification_threshold,
            )
        except LifecycleError as e:
            self.logger.error(f"Scoring with {record.model_id} failed: {e}")
            self.drift_monitor.record_prediction(
                record.model_id, False, (time.perf_counter() - started) * 1000
            )
            return PredictionResult(
                success=False,
                model_id=record.model_id,
                version=record.version,
                reason='scoring_failed',
                error=str(e),
            )
        self.drift_monitor.record_prediction(
            record.model_id,
            True,
            (time.perf_counter() - started) * 1000,
            probability=scored['probability'],
        )

        try:
            self.registry.record_usage(record.model_id)
        except RegistryError as e:
            self.logger.warning(f"Could not record usage for {record.model_id}: {e}")

        return PredictionResult(
            success=True,
            probability=scored['probability'],
            predicted_class=scored['predicted_class'],
            model_id=record.model_id,
            version=record.version,
        )

    def predict_loan(self, loan: LoanRecord) -> PredictionResult:
        """Extract features for a loan application and score them."""
        try:
            features = self.extractor.extract_features(loan)
        except DataError as e:
            return PredictionResult(success=False, reason='invalid_record', error=str(e))
        return self.predict(features)

    # ------------------------------------------------------------------
    # Deployment
    # ------------------------------------------------------------------

    def deploy_model(self, model_id: str) -> DeploymentResult:
        previous = self.registry.get_deployed()
        try:
            record = self.registry.deploy(model_id)
        except ModelNotFoundError as e:
            return DeploymentResult(False, model_id, reason='model_not_found', error=e.message)
        except DeploymentConflictError as e:
            return DeploymentResult(
                False, model_id, status=e.current_status, reason='invalid_status', error=e.message
            )
        except RegistryError as e:
            return DeploymentResult(False, model_id, reason='persistence_failed', error=str(e))

        return DeploymentResult(
            success=True,
            model_id=record.model_id,
            version=record.version,
            status=record.status.value,
            timestamp=record.deployed_at,
            previous_model_id=previous.model_id if previous and previous.model_id != model_id else None,
        )

    def retire_model(self, model_id: str) -> DeploymentResult:
        try:
            record = self.registry.retire(model_id)
        except ModelNotFoundError as e:
            return DeploymentResult(False, model_id, reason='model_not_found', error=e.message)
        except DeploymentConflictError as e:
            return DeploymentResult(
                False, model_id, status=e.current_status, reason='invalid_status', error=e.message
            )
        except RegistryError as e:
            return DeploymentResult(False, model_id, reason='persistence_failed', error=str(e))

        return DeploymentResult(
            success=True,
            model_id=record.model_id,
            version=record.version,
            status=record.status.value,
            timestamp=record.retired_at,
        )

    def export_model(self, model_id: str, path: Optional[str] = None) -> Dict[str, Any]:
        """
        Export a model record as a JSON document.

        Raises:
            ModelNotFoundError: Unknown id
        """
        document = self.registry.export(model_id)
        document['exported_at'] = datetime.now().isoformat()
        if path:
            out = Path(path)
            out.parent.mkdir(parents=True, exist_ok=True)
            with open(out, 'w') as f:
                json.dump(document, f, indent=2, default=str)
            self.logger.info(f"Exported {model_id} to {out}")
        return document

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def check_drift(self, recent: RecentData) -> DriftReport:
        return self.drift_monitor.check_drift(self.registry.get_deployed(), recent)

    def should_retrain(self, new_samples: int = 0) -> Dict[str, Any]:
        record = self.registry.get_deployed()
        if record is None:
            return {'should_retrain': False, 'reason': 'no_active_model', 'recommendation': 'deploy_model'}
        return self.drift_monitor.should_retrain(record, new_samples)

    def analyze_realtime_performance(self) -> Dict[str, Any]:
        """Success rate, latency and score distribution of recent predictions."""
        return self.drift_monitor.analyze_realtime_performance(self.registry.get_deployed())

    def health_report(self) -> Dict[str, Any]:
        return self.drift_monitor.health_report(self.registry.get_deployed())

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        self.drift_monitor.shutdown(wait=wait)

    def __enter__(self) -> "ModelLifecycleService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
