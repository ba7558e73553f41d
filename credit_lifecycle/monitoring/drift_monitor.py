"""
Drift Monitor

Population Stability Index monitoring of the deployed model.

The training set's per-feature quantile bins are stored on the model
record as its baseline. A drift check bins recent feature vectors with the
same cut points and averages the per-feature PSI into one score:

    PSI = Σ (Actual% - Expected%) * ln(Actual% / Expected%)

Checks never raise: missing baselines or data become a "cannot_assess"
report and unexpected failures a "monitoring_error" report.
"""

from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from credit_lifecycle.config.schema import DriftConfig, RegistryConfig
from credit_lifecycle.core.base import PipelineComponent
from credit_lifecycle.core.exceptions import DriftCheckError
from credit_lifecycle.data.dataset import Dataset
from credit_lifecycle.monitoring.performance import (
    PredictionEvent,
    PredictionLog,
    performance_status,
    score_distribution,
)
from credit_lifecycle.registry.model_record import ModelRecord


STATUS_NO_ACTIVE_MODEL = "no_active_model"
STATUS_CANNOT_ASSESS = "cannot_assess"
STATUS_MONITORING_ERROR = "monitoring_error"
STATUS_DISABLED = "disabled"
STATUS_NO_RECENT_ACTIVITY = "no_recent_activity"

EPSILON = 1e-6

RecentData = Union[Dataset, pd.DataFrame, Sequence[Mapping[str, Optional[float]]]]
AlertSink = Callable[["DriftReport"], None]


@dataclass(frozen=True)
class DriftReport:
    """Result of one drift check."""
    model_id: Optional[str]
    model_version: Optional[str]
    drift_score: float
    status: str
    recommendation: str
    drift_detected: bool = False
    affected_features: Tuple[str, ...] = ()
    feature_scores: Mapping[str, float] = field(default_factory=dict)
    sample_size: int = 0
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    error: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "affected_features", tuple(self.affected_features))
        object.__setattr__(self, "feature_scores", dict(self.feature_scores))

    @property
    def is_assessed(self) -> bool:
        return self.status not in (
            STATUS_NO_ACTIVE_MODEL, STATUS_CANNOT_ASSESS, STATUS_MONITORING_ERROR, STATUS_DISABLED
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['affected_features'] = list(self.affected_features)
        return data


def _to_frame(recent: RecentData) -> pd.DataFrame:
    if isinstance(recent, pd.DataFrame):
        return recent
    if isinstance(recent, Dataset):
        return recent.to_frame()
    return pd.DataFrame([dict(row) for row in recent])


def bin_cut_points(values: np.ndarray, n_bins: int) -> List[float]:
    """Interior quantile cut points (outer bins are open-ended)."""
    edges = np.unique(np.percentile(values, np.linspace(0, 100, n_bins + 1)))
    return [float(e) for e in edges[1:-1]]


def bin_distribution(values: np.ndarray, cut_points: Sequence[float]) -> np.ndarray:
    n_bins = len(cut_points) + 1
    if len(cut_points) == 0:
        # constant feature: a single open bin
        binned = np.zeros(len(values), dtype=int)
    else:
        binned = np.digitize(values, cut_points)
    counts = np.bincount(binned, minlength=n_bins)[:n_bins]
    total = len(values)
    return counts / total if total > 0 else counts.astype(float)


def population_stability_index(expected: np.ndarray, actual: np.ndarray) -> float:
    expected = np.maximum(np.asarray(expected, dtype=float), EPSILON)
    actual = np.maximum(np.asarray(actual, dtype=float), EPSILON)
    expected = expected / expected.sum()
    actual = actual / actual.sum()
    return float(np.sum((actual - expected) * np.log(actual / expected)))


def build_baseline(
    train_set: RecentData,
    n_bins: int = 10,
    min_samples: int = 50,
    features: Optional[Sequence[str]] = None
) -> Dict[str, Dict[str, Any]]:
    """
    Capture the training distribution of each feature.

    Args:
        train_set: Training data
        n_bins: Number of quantile bins
        min_samples: Features with fewer present values are not tracked
        features: Features to track (None = all columns except the label)

    Returns:
        Feature -> {'cut_points', 'distribution', 'sample_size'}
    """
    df = _to_frame(train_set)
    if features is None:
        features = [c for c in df.columns if c != 'label']

    baseline = {}
    for feature in features:
        if feature not in df.columns:
            continue
        values = pd.to_numeric(df[feature], errors='coerce').dropna().to_numpy(dtype=float)
        if len(values) < min_samples:
            continue
        cut_points = bin_cut_points(values, n_bins)
        baseline[feature] = {
            'cut_points': cut_points,
            'distribution': [float(p) for p in bin_distribution(values, cut_points)],
            'sample_size': int(len(values)),
        }
    return baseline


HEALTH_ACTIONS = {
    'model_age': 'retrain_model',
    'usage': 'review_usage',
    'performance': 'retrain_model',
    'data_drift': 'investigate_drift',
    'feature_importance': 'review_features',
}


def health_recommendations(checks: Mapping[str, Mapping[str, Any]]) -> List[Dict[str, str]]:
    """One recommendation per failing health check, critical ones first."""
    recommendations = []
    for name, check in checks.items():
        if check['status'] == 'ok':
            continue
        recommendations.append({
            'check': name,
            'priority': 'high' if check['status'] == 'critical' else 'medium',
            'action': HEALTH_ACTIONS.get(name, 'investigate'),
            'description': check.get('message', ''),
        })
    return sorted(recommendations, key=lambda r: r['priority'] != 'high')


class DriftMonitor(PipelineComponent):
    """
    Drift monitoring and retraining advice for the deployed model.

    Features:
    - PSI baseline captured from the training set
    - Threshold classification into critical / warning / monitoring / stable
    - Latest report written back to the registry (overwrite)
    - Best-effort critical alerts on a background executor
    - Realtime performance of recent predictions
    - Retraining scoring and model health report
    """

    def __init__(
        self,
        config: Optional[DriftConfig] = None,
        registry=None,
        alert_sink: Optional[AlertSink] = None,
        executor: Optional[Executor] = None,
        registry_config: Optional[RegistryConfig] = None,
        name: Optional[str] = None
    ):
        """
        Initialize the monitor.

        Args:
            config: Drift configuration
            registry: ModelRegistry receiving the latest report (optional)
            alert_sink: Callable invoked with critical reports
            executor: Executor for alerts (a single worker thread by default)
            registry_config: Thresholds used by the health report
            name: Optional component name
        """
        super().__init__(config or DriftConfig(), name or "DriftMonitor")
        self.registry = registry
        self.alert_sink = alert_sink
        self.registry_config = registry_config or RegistryConfig()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="drift-alert")
        self.predictions = PredictionLog(self.config.performance_window)

    def run(self, record: Optional[ModelRecord], recent: RecentData) -> DriftReport:
        """Run a drift check."""
        return self.check_drift(record, recent)

    def build_baseline(self, train_set: RecentData) -> Dict[str, Dict[str, Any]]:
        return build_baseline(train_set, self.config.n_bins, self.config.min_baseline_samples)

    def classify(self, score: float) -> Tuple[str, str]:
        """Map a drift score to (status, recommendation)."""
        if score > self.config.critical_threshold:
            return "critical", "immediate_retraining"
        if score > self.config.warning_threshold:
            return "warning", "schedule_retraining"
        if score > self.config.monitoring_threshold:
            return "monitoring", "monitor_closely"
        return "stable", "continue_monitoring"

    def report_for_score(
        self,
        record: ModelRecord,
        score: float,
        feature_scores: Optional[Mapping[str, float]] = None,
        sample_size: int = 0
    ) -> DriftReport:
        """Build a classified report for an already computed score."""
        status, recommendation = self.classify(score)
        feature_scores = dict(feature_scores or {})
        return DriftReport(
            model_id=record.model_id,
            model_version=record.version,
            drift_score=float(score),
            status=status,
            recommendation=recommendation,
            drift_detected=score > self.config.warning_threshold,
            affected_features=tuple(sorted(
                (f for f, s in feature_scores.items() if s > self.config.warning_threshold),
                key=lambda f: feature_scores[f],
                reverse=True,
            )),
            feature_scores=feature_scores,
            sample_size=sample_size,
        )

    def compute_scores(self, record: ModelRecord, recent: RecentData) -> Tuple[float, Dict[str, float], int]:
        """
        Per-feature PSI and their mean.

        Raises:
            DriftCheckError: No baseline, or not enough recent data
        """
        baseline = record.drift_baseline
        if not baseline:
            raise DriftCheckError(
                f"Model {record.model_id} has no drift baseline",
                details={'model_id': record.model_id},
            )

        df = _to_frame(recent)
        if len(df) < self.config.min_recent_samples:
            raise DriftCheckError(
                f"Need at least {self.config.min_recent_samples} recent samples, got {len(df)}",
                details={'model_id': record.model_id, 'samples': len(df)},
            )

        scores = {}
        for feature, reference in baseline.items():
            if feature not in df.columns:
                continue
            values = pd.to_numeric(df[feature], errors='coerce').dropna().to_numpy(dtype=float)
            if len(values) == 0:
                continue
            actual = bin_distribution(values, list(reference['cut_points']))
            scores[feature] = population_stability_index(list(reference['distribution']), actual)

        if not scores:
            raise DriftCheckError(
                "Recent data shares no tracked features with the baseline",
                details={'model_id': record.model_id},
            )

        return float(np.mean(list(scores.values()))), scores, len(df)

    def check_drift(self, record: Optional[ModelRecord], recent: RecentData) -> DriftReport:
        """
        Check the deployed model for drift.

        Args:
            record: Deployed model record (None when nothing is deployed)
            recent: Recent feature vectors seen in production

        Returns:
            DriftReport (never raises)
        """
        if record is None:
            return DriftReport(
                model_id=None,
                model_version=None,
                drift_score=0.0,
                status=STATUS_NO_ACTIVE_MODEL,
                recommendation="deploy_model",
            )

        if not self.config.enabled:
            return DriftReport(
                model_id=record.model_id,
                model_version=record.version,
                drift_score=0.0,
                status=STATUS_DISABLED,
                recommendation="continue_monitoring",
            )

        try:
            score, feature_scores, sample_size = self.compute_scores(record, recent)
        except DriftCheckError as e:
            self.logger.warning(f"Cannot assess drift for {record.model_id}: {e.message}")
            return DriftReport(
                model_id=record.model_id,
                model_version=record.version,
                drift_score=0.0,
                status=STATUS_CANNOT_ASSESS,
                recommendation="collect_more_data",
                error=e.message,
            )
        except Exception as e:
            self.logger.exception(f"Drift check failed for {record.model_id}")
            return DriftReport(
                model_id=record.model_id,
                model_version=record.version,
                drift_score=0.0,
                status=STATUS_MONITORING_ERROR,
                recommendation="investigate_monitoring",
                error=str(e),
            )

        report = self.report_for_score(record, score, feature_scores, sample_size)
        self.logger.info(
            f"Drift for {record.model_id}: score={score:.4f} status={report.status} "
            f"recommendation={report.recommendation}"
        )
        self.publish(report)
        return report

    def publish(self, report: DriftReport) -> None:
        """Store the report on the record and alert when critical."""
        if self.registry is not None and report.model_id is not None:
            try:
                self.registry.update_drift_metrics(report.model_id, report)
            except Exception as e:
                self.logger.error(f"Failed to store drift metrics for {report.model_id}: {e}")

        if report.status == "critical" and self.alert_sink is not None:
            try:
                self._executor.submit(self._send_alert, report)
            except RuntimeError as e:
                # Executor already shut down; the report itself stands
                self.logger.error(f"Drift alert for {report.model_id} not scheduled: {e}")

    def _send_alert(self, report: DriftReport) -> None:
        try:
            self.alert_sink(report)
            self.logger.info(f"Drift alert sent for {report.model_id}")
        except Exception as e:
            self.logger.error(f"Drift alert for {report.model_id} failed: {e}")

    def should_retrain(
        self,
        record: ModelRecord,
        new_samples: int = 0,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Score whether the model should be retrained.

        Args:
            record: Model record
            new_samples: Labeled loans completed since training
            now: Reference time

        Returns:
            Dictionary with should_retrain, score, reasons, priority and
            estimated_timeline
        """
        score = 0
        reasons = []

        age = record.age_days(now)
        if age > self.config.retraining_max_age_days:
            score += 30
            reasons.append(f"Model is {age} days old")

        drift_score = float((record.drift_metrics or {}).get('drift_score', 0.0))
        if drift_score > self.config.retraining_drift_threshold:
            score += 40
            reasons.append(f"Significant data drift detected ({drift_score:.3f})")

        if record.usage_count > self.config.retraining_usage_threshold:
            score += 20
            reasons.append(f"High usage ({record.usage_count} predictions)")

        if new_samples > self.config.retraining_new_data_threshold:
            score += 25
            reasons.append(f"{new_samples} new training samples available")

        if score >= 80:
            priority, timeline = "high", "within_1_week"
        elif score >= 65:
            priority, timeline = "medium", "within_2_weeks"
        elif score >= 50:
            priority, timeline = "medium", "within_1_month"
        else:
            priority, timeline = "low", "within_1_month"

        return {
            'model_id': record.model_id,
            'should_retrain': score >= 50,
            'score': score,
            'reasons': reasons,
            'priority': priority,
            'estimated_timeline': timeline,
        }

    def record_prediction(
        self,
        model_id: str,
        success: bool,
        latency_ms: float,
        probability: Optional[float] = None,
        timestamp: Optional[datetime] = None
    ) -> None:
        """Add one scoring call to the recent prediction log."""
        self.predictions.record(PredictionEvent(
            model_id=model_id,
            success=success,
            latency_ms=float(latency_ms),
            probability=probability,
            timestamp=timestamp or datetime.now(),
        ))

    def analyze_realtime_performance(
        self,
        record: Optional[ModelRecord],
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Analyze the model's recent predictions.

        Only predictions made within ``performance_window_hours`` of ``now``
        are considered, at most ``performance_window`` of them.

        Args:
            record: Deployed model record (None when nothing is deployed)
            now: Reference time

        Returns:
            Dictionary with counts, success_rate, average_execution_time_ms,
            score_distribution, anomalies and performance_status
        """
        if record is None:
            return {
                'model_id': None,
                'performance_status': STATUS_NO_ACTIVE_MODEL,
                'recommendation': 'deploy_model',
                'predictions_count': 0,
            }

        hours = self.config.performance_window_hours
        events = self.predictions.recent(record.model_id, hours, now)
        successes = [e for e in events if e.success]
        scores = np.array(
            [e.probability for e in successes if e.probability is not None], dtype=float
        )

        report = {
            'model_id': record.model_id,
            'version': record.version,
            'window_hours': hours,
            'predictions_count': len(events),
            'successful_predictions': len(successes),
            'failed_predictions': len(events) - len(successes),
            'success_rate': 0.0,
            'average_execution_time_ms': 0.0,
            'score_distribution': {},
            'anomalies_detected': 0,
            'anomalies': [],
            'performance_status': STATUS_NO_RECENT_ACTIVITY,
            'generated_at': (now or datetime.now()).isoformat(),
        }
        if not events:
            return report

        success_rate = len(successes) / len(events)
        avg_latency = float(np.mean([e.latency_ms for e in events]))
        distribution = score_distribution(scores)
        anomalies = self._detect_anomalies(events, distribution, len(scores))

        report.update(
            success_rate=success_rate,
            average_execution_time_ms=round(avg_latency, 2),
            score_distribution=distribution,
            anomalies_detected=len(anomalies),
            anomalies=anomalies,
            performance_status=performance_status(success_rate, avg_latency),
        )
        self.logger.info(
            f"Realtime performance for {record.model_id}: {len(events)} predictions, "
            f"success_rate={success_rate:.3f} avg_latency={avg_latency:.1f}ms "
            f"status={report['performance_status']}"
        )
        return report

    def _detect_anomalies(
        self,
        events: Sequence[PredictionEvent],
        distribution: Mapping[str, float],
        n_scores: int
    ) -> List[Dict[str, Any]]:
        anomalies = []
        for event in events:
            if event.latency_ms > self.config.slow_prediction_ms:
                anomalies.append({
                    'type': 'slow_prediction',
                    'value': event.latency_ms,
                    'threshold': self.config.slow_prediction_ms,
                    'timestamp': event.timestamp.isoformat(),
                })

        # Near-constant scores over a meaningful sample
        if n_scores >= self.config.min_recent_samples and distribution['std'] < self.config.min_score_spread:
            anomalies.append({
                'type': 'score_collapse',
                'value': distribution['std'],
                'threshold': self.config.min_score_spread,
            })
        return anomalies

    def health_report(self, record: Optional[ModelRecord], now: Optional[datetime] = None) -> Dict[str, Any]:
        """Summarize age, usage, performance, drift and feature importance of a model."""
        if record is None:
            return {
                'status': STATUS_NO_ACTIVE_MODEL,
                'recommendation': 'deploy_model',
                'checks': {},
                'recommendations': [],
            }

        max_days = self.registry_config.max_days_in_production
        min_accuracy = self.registry_config.min_accuracy
        days = record.days_in_production(now)
        accuracy = record.metrics.accuracy if record.metrics else None

        drift = record.drift_metrics or {}
        drift_status = drift.get('status', 'not_checked')

        checks = {
            'model_age': {
                'days_in_production': days,
                'status': 'ok' if days <= max_days else 'stale',
                'message': f"Model has been in production for {days} days (limit {max_days})",
            },
            'usage': {
                'usage_count': record.usage_count,
                'last_used_at': record.last_used_at.isoformat() if record.last_used_at else None,
                'status': 'ok',
                'message': f"Model has been used {record.usage_count} times",
            },
            'performance': {
                'accuracy': accuracy,
                'quality_score': round(record.quality_score, 4),
                'status': 'ok' if accuracy is not None and accuracy >= min_accuracy else 'below_threshold',
                'message': f"Validation accuracy {accuracy} (minimum {min_accuracy})",
            },
            'data_drift': {
                'drift_score': drift.get('drift_score'),
                'status': 'ok' if drift_status in ('stable', 'monitoring', 'not_checked') else drift_status,
                'checked_at': drift.get('timestamp'),
                'message': f"Latest drift check: {drift_status} (score {drift.get('drift_score')})",
            },
            'feature_importance': self._feature_importance_check(record, drift),
        }

        if drift_status == 'critical':
            overall = 'critical'
        elif any(check['status'] != 'ok' for check in checks.values()):
            overall = 'degraded'
        else:
            overall = 'healthy'

        return {
            'model_id': record.model_id,
            'version': record.version,
            'status': overall,
            'needs_retraining': record.needs_retraining(max_days, min_accuracy, now),
            'checks': checks,
            'recommendations': health_recommendations(checks),
            'generated_at': (now or datetime.now()).isoformat(),
        }

    def _feature_importance_check(self, record: ModelRecord, drift: Mapping[str, Any]) -> Dict[str, Any]:
        """Flag importance dominated by one feature or important features that drift."""
        importance = dict(record.model.feature_importance) if record.model else {}
        total = sum(importance.values())
        if total <= 0:
            return {
                'top_features': [],
                'top_share': None,
                'drifting_features': [],
                'status': 'ok',
                'message': "No feature importance recorded",
            }

        top = record.model.top_features(5)
        share = top[0][1] / total
        affected = set(drift.get('affected_features') or ())
        drifting = [name for name, _ in top if name in affected]

        if drifting:
            status = 'drifting'
            message = f"Important features drifting: {', '.join(drifting)}"
        elif share > self.config.feature_concentration_threshold:
            status = 'concentrated'
            message = f"Feature {top[0][0]} carries {share:.0%} of total importance"
        else:
            status = 'ok'
            message = f"Importance spread over {len(importance)} features"

        return {
            'top_features': [name for name, _ in top],
            'top_share': round(share, 4),
            'drifting_features': drifting,
            'status': status,
            'message': message,
        }

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
