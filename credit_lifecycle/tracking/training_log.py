"""
Training Log

CSV log of training attempts, successful or not, for comparing runs across
sessions.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
import logging
import threading

import pandas as pd

logger = logging.getLogger(__name__)


class TrainingLog:
    """Append every training attempt to a local CSV.

    Each row is one attempt with its algorithm, sample count, headline
    metrics, outcome and duration.

    Args:
        log_path: Path to the CSV file.
    """

    COLUMNS = [
        "run_id",
        "timestamp",
        "algorithm",
        "method",
        "training_samples",
        "accuracy",
        "auc_roc",
        "f1_score",
        "status",
        "reason",
        "model_id",
        "version",
        "duration_seconds",
    ]

    def __init__(self, log_path: str = "outputs/training_log.csv"):
        self.log_path = Path(log_path)
        self._lock = threading.Lock()

    def log_attempt(
        self,
        run_id: str,
        algorithm: str,
        metrics: Optional[Dict[str, Any]],
        duration: float,
        status: str = "success",
        reason: str = "",
        model_id: Optional[str] = None,
        version: Optional[str] = None,
        training_samples: int = 0,
        method: str = "",
    ) -> None:
        """Append one attempt.

        Args:
            run_id: Unique identifier for the attempt.
            algorithm: Algorithm used.
            metrics: Validation metrics (None when training failed early).
            duration: Attempt duration in seconds.
            status: 'success' or 'failed'.
            reason: Failure reason, empty on success.
            model_id: Registry id, if a record was kept.
            version: Registry version, if a record was kept.
            training_samples: Number of training examples.
            method: Training method.
        """
        metrics = metrics or {}
        row = {
            "run_id": run_id,
            "timestamp": datetime.now().isoformat(),
            "algorithm": algorithm,
            "method": method,
            "training_samples": training_samples,
            "accuracy": metrics.get("accuracy"),
            "auc_roc": metrics.get("auc_roc"),
            "f1_score": metrics.get("f1_score"),
            "status": status,
            "reason": reason,
            "model_id": model_id,
            "version": version,
            "duration_seconds": round(duration, 1),
        }

        with self._lock:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            new_row_df = pd.DataFrame([row], columns=self.COLUMNS)

            if self.log_path.exists():
                existing = pd.read_csv(self.log_path)
                combined = pd.concat([existing, new_row_df], ignore_index=True)
            else:
                combined = new_row_df

            combined.to_csv(self.log_path, index=False)
        logger.info("Logged training attempt %s (%s) to %s", run_id, status, self.log_path)

    def get_history(self) -> pd.DataFrame:
        """Load all logged attempts.

        Returns:
            DataFrame of attempts, or an empty DataFrame if no log exists.
        """
        if not self.log_path.exists():
            return pd.DataFrame(columns=self.COLUMNS)
        return pd.read_csv(self.log_path)

    def get_best_run(self, metric: str = "auc_roc", ascending: bool = False) -> pd.Series:
        """Get the best successful attempt by a metric.

        Raises:
            ValueError: If there is no history or the metric is unknown.
        """
        history = self.get_history()
        if history.empty:
            raise ValueError("No training history found")
        if metric not in history.columns:
            raise ValueError(f"Metric '{metric}' not found in columns: {list(history.columns)}")

        successful = history[history["status"] == "success"].dropna(subset=[metric])
        if successful.empty:
            raise ValueError("No successful training attempts found")
        return successful.sort_values(metric, ascending=ascending).iloc[0]
