"""
Prediction Log

Bounded in-memory history of recent predictions, used for realtime
performance analysis of the deployed model.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from threading import RLock
from typing import Deque, Dict, List, Optional

import numpy as np


# (minimum success rate, maximum mean latency in ms) per status, best first
PERFORMANCE_LEVELS = (
    ("excellent", 0.99, 200.0),
    ("good", 0.98, 300.0),
    ("fair", 0.95, 500.0),
)


@dataclass(frozen=True)
class PredictionEvent:
    """One scoring call against a model."""
    model_id: str
    success: bool
    latency_ms: float
    probability: Optional[float] = None
    timestamp: datetime = field(default_factory=datetime.now)


class PredictionLog:
    """Thread-safe ring buffer of PredictionEvents (oldest dropped first)."""

    def __init__(self, capacity: int = 1000):
        self.capacity = capacity
        self._events: Deque[PredictionEvent] = deque(maxlen=capacity)
        self._lock = RLock()

    def __len__(self) -> int:
        return len(self._events)

    def record(self, event: PredictionEvent) -> None:
        with self._lock:
            self._events.append(event)

    def recent(
        self,
        model_id: Optional[str] = None,
        hours: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[PredictionEvent]:
        """Events for ``model_id`` within the last ``hours``, oldest first."""
        with self._lock:
            events = list(self._events)
        if model_id is not None:
            events = [e for e in events if e.model_id == model_id]
        if hours is not None:
            cutoff = (now or datetime.now()) - timedelta(hours=hours)
            events = [e for e in events if e.timestamp >= cutoff]
        return events

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


def performance_status(success_rate: float, avg_latency_ms: float) -> str:
    """Grade success rate and mean latency as excellent / good / fair / poor."""
    for status, min_success, max_latency in PERFORMANCE_LEVELS:
        if success_rate >= min_success and avg_latency_ms <= max_latency:
            return status
    return "poor"


def score_distribution(scores: np.ndarray) -> Dict[str, float]:
    """min / max / median / mean / std of predicted probabilities."""
    if len(scores) == 0:
        return {}
    return {
        'min': float(np.min(scores)),
        'max': float(np.max(scores)),
        'median': float(np.median(scores)),
        'mean': float(np.mean(scores)),
        'std': float(np.std(scores)),
    }
