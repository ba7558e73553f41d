"""
Monitoring Module

PSI drift monitoring, realtime prediction performance and retraining
advice for the deployed model.
"""

from credit_lifecycle.monitoring.drift_monitor import (
    DriftMonitor,
    DriftReport,
    build_baseline,
    population_stability_index,
)
from credit_lifecycle.monitoring.performance import PredictionEvent, PredictionLog

__all__ = [
    "DriftMonitor",
    "DriftReport",
    "PredictionEvent",
    "PredictionLog",
    "build_baseline",
    "population_stability_index",
]
