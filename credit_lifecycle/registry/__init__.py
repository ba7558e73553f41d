"""
Registry Module

Versioned model records and the deployment state machine.
"""

from credit_lifecycle.registry.model_record import ModelRecord, ModelStatus
from credit_lifecycle.registry.model_registry import ModelRegistry
from credit_lifecycle.registry.store import JsonModelStore

__all__ = [
    "ModelRecord",
    "ModelStatus",
    "ModelRegistry",
    "JsonModelStore",
]
