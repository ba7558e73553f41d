"""
Custom Exceptions for the Model Lifecycle

One hierarchy for every failure stage (configuration, extraction,
training, evaluation, registry, monitoring, scoring). Subclasses declare
the context they carry in ``_context``; it is shown in ``str()`` and
included in ``to_dict()`` so logs and CLI output name the model, stage
or counts involved.
"""

from typing import Any, Dict, Optional, Tuple


class LifecycleError(Exception):
    """
    Base exception for all lifecycle errors.

    Args:
        message: Error message
        details: Free-form context (sample counts, paths, ...)
        cause: Exception this one wraps
    """

    # (attribute, label) pairs rendered after the message when set
    _context: Tuple[Tuple[str, str], ...] = ()

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        **context: Any
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause
        known = {attr for attr, _ in self._context}
        unknown = set(context) - known
        if unknown:
            raise TypeError(f"{type(self).__name__} got unexpected context {sorted(unknown)}")
        for attr in known:
            setattr(self, attr, context.get(attr))

    def context(self) -> Dict[str, Any]:
        return {attr: getattr(self, attr) for attr, _ in self._context if getattr(self, attr) is not None}

    def __str__(self) -> str:
        parts = [self.message]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        parts.extend(
            f"{label}: {getattr(self, attr)}"
            for attr, label in self._context
            if getattr(self, attr) is not None
        )
        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "details": self.details,
            "context": self.context(),
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(LifecycleError):
    """Missing or unreadable config file, or values failing validation."""


class DataError(LifecycleError):
    """
    Training data cannot be used.

    Examples:
    - Malformed loan or customer record
    - Missing critical features
    - Empty dataset after cleaning
    """

    _context = (("stage", "Stage"),)


class InsufficientDataError(DataError):
    """Fewer samples than the configured minimum."""

    _context = DataError._context + (("available", "Available"), ("required", "Required"))

    def __init__(self, message: str, available: int = 0, required: int = 0, **kwargs):
        super().__init__(message, available=available, required=required, **kwargs)


class FeatureExtractionError(DataError):
    """
    A single loan cannot be turned into a feature vector.

    The extractor catches it per record, so it never fails a batch.
    """

    _context = DataError._context + (("loan_id", "Loan"),)

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("stage", "extraction")
        super().__init__(message, **kwargs)


class ModelTrainingError(LifecycleError):
    """
    Training failed.

    Examples:
    - External training backend unreachable or timed out
    - Malformed response from the backend
    - Degenerate training matrix

    Optimizer non-convergence is not an error.
    """

    _context = (("model_name", "Model"),)


class EvaluationError(LifecycleError):
    """Empty validation set, or the model could not score it."""


class RegistryError(LifecycleError):
    """A registry read, transition or write failed."""

    _context = (("model_id", "Model ID"),)


class ModelNotFoundError(RegistryError):
    """Unknown model id."""


class DeploymentConflictError(RegistryError):
    """
    Status transition not allowed, e.g. deploying a model that is still
    training or already retired. The registry is left unchanged.
    """

    _context = RegistryError._context + (("current_status", "Status"),)


class DriftCheckError(LifecycleError):
    """
    Drift cannot be assessed: no stored baseline, or too little recent
    data. The drift monitor turns it into a "cannot_assess" report.
    """


class ScoringError(LifecycleError):
    """
    A model cannot produce probabilities.

    Examples:
    - A feature required by the model is missing
    - Remote scoring endpoint unreachable or malformed response
    """

    _context = (("model_name", "Model"),)
