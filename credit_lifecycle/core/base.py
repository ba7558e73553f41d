"""
Base Class for Lifecycle Components

The extractor, preparer, splitter, trainers, evaluator and drift monitor
each receive their own frozen configuration section at construction;
nothing reads the environment after that.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
import logging
import time

from pydantic import BaseModel


class PipelineComponent(ABC):
    """
    Common base for lifecycle components.

    Subclasses implement ``run`` and may override ``validate`` to report
    whether their configuration is usable. ``_start_execution`` and
    ``_end_execution`` bracket a unit of work and log its wall time.
    """

    def __init__(self, config: BaseModel, name: Optional[str] = None):
        self.config = config
        self.name = name or self.__class__.__name__
        self.logger = logging.getLogger(self.name)
        self._started: Optional[float] = None
        self._last_duration: Optional[float] = None

    @abstractmethod
    def run(self, *args, **kwargs) -> Any:
        """Main entry point of the component."""

    def validate(self) -> bool:
        """True when the component can run with its configuration."""
        return True

    def _start_execution(self) -> None:
        self._started = time.perf_counter()
        self.logger.debug(f"{self.name} started")

    def _end_execution(self) -> None:
        if self._started is None:
            return
        self._last_duration = time.perf_counter() - self._started
        self._started = None
        self.logger.info(f"{self.name} finished in {self._last_duration:.2f}s")

    @property
    def execution_duration(self) -> Optional[float]:
        """Wall time of the last completed run, in seconds."""
        return self._last_duration
