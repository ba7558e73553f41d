"""
Logging Utilities

Console and rotating-file handlers for the lifecycle service, a
class-named logger mixin and a run-scoped adapter that tags every
message with the training run and model it belongs to.
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Mapping, MutableMapping, Optional, Tuple

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOG_FILE = "logs/lifecycle.log"

# HTTP client chatter from the external trainer and remote scorer
NOISY_LOGGERS = ('urllib3', 'requests')

_loggers: Dict[str, logging.Logger] = {}


def _level(name: str) -> int:
    return getattr(logging, str(name).upper())


def _console_handler(settings: Mapping[str, Any], default_level: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(_level(settings.get('level', default_level)))
    return handler


def _file_handler(settings: Mapping[str, Any], default_level: str, path: Optional[str]) -> logging.Handler:
    log_path = Path(path or settings.get('path', DEFAULT_LOG_FILE))
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path,
        maxBytes=settings.get('max_bytes', 10 * 1024 * 1024),
        backupCount=settings.get('backup_count', 5),
    )
    handler.setLevel(_level(settings.get('level', default_level)))
    return handler


def setup_logging(
    config: Optional[Mapping[str, Any]] = None,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None
) -> None:
    """
    Configure the root logger.

    Existing root handlers are replaced, so calling this twice does not
    duplicate output.

    Args:
        config: ``LoggingConfig.model_dump()``; keys level, format and
            handlers.console / handlers.file
        log_level: Level used when the config has none
        log_file: Forces a file handler at this path
        log_format: Format used when the config has none
    """
    config = config or {}
    level = config.get('level', log_level)
    formatter = logging.Formatter(config.get('format', log_format or DEFAULT_FORMAT))
    handler_settings = config.get('handlers', {})

    handlers = []
    console = handler_settings.get('console', {})
    if console.get('enabled', True):
        handlers.append(_console_handler(console, level))

    file_settings = handler_settings.get('file', {})
    if log_file or file_settings.get('enabled', False):
        handlers.append(_file_handler(file_settings, level, log_file))

    root = logging.getLogger()
    root.setLevel(_level(level))
    root.handlers = []
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return the cached logger for ``name``."""
    if name not in _loggers:
        _loggers[name] = logging.getLogger(name)
    return _loggers[name]


class LoggerMixin:
    """Adds a ``logger`` property named after the concrete class."""

    @property
    def logger(self) -> logging.Logger:
        if not hasattr(self, '_logger'):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger


class PipelineLogger(logging.LoggerAdapter):
    """
    Logger adapter for one training run.

    Messages are prefixed with the current context, e.g.
    ``[run_id=3f2a model_id=model_ab12] Starting: Training``, so lines from
    concurrent background jobs can be told apart.
    """

    def __init__(self, name: str):
        super().__init__(get_logger(name), {})

    def set_context(self, **kwargs) -> None:
        self.extra.update(kwargs)

    def clear_context(self) -> None:
        self.extra.clear()

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        if self.extra:
            tags = " ".join(f"{key}={value}" for key, value in self.extra.items())
            msg = f"[{tags}] {msg}"
        return msg, kwargs

    def step_start(self, step_name: str) -> None:
        self.info(f"--- Starting: {step_name}")

    def step_complete(self, step_name: str, duration: Optional[float] = None) -> None:
        suffix = f" ({duration:.2f}s)" if duration is not None else ""
        self.info(f"--- Completed: {step_name}{suffix}")

    def metric(self, name: str, value: Any) -> None:
        self.info(f"METRIC | {name}: {value}")

    def data_stats(self, name: str, count: int, columns: Optional[int] = None) -> None:
        shape = f"{count:,} rows" + (f", {columns} features" if columns else "")
        self.info(f"DATA | {name}: {shape}")
