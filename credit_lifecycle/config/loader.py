"""
Config Loader

Builds a frozen LifecycleConfig from, in increasing priority:

    schema defaults < YAML file < CLI flags < programmatic overrides

``${VAR}`` and ``${VAR:default}`` placeholders in the YAML are resolved
here, once, so no component reads the environment itself.
"""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import json
import logging
import os
import re

import yaml
from pydantic import ValidationError

from credit_lifecycle.config.schema import LifecycleConfig
from credit_lifecycle.core.exceptions import ConfigurationError


logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r'\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::(?P<default>[^}]*))?\}')


def resolve_placeholders(value: Any) -> Any:
    """
    Substitute environment placeholders throughout a parsed YAML tree.

    A string that resolves to nothing becomes None, so an unset
    ``${ML_TRAINING_ENDPOINT}`` leaves the external trainer disabled.
    """
    if isinstance(value, dict):
        return {key: resolve_placeholders(item) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_placeholders(item) for item in value]
    if not isinstance(value, str) or '${' not in value:
        return value

    resolved = _PLACEHOLDER.sub(
        lambda m: os.environ.get(m.group('name'), m.group('default') or ''),
        value,
    )
    return resolved or None


def apply_dotted(target: Dict[str, Any], dotted: Mapping[str, Any]) -> None:
    """Set ``{"registry.performance_threshold": 0.8}`` style keys; None values are skipped."""
    for dotted_key, value in dotted.items():
        if value is None:
            continue
        *parents, leaf = dotted_key.split(".")
        node = target
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value


def merge_nested(target: Dict[str, Any], extra: Mapping[str, Any]) -> None:
    """Merge ``extra`` into ``target`` in place, section by section."""
    for key, value in extra.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merge_nested(current, value)
        else:
            target[key] = value


def _read_yaml(yaml_path: str) -> Dict[str, Any]:
    path = Path(yaml_path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {yaml_path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {yaml_path}", cause=e)
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config root must be a mapping, got {type(data).__name__}",
            details={'path': yaml_path},
        )
    logger.info("Loaded config from %s", yaml_path)
    return data


def load_config(
    yaml_path: Optional[str] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> LifecycleConfig:
    """
    Load the lifecycle configuration.

    Args:
        yaml_path: YAML file; schema defaults only when None
        cli_overrides: Flat dot-notation keys, e.g. from argparse
        overrides: Nested dict merged last

    Returns:
        Frozen LifecycleConfig

    Raises:
        ConfigurationError: Missing file, bad YAML or failed validation
    """
    raw = resolve_placeholders(_read_yaml(yaml_path)) if yaml_path is not None else {}

    if cli_overrides:
        apply_dotted(raw, cli_overrides)
    if overrides:
        merge_nested(raw, overrides)

    try:
        return LifecycleConfig(**raw)
    except ValidationError as e:
        raise ConfigurationError("Invalid lifecycle configuration", cause=e)


def save_config(config: LifecycleConfig, path: str) -> None:
    """Write the configuration as YAML (.yaml/.yml) or JSON (anything else)."""
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json")

    with open(out_path, "w") as f:
        if out_path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(data, f, indent=2)

    logger.info("Config saved to %s", path)
