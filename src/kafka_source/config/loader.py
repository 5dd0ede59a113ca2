"""YAML/JSON document loader with environment variable substitution."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import ValidationError

from kafka_source.config.models import ConfiguredCatalog, ConnectorConfig
from kafka_source.errors import ConfigError, ConnectorError, StateError
from kafka_source.state.checkpoints import CheckpointSet

# Matches ${VAR} or ${VAR:-default}
_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-((?:[^}\\]|\\.)*))?}")


def _resolve_env_str(value: str) -> str:
    """Replace all ${VAR} / ${VAR:-default} references in a string."""

    def _replace(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        env_val = os.environ.get(var_name)
        if env_val is not None:
            return env_val
        if default is not None:
            return default.replace("\\}", "}")
        msg = f"Environment variable '{var_name}' is not set and no default provided"
        raise ConfigError(msg)

    return _ENV_PATTERN.sub(_replace, value)


def resolve_env_vars(data: Any) -> Any:
    """Recursively resolve ${VAR} and ${VAR:-default} in parsed document data."""
    if isinstance(data, str):
        return _resolve_env_str(data)
    if isinstance(data, dict):
        return {k: resolve_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [resolve_env_vars(item) for item in data]
    return data


def load_document(
    path: str | Path,
    *,
    error: type[ConnectorError] = ConfigError,
    resolve_env: bool = True,
) -> dict[str, Any]:
    """Load a YAML or JSON mapping from *path*.

    JSON is a subset of YAML, so both go through ``yaml.safe_load``.  Parse
    failures are raised as *error*.
    """
    p = Path(path)
    if not p.exists():
        msg = f"File not found: {p}"
        raise error(msg)
    try:
        with p.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        msg = f"Failed to parse {p}"
        if hasattr(exc, "problem_mark") and exc.problem_mark is not None:
            mark = exc.problem_mark
            msg += f" at line {mark.line + 1}, column {mark.column + 1}"
        msg += f": {exc}"
        raise error(msg) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = f"Expected a mapping at top level in {p}, got {type(data).__name__}"
        raise error(msg)
    if resolve_env:
        data = resolve_env_vars(data)
    return cast(dict[str, Any], data)


def load_connector_config(path: str | Path) -> ConnectorConfig:
    """Load and validate the connector configuration file."""
    data = load_document(path)
    try:
        return ConnectorConfig.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid connector config ({path}):\n{exc}"
        raise ConfigError(msg) from exc


def load_catalog(path: str | Path) -> ConfiguredCatalog:
    """Load and validate a configured catalog file."""
    data = load_document(path, resolve_env=False)
    try:
        return ConfiguredCatalog.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid configured catalog ({path}):\n{exc}"
        raise ConfigError(msg) from exc


def load_state(path: str | Path | None) -> CheckpointSet:
    """Load persisted checkpoints, or an empty set when *path* is None."""
    if path is None:
        return CheckpointSet()
    data = load_document(path, error=StateError, resolve_env=False)
    return CheckpointSet.from_dict(data)
