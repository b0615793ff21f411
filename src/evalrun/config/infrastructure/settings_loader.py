"""Settings loader — YAML file with ${ENV_VAR} references, layered over EVALRUN_* variables."""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from evalrun.config.domain.settings import ClientSettings
from evalrun.config.infrastructure.errors import (
    MissingEnvVarsError,
    SettingsLoadError,
    SettingsValidationError,
)

# ${NAME} or ${NAME:-fallback}
_REFERENCE_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")

_ENV_KEYS = {
    "base_url": "EVALRUN_BASE_URL",
    "api_key": "EVALRUN_API_KEY",
    "workspace_id": "EVALRUN_WORKSPACE_ID",
    "default_concurrency": "EVALRUN_DEFAULT_CONCURRENCY",
    "default_timeout_minutes": "EVALRUN_DEFAULT_TIMEOUT_MINUTES",
}


def load_settings(path: Path | None = None) -> ClientSettings:
    """
    Load ClientSettings from an optional YAML file and the EVALRUN_* variables.

    Values in the file win. Fields the file leaves out are taken from the
    matching EVALRUN_* variable when it is set, then from the model defaults.

    Raises:
        SettingsLoadError: if the file does not exist.
        MissingEnvVarsError: if any ${ENV_VAR} reference without a fallback is
            unset (all collected first), or no API key is configured anywhere.
        SettingsValidationError: if the file is not valid YAML or the values
            violate the settings schema.
    """
    raw = {} if path is None else _parse_yaml(path=path)
    resolved, missing = _resolve_references(raw=raw)
    if missing:
        raise MissingEnvVarsError(missing)
    for key, var in _ENV_KEYS.items():
        if key not in resolved and var in os.environ:
            resolved[key] = os.environ[var]
    if "api_key" not in resolved:
        raise MissingEnvVarsError([_ENV_KEYS["api_key"]])
    return _build_settings(raw=resolved)


def _parse_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
    except FileNotFoundError:
        raise SettingsLoadError(path=str(path)) from None
    except yaml.YAMLError as exc:
        raise SettingsValidationError(f"{path} is not valid YAML: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise SettingsValidationError(f"{path} must contain a mapping at the top level")
    return raw


def _resolve_references(raw: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Substitute references in string values; unresolved names come back in file order."""
    missing: list[str] = []

    def substitute(match: re.Match[str]) -> str:
        name, fallback = match.group(1), match.group(2)
        if name in os.environ:
            return os.environ[name]
        if fallback is not None:
            return fallback
        if name not in missing:
            missing.append(name)
        return match.group(0)

    resolved = {
        key: _REFERENCE_PATTERN.sub(substitute, value) if isinstance(value, str) else value
        for key, value in raw.items()
    }
    return resolved, missing


def _build_settings(raw: dict[str, Any]) -> ClientSettings:
    try:
        return ClientSettings.model_validate(raw)
    except ValidationError as exc:
        raise SettingsValidationError(str(exc)) from exc
