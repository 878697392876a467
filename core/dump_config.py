"""Run configuration for a dump.

Values come from an optional YAML file, the environment and the command
line, in increasing order of precedence. The output destination is the
exception: it may be set by exactly one source, once.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import yaml

from emission.tags import DEFAULT_TAG_ATTRIBUTES
from extraction.config import (
    DEFAULT_CONTINUE_ON_ERROR,
    DEFAULT_DATA_MODEL,
    DEFAULT_TAG_MACROS,
)
from extraction.layout import DATA_MODELS

logger = logging.getLogger(__name__)

DUMP_ALL_ENV = "COMPEX_DUMP_ALL"
STRICT_CONFIG_ENV = "COMPEX_STRICT_CONFIG"

_FILE_KEYS = {
    "output": str,
    "dump_all": bool,
    "data_model": str,
    "tag_macros": list,
    "tag_attributes": list,
    "repo_root": str,
    "continue_on_error": bool,
}


class ConfigValidationError(RuntimeError):
    """Raised when the run configuration is invalid."""


class DuplicateOutputDestinationError(ConfigValidationError):
    """Raised when the output destination is configured more than once."""


@dataclass(frozen=True)
class DumpConfig:
    """Immutable configuration of one dump run."""

    output: Optional[str] = None
    dump_all: bool = False
    data_model: str = DEFAULT_DATA_MODEL
    tag_macros: tuple[str, ...] = DEFAULT_TAG_MACROS
    tag_attributes: tuple[str, ...] = tuple(sorted(DEFAULT_TAG_ATTRIBUTES))
    repo_root: Optional[str] = None
    continue_on_error: bool = DEFAULT_CONTINUE_ON_ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "output": self.output,
            "dump_all": self.dump_all,
            "data_model": self.data_model,
            "tag_macros": list(self.tag_macros),
            "tag_attributes": list(self.tag_attributes),
            "repo_root": self.repo_root,
            "continue_on_error": self.continue_on_error,
        }


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def resolve_strict_config_validation(default: bool = False) -> bool:
    """Resolve strict validation mode from ``COMPEX_STRICT_CONFIG`` env."""
    return _env_flag(STRICT_CONFIG_ENV, default=default)


def _reject(msg: str, strict: bool) -> None:
    if strict:
        raise ConfigValidationError(msg)
    logger.warning("%s; ignoring", msg)


def load_config_file(config_path: str, strict: bool = False) -> dict[str, Any]:
    """Load and validate a YAML config file.

    In non-strict mode unreadable files and invalid entries are skipped with
    a warning. In strict mode they raise ``ConfigValidationError``.
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            payload = yaml.safe_load(f)
    except FileNotFoundError as exc:
        msg = f"Config file not found: {config_path}"
        if strict:
            raise ConfigValidationError(msg) from exc
        logger.warning("%s; continuing with defaults", msg)
        return {}
    except yaml.YAMLError as exc:
        msg = f"Failed to parse config YAML at {config_path}: {exc}"
        if strict:
            raise ConfigValidationError(msg) from exc
        logger.warning("%s; continuing with defaults", msg)
        return {}

    if payload is None:
        return {}

    if not isinstance(payload, dict):
        msg = f"Unexpected config payload type: {type(payload).__name__}"
        if strict:
            raise ConfigValidationError(msg)
        logger.warning("%s; continuing with defaults", msg)
        return {}

    values: dict[str, Any] = {}
    for key, value in payload.items():
        expected = _FILE_KEYS.get(key)
        if expected is None:
            _reject(f"Unknown config key '{key}' in {config_path}", strict)
            continue
        if not isinstance(value, expected) or (
            expected is list and not all(isinstance(item, str) for item in value)
        ):
            _reject(
                f"Config key '{key}' in {config_path} must be {expected.__name__}",
                strict,
            )
            continue
        values[key] = value
    return values


def resolve_output_destination(
    cli_outputs: Sequence[str] = (),
    file_output: Optional[str] = None,
) -> Optional[str]:
    """Pick the single configured output destination.

    Raises:
        DuplicateOutputDestinationError: If more than one destination is set.
    """
    candidates = list(cli_outputs)
    if file_output is not None:
        candidates.append(file_output)
    if len(candidates) > 1:
        raise DuplicateOutputDestinationError(
            "Output destination configured more than once: " + ", ".join(candidates)
        )
    return candidates[0] if candidates else None


def build_dump_config(
    cli_outputs: Sequence[str] = (),
    dump_all: bool = False,
    config_path: Optional[str] = None,
    data_model: Optional[str] = None,
    tag_macros: Sequence[str] = (),
    repo_root: Optional[str] = None,
    fail_fast: bool = False,
    strict: Optional[bool] = None,
) -> DumpConfig:
    """Merge file, environment and command-line settings into a DumpConfig.

    Raises:
        ConfigValidationError: If the data model is unknown, or a strict
            config file is invalid.
        DuplicateOutputDestinationError: If the output is set more than once.
    """
    if strict is None:
        strict = resolve_strict_config_validation()
    file_values = load_config_file(config_path, strict=strict) if config_path else {}

    output = resolve_output_destination(cli_outputs, file_values.get("output"))

    model = (data_model or file_values.get("data_model") or DEFAULT_DATA_MODEL).lower()
    if model not in DATA_MODELS:
        raise ConfigValidationError(
            f"Unknown data model '{model}'. Expected one of: {sorted(DATA_MODELS)}"
        )

    macros = tuple(file_values.get("tag_macros", DEFAULT_TAG_MACROS))
    macros += tuple(name for name in tag_macros if name not in macros)

    attributes = file_values.get("tag_attributes")
    continue_on_error = file_values.get("continue_on_error", DEFAULT_CONTINUE_ON_ERROR)

    config = DumpConfig(
        output=output,
        dump_all=dump_all or _env_flag(DUMP_ALL_ENV) or file_values.get("dump_all", False),
        data_model=model,
        tag_macros=macros,
        tag_attributes=tuple(attributes) if attributes else DumpConfig.tag_attributes,
        repo_root=repo_root or file_values.get("repo_root"),
        continue_on_error=False if fail_fast else continue_on_error,
    )
    logger.debug("Dump configuration: %s", config.to_dict())
    return config
