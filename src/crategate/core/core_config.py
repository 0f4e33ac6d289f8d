"""Configuration loading for the Discogs gateway.

The YAML file is read with ``yaml.safe_load``, ``${VAR}`` placeholders are
substituted from the environment (``.env`` included), and the result is
validated into ``AppConfig``. Every section is optional.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from crategate.core.models.gateway_models import AppConfig

# Raw YAML node
ConfigNode = dict[str, Any] | list[Any] | str | int | float | bool | None

# Messages are routed to the file log once get_loggers() has run
logger = logging.getLogger("config")
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
logger.setLevel(logging.INFO)

TOKEN_ENV_VAR = "DISCOGS_TOKEN"
MAX_CONFIG_SIZE = 1024 * 1024  # 1MB
CONFIG_SUFFIXES = (".yaml", ".yml")

_PLACEHOLDER_RE = re.compile(r"^\$\{(\w+)\}$")


def resolve_env_vars(node: ConfigNode) -> ConfigNode:
    """Substitute environment references throughout a parsed YAML tree.

    A value that is exactly ``${NAME}`` becomes the variable's value, or an
    empty string when it is unset. Other strings get ``$NAME`` expansion
    and ``~`` home expansion.
    """
    match node:
        case dict():
            return {str(key): resolve_env_vars(value) for key, value in node.items()}
        case list():
            return [resolve_env_vars(value) for value in node]
        case str() if (placeholder := _PLACEHOLDER_RE.match(node)):
            return os.getenv(placeholder.group(1), "")
        case str():
            expanded = os.path.expandvars(node) if "$" in node else node
            return str(Path(expanded).expanduser()) if expanded.startswith("~") else expanded
        case _:
            return node


def _checked_config_file(path: str) -> Path:
    """Resolve ``path`` and make sure it names a readable YAML file.

    Raises:
        FileNotFoundError: Missing path, or a path that is not a regular file
        PermissionError: File exists but cannot be read
        ValueError: Wrong extension or file too large

    """
    candidate = Path(path).expanduser()
    if not candidate.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    config_file = candidate.resolve()
    if not config_file.is_file():
        msg = f"Config path {config_file} does not point to a file"
        raise FileNotFoundError(msg)
    if config_file.suffix.lower() not in CONFIG_SUFFIXES:
        msg = f"Config file {config_file.name} must use a .yaml or .yml extension"
        raise ValueError(msg)
    if not os.access(config_file, os.R_OK):
        msg = f"Config file {config_file} is not readable"
        raise PermissionError(msg)
    if config_file.stat().st_size > MAX_CONFIG_SIZE:
        msg = f"Config file {config_file} exceeds {MAX_CONFIG_SIZE} bytes"
        raise ValueError(msg)
    return config_file


def _as_mapping(document: ConfigNode) -> dict[str, Any]:
    """Top-level YAML document as a mapping; an empty document is ``{}``."""
    if document is None:
        return {}
    if isinstance(document, dict):
        return document
    msg = f"Config root must be a mapping, got {type(document).__name__}"
    raise TypeError(msg)


def describe_validation_errors(error: ValidationError) -> str:
    """One ``section.field: problem`` line per invalid value."""
    lines = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "<root>"
        problem = "field required" if detail["type"] == "missing" else detail["msg"]
        lines.append(f"{location}: {problem}")
    return "\n".join(lines)


def build_app_config(config_data: dict[str, Any]) -> AppConfig:
    """Validate raw configuration data into an AppConfig.

    An empty ``discogs.token`` is filled from ``DISCOGS_TOKEN``. A token
    missing from both only produces a warning.

    Raises:
        ValueError: If validation fails.

    """
    try:
        app_config = AppConfig.model_validate(config_data)
    except ValidationError as e:
        msg = f"Invalid configuration:\n{describe_validation_errors(e)}"
        raise ValueError(msg) from e

    discogs = app_config.discogs
    discogs.token = discogs.token.strip() or os.getenv(TOKEN_ENV_VAR, "").strip()
    if not discogs.token:
        logger.warning("No Discogs token (set %s); lookups will return empty results", TOKEN_ENV_VAR)
    return app_config


def load_config(config_path: str) -> AppConfig:
    """Read, resolve and validate a YAML configuration file.

    Raises:
        FileNotFoundError: If the config file does not exist.
        PermissionError: If the config file cannot be read.
        ValueError: If the file or its content is invalid.
        TypeError: If the document root is not a mapping.
        yaml.YAMLError: If the YAML cannot be parsed.

    """
    if load_dotenv():
        logger.debug("Environment extended from .env")

    try:
        config_file = _checked_config_file(config_path)
        logger.info("Reading configuration from %s", config_file)
        document = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        app_config = build_app_config(_as_mapping(resolve_env_vars(document)))
    except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
        logger.critical("Cannot load configuration %s: %s", config_path, e)
        raise

    logger.info("Configuration loaded")
    return app_config
