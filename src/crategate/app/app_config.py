"""Locating the gateway configuration file."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

from crategate.core.core_config import build_app_config, load_config
from crategate.core.exceptions import ConfigurationError
from crategate.core.models.gateway_models import AppConfig

logger = logging.getLogger("config")

DEFAULT_CONFIG_FILES = ("config.yaml", "config.yml")


def _expanded(config_path: str) -> Path:
    return Path(os.path.expandvars(config_path)).expanduser()


class Config:
    """Finds the configuration file once and loads it lazily.

    Lookup order: explicit ``config_path``, then ``CONFIG_PATH`` (``.env``
    honored), then ``config.yaml``/``config.yml`` in the working directory.
    With none of them the built-in defaults apply.
    """

    def __init__(self, config_path: str | None = None) -> None:
        if config_path is None:
            load_dotenv()
            config_path = os.getenv("CONFIG_PATH") or next(
                (name for name in DEFAULT_CONFIG_FILES if Path(name).exists()),
                None,
            )

        self.config_path = config_path
        self._config: AppConfig | None = None

    def load(self) -> AppConfig:
        """Return the AppConfig, reading the file on first use.

        Raises:
            ConfigurationError: The file is missing, unreadable or invalid.

        """
        if self._config is None:
            self._config = self._read()
        return self._config

    def _read(self) -> AppConfig:
        if self.config_path is None:
            logger.info("No configuration file found; using built-in defaults")
            return build_app_config({})

        source = _expanded(self.config_path)
        try:
            return load_config(str(source))
        except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
            msg = f"Failed to load configuration from '{source}': {e}"
            raise ConfigurationError(msg, config_path=str(source)) from e

    @property
    def resolved_path(self) -> str | None:
        """Absolute path of the configuration file, or None when defaults are used."""
        if self.config_path is None:
            return None
        source = _expanded(self.config_path)
        try:
            return str(source.resolve())
        except (OSError, ValueError):
            return str(source.absolute())
