"""
Configuration loader — reads plugin.yml into the PluginConfig model.

Resolution order:
    --config PATH  >  SMP_CONFIG env var  >  /etc/sm-plugin/plugin.yml  >  defaults

An explicitly named file must exist. The system-wide file is optional:
without it the plugin runs on built-in defaults.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from smplugin.core.errors import PluginError
from smplugin.core.models.config import PluginConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SMP_CONFIG"
SYSTEM_CONFIG_FILE = Path("/etc/sm-plugin/plugin.yml")


class ConfigError(PluginError):
    """Raised when plugin configuration is invalid or missing."""


def find_config_file(explicit: Path | None = None) -> tuple[Path | None, bool]:
    """Locate the configuration file.

    Args:
        explicit: Path given on the command line.

    Returns:
        ``(path, required)``. ``path`` is None when no file applies;
        ``required`` is True when the path was named explicitly and
        must therefore exist.
    """
    if explicit is not None:
        return explicit, True

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path), True

    if SYSTEM_CONFIG_FILE.is_file():
        return SYSTEM_CONFIG_FILE, False

    return None, False


def load_config(path: Path | None = None) -> PluginConfig:
    """Load and validate the plugin configuration.

    Args:
        path: Explicit path to plugin.yml. If None, uses the resolution order.

    Returns:
        Validated PluginConfig.

    Raises:
        ConfigError: If a required file is missing or the content is invalid.
    """
    path, required = find_config_file(path)

    if path is None:
        logger.debug("No configuration file, using defaults")
        return PluginConfig()

    if not path.is_file():
        if required:
            raise ConfigError(f"Config file not found: {path}")
        return PluginConfig()

    logger.debug("Loading plugin config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return PluginConfig()

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = PluginConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid plugin configuration in {path}: {e}") from e

    logger.info("Loaded plugin config from %s (backend: %s)", path, config.backend)
    return config
