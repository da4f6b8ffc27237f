"""Configuration loading for CoreDrift.

Settings live in a TOML file, by default
``~/.config/coredrift/config.toml``. Missing keys fall back to
``DEFAULT_CONFIG``.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Optional

import toml

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "coredrift"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.toml"
CONFIG_ENV_VAR = "COREDRIFT_CONFIG"

DEFAULT_CONFIG = {
    "journal": {
        "user_id": "local",
        "db_path": str(CONFIG_DIR / "coredrift.db"),
        "default_account": "",
    },
    "logging": {
        "level": "WARNING",
    },
}


def config_path(path: Optional[Path] = None) -> Path:
    """Resolve the config file path from the argument or environment."""
    if path is not None:
        return Path(path).expanduser()
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser()
    return DEFAULT_CONFIG_PATH


def load_config(path: Optional[Path] = None) -> dict:
    """Load configuration merged over the defaults.

    Args:
        path: Explicit config file. Defaults to ``$COREDRIFT_CONFIG`` or
            ``~/.config/coredrift/config.toml``.

    Returns:
        Configuration dictionary with every section present.

    Raises:
        toml.TomlDecodeError: If the file exists but is not valid TOML.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    resolved = config_path(path)
    if not resolved.exists():
        logger.debug("No config at %s, using defaults", resolved)
        return config

    loaded = toml.load(resolved)
    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values
    return config


def save_config(config: dict, path: Optional[Path] = None) -> Path:
    """Write configuration to disk and return the file path."""
    resolved = config_path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    with open(resolved, "w") as f:
        toml.dump(config, f)
    return resolved


def db_path(config: dict) -> Path:
    """Database path from the config."""
    return Path(config["journal"]["db_path"]).expanduser()
