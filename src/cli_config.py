"""CLI configuration overrides for runtime tunables.

Applies, in increasing precedence: the YAML config file, environment
variables, then command-line flags.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from constants import Constants, _load_yaml_config

logger = logging.getLogger(__name__)


def load_config(args: Any) -> None:
    """Load the YAML config named by ``--config`` (or the default) and apply overrides."""
    config_path = getattr(args, "CONFIG", None)
    if config_path and not os.path.isfile(config_path):
        logger.warning("Config file not found: %s", config_path)
    _load_yaml_config(config_path)
    apply_env_overrides()
    apply_cli_overrides(args)


def apply_env_overrides() -> None:
    """Apply environment variable overrides."""
    env_data_dir = os.environ.get(Constants.ENV_DATA_DIR)
    if env_data_dir and env_data_dir.strip():
        Constants.DATA_DIR = env_data_dir.strip()


def apply_cli_overrides(args: Any) -> None:
    """Apply CLI overrides, which take precedence over config and environment."""
    if getattr(args, "FEED", None):
        Constants.REGISTRY_FEED_URL = args.FEED
    if getattr(args, "DATA_DIR", None):
        Constants.DATA_DIR = args.DATA_DIR


def install_root() -> str:
    return os.path.join(os.path.expanduser(Constants.DATA_DIR), Constants.INSTALL_DIR_NAME)


def state_file_path() -> str:
    return os.path.join(os.path.expanduser(Constants.DATA_DIR), Constants.STATE_FILE_NAME)


def feed_cache_path() -> str:
    return os.path.join(os.path.expanduser(Constants.DATA_DIR), Constants.FEED_CACHE_FILE_NAME)
