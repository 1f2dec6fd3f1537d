"""Constants used in the project."""

import logging
import os
from enum import Enum
from typing import Optional


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    INSTALL_FAILED = 3
    USAGE_ERROR = 4


class Ecosystem(Enum):
    """Package-manager dialects a registry entry can belong to.

    Args:
        Enum (string): Ecosystem tags as they appear in the registry feed.
    """

    CARGO = "cargo"
    NPM = "npm"
    PIP = "pip"
    GO = "go"
    GEM = "gem"
    GIT = "git"
    BINARY = "binary"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> Optional["Ecosystem"]:
        """Map a feed tag (or one of its aliases) to an Ecosystem, or None."""
        if not isinstance(tag, str) or not tag:
            return None
        key = tag.strip().lower()
        key = _ECOSYSTEM_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return None


_ECOSYSTEM_ALIASES = {
    "pypi": "pip",
    "golang": "go",
    "generic": "binary",
    "github": "git",
    "crates": "cargo",
    "rubygems": "gem",
}


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_FEED_URL = (
        "https://github.com/mason-org/mason-registry/releases/latest/download/registry.json.zip"
    )
    DATA_DIR = os.path.join(os.path.expanduser("~"), ".local", "share", "lspreg")
    INSTALL_DIR_NAME = "servers"
    STATE_FILE_NAME = "installed.json"
    FEED_CACHE_FILE_NAME = "registry-cache"
    CONFIG_PATH = os.path.join(os.path.expanduser("~"), ".config", "lspreg", "config.yml")
    ENV_CONFIG = "LSPREG_CONFIG"
    ENV_DATA_DIR = "LSPREG_DATA_DIR"

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3

    OUTPUT_TAIL_LINES = 40
    PYTHON_EXECUTABLE = "python3"
    SHELL = "/bin/sh"

    # Option keys the locator parser owns; never forwarded as ecosystem options.
    BUILD_TOOL_KEY = "buildTool"
    RESERVED_OPTION_KEYS = ("buildTool", "repository_url", "rev", "tag", "branch")


def _load_yaml_config(path: Optional[str] = None) -> None:
    """Overlay Constants with values from the user's YAML config file.

    The file is ``path`` when given, else $LSPREG_CONFIG, else Constants.CONFIG_PATH.
    Keys are matched case-insensitively against existing Constants attributes;
    unknown keys are ignored. Missing or unreadable files leave defaults intact.
    """
    logger = logging.getLogger(__name__)
    path = path or os.environ.get(Constants.ENV_CONFIG) or Constants.CONFIG_PATH
    if not os.path.isfile(path):
        return

    import yaml  # pylint: disable=import-outside-toplevel

    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Could not read config file %s: %s", path, exc)
        return

    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: top level must be a mapping", path)
        return

    for key, value in data.items():
        attr = str(key).upper()
        if attr.startswith("_") or not hasattr(Constants, attr):
            logger.debug("Ignoring unknown config key: %s", key)
            continue
        setattr(Constants, attr, value)
