import os
from pathlib import Path

"""Global constants and path definitions for git-mirror.

This module defines application identifiers, the canonical remote and branch
names used for push/pull, and the filesystem locations (adhering to XDG
standards where applicable) for configuration and logs.
"""

# --- Identity ---
APP_NAME = "git-mirror"
"""str: The human-readable application name, also the logger name."""

# --- Remote / Branch ---
DEFAULT_REMOTE = "origin"
"""str: The alias under which the cloned remote is registered."""

DEFAULT_BRANCH = "master"
"""str: The branch that commits are pushed to and pulled from."""

GIT_DIR_NAME = ".git"
"""str: The metadata subdirectory that marks a working tree as a repository."""

# --- Transport ---
DEFAULT_IDENTITY_FILE = Path("~/.ssh/id_rsa")
"""Path: The private key used for SSH authentication unless overridden."""

DEFAULT_CONNECT_TIMEOUT = 30
"""int: Seconds allowed for the SSH handshake before the connection is dropped."""

DEFAULT_OPERATION_TIMEOUT = 600
"""int: Seconds a clone, push or pull may run before the git process is killed."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "git-mirror"
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "git-mirror.log"
"""Path: The default file path for CLI logs."""

_XDG_CONFIG = os.environ.get("XDG_CONFIG_HOME")
_BASE_CONFIG = Path(_XDG_CONFIG) if _XDG_CONFIG else Path.home() / ".config"

CONFIG_DIR: Path = _BASE_CONFIG / "git-mirror"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The global configuration file path."""

# --- Git State ---
GIT_LOCK_FILES = [
    "MERGE_HEAD",
    "REBASE_HEAD",
    "CHERRY_PICK_HEAD",
    "rebase-merge",
    "rebase-apply",
]
"""
list[str]: Git internal files indicating an unfinished operation, typically
left behind by a pull that stopped on a merge conflict.
"""
