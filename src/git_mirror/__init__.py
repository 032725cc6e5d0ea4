"""git-mirror: keep a local working directory in sync with a remote repository.

This package provides the directory preparer, the SSH transport settings and
the `RepositorySyncSession` that clones or opens a local mirror, stages and
removes files, commits and pushes, and pulls remote changes.
"""

from . import (
    cli,
    config,
    constants,
    errors,
    git_wrapper,
    preparer,
    session,
    transport,
)
from .config import Config, SessionConfig
from .errors import (
    CloneError,
    CommitError,
    OpenError,
    PrepareError,
    PullError,
    PushError,
    SessionNotReadyError,
    StageError,
    SyncError,
    UnstageError,
)
from .preparer import prepare_directory
from .session import LockedSession, RepositorySyncSession, SessionState
from .transport import HostKeyPolicy, TransportConfig

__all__ = [
    "cli",
    "config",
    "constants",
    "errors",
    "git_wrapper",
    "preparer",
    "session",
    "transport",
    "CloneError",
    "CommitError",
    "Config",
    "HostKeyPolicy",
    "LockedSession",
    "OpenError",
    "PrepareError",
    "PullError",
    "PushError",
    "RepositorySyncSession",
    "SessionConfig",
    "SessionNotReadyError",
    "SessionState",
    "StageError",
    "SyncError",
    "TransportConfig",
    "UnstageError",
    "prepare_directory",
]
