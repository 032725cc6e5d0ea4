"""Structured failures reported by the directory preparer and sync sessions.

Every failure carries a ``kind`` (an enum member naming the category), the
``operation`` that failed, the ``target`` it was acting on (a path, a file
pattern or a commit message) and, when there is one, the underlying ``cause``.
"""

import enum


class PrepareErrorKind(str, enum.Enum):
    CREATE_FAILED = "create_failed"
    RESET_FAILED = "reset_failed"
    NOT_A_DIRECTORY = "not_a_directory"


class CloneErrorKind(str, enum.Enum):
    DIRECTORY_PREPARE_FAILED = "directory_prepare_failed"
    TRANSPORT_FAILED = "transport_failed"
    PROTOCOL_FAILED = "protocol_failed"


class OpenErrorKind(str, enum.Enum):
    METADATA_MISSING_OR_CORRUPT = "metadata_missing_or_corrupt"


class IndexErrorKind(str, enum.Enum):
    REJECTED_PATH = "rejected_path"


class CommitErrorKind(str, enum.Enum):
    NOTHING_TO_COMMIT = "nothing_to_commit"
    INVALID_STATE = "invalid_state"


class PushErrorKind(str, enum.Enum):
    AUTH_FAILED = "auth_failed"
    NETWORK_FAILED = "network_failed"
    REJECTED = "rejected"
    REMOTE_FAILED = "remote_failed"


class PullErrorKind(str, enum.Enum):
    AUTH_FAILED = "auth_failed"
    NETWORK_FAILED = "network_failed"
    MERGE_CONFLICT = "merge_conflict"
    REMOTE_FAILED = "remote_failed"


class NotReadyKind(str, enum.Enum):
    SESSION_NOT_READY = "session_not_ready"


class RemoteFailure(str, enum.Enum):
    """Coarse category of a failed network-facing git command."""

    AUTH = "auth"
    NETWORK = "network"
    REJECTED = "rejected"
    CONFLICT = "conflict"
    OTHER = "other"


class SyncError(Exception):
    """Base class for every failure surfaced by git-mirror.

    Attributes:
        kind (enum.Enum): The failure category.
        operation (str): The name of the operation that failed (e.g. 'push').
        target (str | None): The path, pattern or message the operation was given.
        cause (BaseException | None): The underlying exception, if any.
    """

    def __init__(
        self,
        kind: enum.Enum,
        message: str,
        *,
        operation: str,
        target: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.operation = operation
        self.target = target
        self.cause = cause

    def __str__(self) -> str:
        where = f" [{self.target}]" if self.target else ""
        return f"{self.operation}{where}: {self.kind.value}: {self.message}"


class PrepareError(SyncError):
    """The local directory could not be made ready for a clone."""

    def __init__(
        self,
        kind: PrepareErrorKind,
        message: str,
        *,
        target: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(kind, message, operation="prepare", target=target, cause=cause)


class CloneError(SyncError):
    """The clone was aborted before a usable repository handle existed."""

    def __init__(
        self,
        kind: CloneErrorKind,
        message: str,
        *,
        target: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(kind, message, operation="clone", target=target, cause=cause)


class OpenError(SyncError):
    """The local path does not hold a valid existing repository."""

    def __init__(
        self,
        message: str,
        *,
        target: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(
            OpenErrorKind.METADATA_MISSING_OR_CORRUPT,
            message,
            operation="open",
            target=target,
            cause=cause,
        )


class StageError(SyncError):
    """The engine refused to add a path to the index."""

    def __init__(
        self,
        message: str,
        *,
        target: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(
            IndexErrorKind.REJECTED_PATH,
            message,
            operation="stage",
            target=target,
            cause=cause,
        )


class UnstageError(SyncError):
    """The engine refused to mark a path for removal."""

    def __init__(
        self,
        message: str,
        *,
        target: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(
            IndexErrorKind.REJECTED_PATH,
            message,
            operation="unstage",
            target=target,
            cause=cause,
        )


class CommitError(SyncError):
    """The commit phase failed; nothing was pushed."""

    def __init__(
        self,
        kind: CommitErrorKind,
        message: str,
        *,
        target: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(kind, message, operation="commit", target=target, cause=cause)


class PushError(SyncError):
    """The remote was not updated.

    The local commit that was meant to be published stays applied; its sha is
    kept in ``commit`` so the caller can reconcile (e.g. pull, then push again).
    """

    def __init__(
        self,
        kind: PushErrorKind,
        message: str,
        *,
        target: str | None = None,
        commit: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(kind, message, operation="push", target=target, cause=cause)
        self.commit = commit


class PullError(SyncError):
    """Remote changes were not (fully) integrated.

    The working copy is left exactly as git left it, possibly mid-merge.
    """

    def __init__(
        self,
        kind: PullErrorKind,
        message: str,
        *,
        target: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(kind, message, operation="pull", target=target, cause=cause)


class SessionNotReadyError(SyncError):
    """An operation was invoked on a session that failed to construct or is closed."""

    def __init__(
        self,
        operation: str,
        message: str,
        *,
        target: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(
            NotReadyKind.SESSION_NOT_READY,
            message,
            operation=operation,
            target=target,
            cause=cause,
        )


# Substrings emitted by git and ssh, matched case-insensitively.
_AUTH_MARKERS = (
    "permission denied",
    "host key verification failed",
    "authentication failed",
    "could not read from remote repository",
    "no such identity",
    "load key",
)
_NETWORK_MARKERS = (
    "could not resolve hostname",
    "could not resolve host",
    "connection timed out",
    "operation timed out",
    "connection refused",
    "network is unreachable",
    "no route to host",
    "connection reset",
    "connection closed by",
    "broken pipe",
    "the remote end hung up unexpectedly",
)
_MISSING_REPOSITORY_MARKERS = (
    "does not appear to be a git repository",
    "repository not found",
    "does not exist",
)
_REJECTED_MARKERS = (
    "non-fast-forward",
    "fetch first",
    "[rejected]",
    "[remote rejected]",
    "updates were rejected",
)
_CONFLICT_MARKERS = (
    "conflict (",
    "merge conflict in",
    "automatic merge failed",
    "not possible to fast-forward",
    "would be overwritten by merge",
    "you have not concluded your merge",
    "unmerged files",
)
_NOTHING_TO_COMMIT_MARKERS = (
    "nothing to commit",
    "nothing added to commit",
    "no changes added to commit",
)


def classify_remote_failure(output: str, timed_out: bool = False) -> RemoteFailure:
    """Sorts the output of a failed clone, push or pull into a coarse category.

    Network and missing-repository markers are checked before merge markers,
    since hosts and paths can contain words like "conflict". Auth markers are
    checked last because git prints the generic "could not read from remote
    repository" line after network failures and missing repositories as well.

    Args:
        output (str): The combined stdout and stderr of the git process.
        timed_out (bool, optional): Whether the process was killed after
                                    exceeding its timeout. Defaults to False.

    Returns:
        RemoteFailure: The category the failure belongs to.
    """
    if timed_out:
        return RemoteFailure.NETWORK
    text = output.lower()
    if any(m in text for m in _REJECTED_MARKERS):
        return RemoteFailure.REJECTED
    if any(m in text for m in _NETWORK_MARKERS):
        return RemoteFailure.NETWORK
    if any(m in text for m in _MISSING_REPOSITORY_MARKERS):
        return RemoteFailure.OTHER
    if any(m in text for m in _CONFLICT_MARKERS):
        return RemoteFailure.CONFLICT
    if any(m in text for m in _AUTH_MARKERS):
        return RemoteFailure.AUTH
    return RemoteFailure.OTHER


def is_nothing_to_commit(output: str) -> bool:
    """Checks whether a failed `git commit` failed only because the index was clean."""
    text = output.lower()
    return any(m in text for m in _NOTHING_TO_COMMIT_MARKERS)


def clone_kind(failure: RemoteFailure) -> CloneErrorKind:
    if failure in (RemoteFailure.AUTH, RemoteFailure.NETWORK):
        return CloneErrorKind.TRANSPORT_FAILED
    return CloneErrorKind.PROTOCOL_FAILED


def push_kind(failure: RemoteFailure) -> PushErrorKind:
    return {
        RemoteFailure.AUTH: PushErrorKind.AUTH_FAILED,
        RemoteFailure.NETWORK: PushErrorKind.NETWORK_FAILED,
        RemoteFailure.REJECTED: PushErrorKind.REJECTED,
    }.get(failure, PushErrorKind.REMOTE_FAILED)


def pull_kind(failure: RemoteFailure) -> PullErrorKind:
    return {
        RemoteFailure.AUTH: PullErrorKind.AUTH_FAILED,
        RemoteFailure.NETWORK: PullErrorKind.NETWORK_FAILED,
        RemoteFailure.CONFLICT: PullErrorKind.MERGE_CONFLICT,
    }.get(failure, PullErrorKind.REMOTE_FAILED)
