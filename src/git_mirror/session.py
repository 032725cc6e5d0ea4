"""Stateful synchronization of one local working directory with one remote.

A `RepositorySyncSession` is built either by cloning a remote into a freshly
prepared directory or by opening an existing checkout (which pulls once
before returning). Construction never raises: a session that could not be
built is returned in the FAILED state with the cause in ``error``, and every
operation on it raises `SessionNotReadyError` without touching the disk.

Sessions perform no internal locking and no retries. Wrap a session in
`LockedSession` if it must be shared between threads.
"""

import enum
import logging
import threading
from pathlib import Path
from types import TracebackType

from .config import SessionConfig
from .constants import APP_NAME
from .errors import (
    CloneError,
    CloneErrorKind,
    CommitError,
    CommitErrorKind,
    OpenError,
    PrepareError,
    PullError,
    PushError,
    RemoteFailure,
    SessionNotReadyError,
    StageError,
    SyncError,
    UnstageError,
    classify_remote_failure,
    clone_kind,
    is_nothing_to_commit,
    pull_kind,
    push_kind,
)
from .git_wrapper import CommitInfo, GitCommandError, GitRepo
from .preparer import prepare_directory
from .transport import TransportConfig

logger = logging.getLogger(APP_NAME)


class SessionState(str, enum.Enum):
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


class RepositorySyncSession:
    """Exclusive handle on a local mirror of a remote repository.

    Attributes:
        path (Path): The local working directory.
        remote_url (str | None): The URL of the remote, when known.
        transport (TransportConfig): Settings used by every network operation.
        config (SessionConfig): Remote alias, branch and commit identity.
        state (SessionState): READY, FAILED or CLOSED.
        error (SyncError | None): Why construction failed, for FAILED sessions.
        open_pull_error (PullError | None): The failure of the pull run by
            `open`, which does not fail the session itself.
    """

    def __init__(
        self,
        repo: GitRepo | None,
        path: Path,
        transport: TransportConfig,
        config: SessionConfig,
        remote_url: str | None = None,
        error: SyncError | None = None,
    ):
        self._repo = repo
        self.path = path
        self.remote_url = remote_url
        self.transport = transport
        self.config = config
        self.error = error
        self.open_pull_error: PullError | None = None
        self.state = SessionState.READY if repo is not None else SessionState.FAILED

    def __repr__(self) -> str:
        return (
            f"RepositorySyncSession(path={str(self.path)!r}, "
            f"state={self.state.value})"
        )

    @classmethod
    def clone(
        cls,
        remote_url: str,
        local_path: Path | str,
        transport: TransportConfig | None = None,
        config: SessionConfig | None = None,
    ) -> "RepositorySyncSession":
        """Resets ``local_path`` and clones ``remote_url`` into it.

        The transport is never invoked if the directory could not be prepared.
        A clone that fails after preparation leaves the directory as it is.

        Args:
            remote_url (str): The SSH URL of the remote (e.g. 'git@host:repo.git').
            local_path (Path | str): The directory to clone into.
            transport (TransportConfig | None, optional): Transport settings.
            config (SessionConfig | None, optional): Remote/branch binding.

        Returns:
            RepositorySyncSession: A READY session, or a FAILED one whose
                                   ``error`` is a `CloneError`.
        """
        path = Path(local_path)
        transport = transport or TransportConfig()
        config = config or SessionConfig()

        def failed(error: CloneError) -> "RepositorySyncSession":
            logger.error(f"Clone of {remote_url} into {path} failed: {error}")
            return cls(
                None, path, transport, config, remote_url=remote_url, error=error
            )

        try:
            prepare_directory(path)
        except PrepareError as e:
            return failed(
                CloneError(
                    CloneErrorKind.DIRECTORY_PREPARE_FAILED,
                    e.message,
                    target=str(path),
                    cause=e,
                )
            )

        logger.info(f"Cloning {remote_url} into {path}")
        try:
            repo = GitRepo.clone_into(
                remote_url, path, transport, remote_name=config.remote_name
            )
        except GitCommandError as e:
            kind = clone_kind(classify_remote_failure(e.output, e.timed_out))
            return failed(
                CloneError(kind, e.output or str(e), target=remote_url, cause=e)
            )
        except (OSError, ValueError) as e:
            return failed(
                CloneError(
                    CloneErrorKind.PROTOCOL_FAILED, str(e), target=remote_url, cause=e
                )
            )

        logger.info(f"Cloned {remote_url} to {repo.path}")
        return cls(repo, path, transport, config, remote_url=remote_url)

    @classmethod
    def open(
        cls,
        local_path: Path | str,
        transport: TransportConfig | None = None,
        config: SessionConfig | None = None,
    ) -> "RepositorySyncSession":
        """Opens an existing checkout and pulls once to bring it up to date.

        A failed pull does not fail the open. It is logged and kept in
        ``open_pull_error``; callers that need an up-to-date tree must check it.

        Args:
            local_path (Path | str): The root of the existing working tree.
            transport (TransportConfig | None, optional): Transport settings.
            config (SessionConfig | None, optional): Remote/branch binding.

        Returns:
            RepositorySyncSession: A READY session, or a FAILED one whose
                                   ``error`` is an `OpenError`.
        """
        path = Path(local_path)
        transport = transport or TransportConfig()
        config = config or SessionConfig()

        try:
            repo = GitRepo(path)
        except (OSError, ValueError) as e:
            error = OpenError(str(e), target=str(path), cause=e)
            logger.error(f"Could not open repository at {path}: {error}")
            return cls(None, path, transport, config, error=error)

        remote_url = repo.remote_url(config.remote_name)
        session = cls(repo, path, transport, config, remote_url=remote_url)
        logger.info(f"Opened repository at {path}")
        try:
            session.pull()
        except PullError as e:
            logger.warning(f"Initial pull for {path} failed; continuing: {e}")
            session.open_pull_error = e
        return session

    @property
    def is_ready(self) -> bool:
        return self.state is SessionState.READY

    def _require(self, operation: str, target: str | None = None) -> GitRepo:
        """Returns the live handle, or raises if the session cannot operate."""
        if self.state is not SessionState.READY or self._repo is None:
            raise SessionNotReadyError(
                operation,
                f"session is {self.state.value}",
                target=target,
                cause=self.error,
            )
        return self._repo

    def stage(self, file_name: str) -> None:
        """Stages new or modified content at ``file_name`` for the next commit.

        Raises:
            SessionNotReadyError: If the session is not READY.
            StageError: If git rejects the path.
        """
        repo = self._require("stage", file_name)
        logger.info(f"Staging {file_name}")
        try:
            repo.add(file_name)
        except GitCommandError as e:
            logger.error(f"Staging {file_name} failed: {e}")
            raise StageError(e.output or str(e), target=file_name, cause=e) from e

    def unstage(self, file_name: str, keep_local: bool = False) -> None:
        """Marks ``file_name`` for removal in the next commit.

        The file is also deleted from the working tree unless ``keep_local``.

        Raises:
            SessionNotReadyError: If the session is not READY.
            UnstageError: If git rejects the path.
        """
        repo = self._require("unstage", file_name)
        logger.info(f"Removing {file_name}")
        try:
            repo.remove(file_name, keep_local=keep_local)
        except GitCommandError as e:
            logger.error(f"Removing {file_name} failed: {e}")
            raise UnstageError(e.output or str(e), target=file_name, cause=e) from e

    def commit_and_push(self, message: str) -> str:
        """Commits the staged changes and pushes them to the default branch.

        Push is only attempted once the commit exists. If the push fails the
        commit stays in local history and the raised `PushError` carries its
        sha; nothing is rolled back or retried.

        Args:
            message (str): The commit message.

        Returns:
            str: The sha of the commit now on the remote.

        Raises:
            SessionNotReadyError: If the session is not READY.
            CommitError: NOTHING_TO_COMMIT or INVALID_STATE; nothing was pushed.
            PushError: The commit was made locally but the remote was not updated.
        """
        repo = self._require("commit_and_push", message)
        logger.info(f"Committing and pushing: {message}")
        try:
            sha = repo.commit(
                message,
                author_name=self.config.author_name,
                author_email=self.config.author_email,
            )
        except GitCommandError as e:
            kind = (
                CommitErrorKind.NOTHING_TO_COMMIT
                if is_nothing_to_commit(e.output)
                else CommitErrorKind.INVALID_STATE
            )
            logger.error(f"Commit failed ({kind.value}): {e}")
            raise CommitError(kind, e.output or str(e), target=message, cause=e) from e

        self._push(repo, sha)
        return sha

    def push(self) -> str | None:
        """Pushes the current HEAD to the default branch without committing.

        This is the retry half of a pull-then-push reconciliation after
        `commit_and_push` raised a `PushError`.

        Returns:
            str | None: The sha that was pushed, None on an unborn branch.

        Raises:
            SessionNotReadyError: If the session is not READY.
            PushError: The remote was not updated.
        """
        repo = self._require("push")
        sha = repo.head()
        self._push(repo, sha)
        return sha

    def _push(self, repo: GitRepo, sha: str | None) -> None:
        remote, branch = self.config.remote_name, self.config.default_branch
        short = sha[:8] if sha else "HEAD"
        try:
            repo.push(remote, self.config.push_refspec, self.transport)
        except GitCommandError as e:
            kind = push_kind(classify_remote_failure(e.output, e.timed_out))
            logger.error(
                f"Commit {short} is local only; push to {remote}/{branch} "
                f"failed ({kind.value}): {e}"
            )
            raise PushError(
                kind,
                e.output or str(e),
                target=f"{remote}/{branch}",
                commit=sha,
                cause=e,
            ) from e
        logger.info(f"Pushed {short} to {remote}/{branch}")

    def pull(self) -> None:
        """Fetches the default branch and merges it into the working copy.

        On failure the working copy is left as git left it, possibly mid-merge
        (see `in_progress_operation`).

        Raises:
            SessionNotReadyError: If the session is not READY.
            PullError: AUTH_FAILED, NETWORK_FAILED, MERGE_CONFLICT or REMOTE_FAILED.
        """
        repo = self._require("pull")
        remote, branch = self.config.remote_name, self.config.default_branch
        logger.info(f"Pulling {remote}/{branch} into {self.path}")
        try:
            repo.pull(remote, branch, self.transport)
        except GitCommandError as e:
            failure = classify_remote_failure(e.output, e.timed_out)
            marker = repo.in_progress_operation()
            if marker:
                logger.warning(f"Pull left {self.path} with {marker} present")
                # A merge stopped half way, whatever git printed.
                if failure is RemoteFailure.OTHER:
                    failure = RemoteFailure.CONFLICT
            kind = pull_kind(failure)
            logger.error(f"Pull failed ({kind.value}): {e}")
            raise PullError(
                kind, e.output or str(e), target=f"{remote}/{branch}", cause=e
            ) from e

    def close(self) -> None:
        """Releases the repository handle.

        Closing an already closed session does nothing.

        Raises:
            SessionNotReadyError: If the session failed to construct.
        """
        if self.state is SessionState.CLOSED:
            return
        repo = self._require("close")
        repo.close()
        self._repo = None
        self.state = SessionState.CLOSED
        logger.info(f"Closed repository at {self.path}")

    def head(self) -> str | None:
        """The sha of the local HEAD commit, or None on an unborn branch."""
        return self._require("head").head()

    def history(self, limit: int = 10) -> list[CommitInfo]:
        """The most recent local commits, newest first."""
        return self._require("history").log(limit)

    def status(self) -> list[str]:
        """Porcelain status lines of the working tree."""
        return self._require("status").status_porcelain()

    def in_progress_operation(self) -> str | None:
        """The unfinished git operation (e.g. 'MERGE_HEAD') left in the tree, if any."""
        return self._require("in_progress_operation").in_progress_operation()

    def __enter__(self) -> "RepositorySyncSession":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.state is SessionState.READY:
            self.close()


class LockedSession:
    """Serializes access to a `RepositorySyncSession` from several threads.

    Every operation runs under one re-entrant lock, so a commit_and_push can
    never interleave with a pull or a stage on the same working directory.
    """

    def __init__(self, session: RepositorySyncSession):
        self.session = session
        self._lock = threading.RLock()

    @property
    def state(self) -> SessionState:
        return self.session.state

    def stage(self, file_name: str) -> None:
        with self._lock:
            self.session.stage(file_name)

    def unstage(self, file_name: str, keep_local: bool = False) -> None:
        with self._lock:
            self.session.unstage(file_name, keep_local=keep_local)

    def commit_and_push(self, message: str) -> str:
        with self._lock:
            return self.session.commit_and_push(message)

    def push(self) -> str | None:
        with self._lock:
            return self.session.push()

    def pull(self) -> None:
        with self._lock:
            self.session.pull()

    def close(self) -> None:
        with self._lock:
            self.session.close()

    def history(self, limit: int = 10) -> list[CommitInfo]:
        with self._lock:
            return self.session.history(limit)

    def status(self) -> list[str]:
        with self._lock:
            return self.session.status()

    def head(self) -> str | None:
        with self._lock:
            return self.session.head()

    def in_progress_operation(self) -> str | None:
        with self._lock:
            return self.session.in_progress_operation()

    def __enter__(self) -> "LockedSession":
        """Holds the lock for the whole block, then closes a READY session."""
        self._lock.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            self.session.__exit__(exc_type, exc, tb)
        finally:
            self._lock.release()
