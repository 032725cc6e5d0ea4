import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .constants import APP_NAME, GIT_DIR_NAME, GIT_LOCK_FILES
from .transport import TransportConfig

logger = logging.getLogger(APP_NAME)


class GitCommandError(RuntimeError):
    """A git process exited unsuccessfully or was killed after a timeout.

    Attributes:
        args_list (list[str]): The git arguments (without the leading 'git').
        returncode (int | None): The exit status, None when the process timed out.
        stdout (str): Captured standard output.
        stderr (str): Captured standard error.
        timed_out (bool): Whether the process was killed for exceeding its timeout.
    """

    def __init__(
        self,
        args_list: list[str],
        returncode: int | None,
        stdout: str = "",
        stderr: str = "",
        timed_out: bool = False,
    ):
        self.args_list = args_list
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.timed_out = timed_out
        detail = self.output or f"exit status {returncode}"
        if timed_out:
            detail = f"timed out: {detail}"
        super().__init__(f"Git error: {detail}")

    @property
    def output(self) -> str:
        """The stripped stderr and stdout, joined, for classification and display."""
        parts = (self.stderr, self.stdout)
        return "\n".join(p.strip() for p in parts if p and p.strip())


@dataclass(frozen=True)
class CommitInfo:
    """A single entry of the local history.

    Attributes:
        sha (str): The full commit hash.
        subject (str): The first line of the commit message.
    """

    sha: str
    subject: str


def _execute(
    args: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    timeout: int | None = None,
) -> str:
    """Runs git and returns its stripped stdout, raising GitCommandError on failure."""
    try:
        res = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
            env=env,
            timeout=timeout,
        )
        return res.stdout.strip()
    except subprocess.CalledProcessError as e:
        raise GitCommandError(args, e.returncode, e.stdout or "", e.stderr or "") from e
    except subprocess.TimeoutExpired as e:
        raise GitCommandError(
            args, None, _decode(e.stdout), _decode(e.stderr), timed_out=True
        ) from e


def _decode(data: str | bytes | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data


class GitRepo:
    """A handle on one local repository, driven through the git command line.

    The handle owns the working tree at ``path`` for as long as it is open.
    Network operations (clone, push, pull) take the session's
    `TransportConfig`, which supplies the ssh command, the environment and
    the timeout for the child process.

    Attributes:
        path (Path): The file system path to the repository root.
    """

    def __init__(self, path: Path):
        """Opens an existing repository.

        Args:
            path (Path): The path to the repository root directory.

        Raises:
            ValueError: If the path has no metadata directory, or git resolves
                        a repository other than ``path/.git`` (an invalid
                        metadata directory makes git fall back to a parent).
        """
        self.path = path
        self._closed = False
        expected = (self.path / GIT_DIR_NAME).resolve()
        if not expected.is_dir():
            raise ValueError(f"Not a git repository: {self.path}")
        try:
            git_dir = self._run(["rev-parse", "--absolute-git-dir"])
        except GitCommandError as e:
            raise ValueError(f"Corrupt git repository at {self.path}: {e}") from e
        if Path(git_dir).resolve() != expected:
            raise ValueError(
                f"Corrupt git repository at {self.path}: "
                f"git resolved the enclosing repository {git_dir}"
            )

    @classmethod
    def clone_into(
        cls,
        url: str,
        directory: Path,
        transport: TransportConfig,
        remote_name: str = "origin",
    ) -> "GitRepo":
        """Clones ``url`` into ``directory`` and opens the result.

        Args:
            url (str): The remote repository URL (e.g. 'git@host:team/repo.git').
            directory (Path): An existing, empty directory to clone into.
            transport (TransportConfig): Authenticated channel settings.
            remote_name (str, optional): The alias registered for ``url``.
                                         Defaults to 'origin'.

        Returns:
            GitRepo: A handle on the freshly cloned repository.

        Raises:
            GitCommandError: If the clone fails or times out.
        """
        target = directory.resolve()
        _execute(
            ["clone", "--origin", remote_name, "--", url, str(target)],
            cwd=target.parent,
            env=transport.environment(),
            timeout=transport.operation_timeout,
        )
        return cls(target)

    def _run(
        self,
        args: list[str],
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            env (dict[str, str] | None, optional): Environment for the subprocess.
                                                   Defaults to None (inherit).
            timeout (int | None, optional): Seconds before the process is killed.
                                            Defaults to None (no limit).

        Returns:
            str: The stripped stdout of the command.

        Raises:
            RuntimeError: If the handle has been closed.
            GitCommandError: If the git command fails or times out.
        """
        if self._closed:
            raise RuntimeError(f"Repository handle for {self.path} is closed")
        return _execute(args, cwd=self.path, env=env, timeout=timeout)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Releases the handle. Later calls on this instance raise RuntimeError."""
        self._closed = True

    def add(self, pattern: str) -> None:
        """Stages new and modified content matching ``pattern``."""
        self._run(["add", "--", pattern])

    def remove(self, pattern: str, keep_local: bool = False) -> None:
        """Marks paths matching ``pattern`` for removal in the next commit.

        The removal is forced, so a path that was only just staged is dropped
        from the index as well.

        Args:
            pattern (str): The path or pathspec to remove.
            keep_local (bool, optional): Keep the file in the working tree and
                                         only untrack it. Defaults to False.
        """
        cmd = ["rm", "-r", "-f"]
        if keep_local:
            cmd.append("--cached")
        cmd.extend(["--", pattern])
        self._run(cmd)

    def commit(
        self,
        message: str,
        author_name: str | None = None,
        author_email: str | None = None,
    ) -> str:
        """Creates a new commit from the index.

        Args:
            message (str): The commit message.
            author_name (str | None, optional): Overrides user.name for this commit.
            author_email (str | None, optional): Overrides user.email for this commit.

        Returns:
            str: The SHA-1 hash of the new commit.
        """
        cmd: list[str] = []
        if author_name:
            cmd.extend(["-c", f"user.name={author_name}"])
        if author_email:
            cmd.extend(["-c", f"user.email={author_email}"])
        cmd.extend(["commit", "-m", message])
        self._run(cmd)
        return self._run(["rev-parse", "HEAD"])

    def push(self, remote: str, refspec: str, transport: TransportConfig) -> None:
        """Pushes ``refspec`` to ``remote`` over the configured transport."""
        self._run(
            ["push", remote, refspec],
            env=transport.environment(),
            timeout=transport.operation_timeout,
        )

    def pull(self, remote: str, branch: str, transport: TransportConfig) -> None:
        """Fetches ``branch`` from ``remote`` and merges it into the current branch."""
        self._run(
            ["pull", "--no-rebase", "--no-edit", remote, branch],
            env=transport.environment(),
            timeout=transport.operation_timeout,
        )

    def head(self) -> str | None:
        """Resolves HEAD to a full SHA-1 hash, or None on an unborn branch."""
        try:
            return self._run(["rev-parse", "--verify", "--quiet", "HEAD"]) or None
        except GitCommandError as e:
            logger.debug(f"rev-parse HEAD failed in {self.path}: {e}")
            return None

    def log(self, limit: int = 10) -> list[CommitInfo]:
        """Lists the most recent commits reachable from HEAD, newest first.

        Args:
            limit (int, optional): Maximum number of entries. Defaults to 10.

        Returns:
            list[CommitInfo]: The commits, or an empty list on an unborn branch.
        """
        if self.head() is None:
            return []
        output = self._run(["log", f"-{limit}", "--format=%H%x09%s"])
        entries = []
        for line in output.splitlines():
            sha, _, subject = line.partition("\t")
            entries.append(CommitInfo(sha=sha, subject=subject))
        return entries

    def remote_url(self, remote: str) -> str | None:
        """Returns the URL configured for ``remote``, or None if it is not defined."""
        try:
            return self._run(["remote", "get-url", remote]) or None
        except GitCommandError as e:
            logger.debug(f"No URL for remote '{remote}' in {self.path}: {e}")
            return None

    def status_porcelain(self, path: str | None = None) -> list[str]:
        """Returns the porcelain (machine-readable) status of the repository.

        Args:
            path (str | None, optional): A specific path to check status for.

        Returns:
            list[str]: A list of status lines returned by `git status --porcelain`.
        """
        cmd = ["status", "--porcelain"]
        if path:
            cmd.extend(["--", path])
        output = self._run(cmd)
        return output.splitlines() if output else []

    def in_progress_operation(self) -> str | None:
        """Names the unfinished git operation blocking the working tree, if any.

        Returns:
            str | None: The marker found (e.g. 'MERGE_HEAD'), or None.
        """
        git_dir = self.path / GIT_DIR_NAME
        for marker in GIT_LOCK_FILES:
            if (git_dir / marker).exists():
                return marker
        return None
