"""Shared fixtures: a throwaway bare remote driven by the real git binary."""

import shutil
import subprocess
from pathlib import Path

import pytest

requires_git = pytest.mark.skipif(
    shutil.which("git") is None, reason="git executable not available"
)


def git(cwd: Path, *args: str) -> str:
    """Runs a git command for test setup and returns its stripped stdout."""
    res = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return res.stdout.strip()


@pytest.fixture
def git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolates git from the user's configuration and supplies a commit identity."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(home / ".gitconfig"))
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Author")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "author@example.com")


@pytest.fixture
def remote_repo(tmp_path: Path, git_env: None) -> Path:
    """Creates a bare repository whose 'master' branch holds one commit (README)."""
    bare = tmp_path / "remote.git"
    bare.mkdir()
    git(bare, "init", "--bare", "--quiet")
    git(bare, "symbolic-ref", "HEAD", "refs/heads/master")

    seed = tmp_path / "seed"
    seed.mkdir()
    git(seed, "init", "--quiet")
    git(seed, "symbolic-ref", "HEAD", "refs/heads/master")
    (seed / "README").write_text("hello\n")
    git(seed, "add", "README")
    git(seed, "commit", "--quiet", "-m", "initial")
    git(seed, "remote", "add", "origin", str(bare))
    git(seed, "push", "--quiet", "origin", "master")
    return bare


def remote_log(bare: Path) -> list[str]:
    """Commit subjects on the remote's master branch, newest first."""
    output = git(bare, "log", "--format=%s", "master")
    return output.splitlines()
