"""Tests for the Command Line Interface (CLI) module."""

import logging
from pathlib import Path
from typing import Iterator
from unittest.mock import MagicMock

import pytest

from git_mirror import cli
from git_mirror.config import Config
from git_mirror.constants import APP_NAME
from git_mirror.errors import (
    CloneError,
    CloneErrorKind,
    OpenError,
    PullError,
    PullErrorKind,
    PushError,
    PushErrorKind,
    StageError,
)
from git_mirror.git_wrapper import CommitInfo


@pytest.fixture(autouse=True)
def restore_logger() -> Iterator[None]:
    """Removes handlers that setup_logging attaches during a test."""
    logger = logging.getLogger(APP_NAME)
    handlers, level = list(logger.handlers), logger.level
    yield
    for handler in logger.handlers[len(handlers) :]:
        handler.close()
    logger.handlers = handlers
    logger.setLevel(level)


@pytest.fixture
def session_cls(mocker: MagicMock) -> MagicMock:
    """Mocks config loading and the session class used by the CLI."""
    mocker.patch("git_mirror.cli.Config.load", return_value=Config())
    mocker.patch("git_mirror.cli.setup_logging")
    cls = mocker.patch("git_mirror.cli.RepositorySyncSession")
    for factory in (cls.open, cls.clone):
        factory.return_value.error = None
        factory.return_value.open_pull_error = None
    return cls


def test_publish_stages_commits_and_pushes(
    session_cls: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    """Verifies that `publish` stages, removes and pushes in order."""
    session = session_cls.open.return_value
    session.commit_and_push.return_value = "a" * 40

    code = cli.main(
        ["publish", "/srv/repo", "-m", "update", "--add", "a.txt", "--remove", "b.txt"]
    )

    assert code == 0
    session.stage.assert_called_once_with("a.txt")
    session.unstage.assert_called_once_with("b.txt")
    session.commit_and_push.assert_called_once_with("update")
    assert "Published aaaaaaaa" in capsys.readouterr().out


def test_publish_reports_local_only_commit(
    session_cls: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    """Verifies that a failed push is shown distinctly from a failed commit."""
    session = session_cls.open.return_value
    session.commit_and_push.side_effect = PushError(
        PushErrorKind.REJECTED, "fetch first", target="origin/master", commit="b" * 40
    )

    code = cli.main(["publish", "/srv/repo", "-m", "update"])

    assert code == 1
    err = capsys.readouterr().err
    assert "Committed locally (bbbbbbbb)" in err
    assert "rejected" in err


def test_publish_stops_on_stage_error(
    session_cls: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    session = session_cls.open.return_value
    session.stage.side_effect = StageError("pathspec did not match", target="x")

    code = cli.main(["publish", "/srv/repo", "-m", "m", "--add", "x"])

    assert code == 1
    session.commit_and_push.assert_not_called()
    assert "stage failed" in capsys.readouterr().err


def test_open_failure_exits(
    session_cls: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    session_cls.open.return_value.error = OpenError("Not a git repository", target="/x")

    assert cli.main(["status", "/x"]) == 1
    assert "open failed" in capsys.readouterr().err


def test_clone_failure_exits(
    session_cls: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    session_cls.clone.return_value.error = CloneError(
        CloneErrorKind.TRANSPORT_FAILED, "Permission denied (publickey).", target="u"
    )

    code = cli.main(["clone", "git@example.com:team/repo.git", "/srv/repo"])

    assert code == 1
    session_cls.clone.assert_called_once()
    assert "transport_failed" in capsys.readouterr().err


def test_clone_success_closes_session(
    session_cls: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    assert cli.main(["clone", "git@example.com:team/repo.git", "/srv/repo"]) == 0
    session_cls.clone.return_value.close.assert_called_once()
    assert "Cloned into /srv/repo" in capsys.readouterr().out


def test_pull_reports_initial_pull_failure(
    session_cls: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    session_cls.open.return_value.open_pull_error = PullError(
        PullErrorKind.MERGE_CONFLICT, "CONFLICT in README", target="origin/master"
    )

    assert cli.main(["pull", "/srv/repo"]) == 1
    assert "merge_conflict" in capsys.readouterr().err


def test_status_renders_state(
    session_cls: MagicMock, capsys: pytest.CaptureFixture
) -> None:
    """Verifies that `status` shows HEAD, pending changes and recent history."""
    session = session_cls.open.return_value
    session.remote_url = "git@example.com:team/repo.git"
    session.config.remote_name = "origin"
    session.config.default_branch = "master"
    session.head.return_value = "c" * 40
    session.in_progress_operation.return_value = "MERGE_HEAD"
    session.status.return_value = [" M README"]
    session.history.return_value = [CommitInfo(sha="c" * 40, subject="initial")]

    assert cli.main(["status", "/srv/repo"]) == 0

    out = capsys.readouterr().out
    assert "git@example.com:team/repo.git" in out
    assert "MERGE_HEAD" in out
    assert "initial" in out


def test_setup_logging_writes_file(tmp_path: Path) -> None:
    """Verifies that INFO records reach the rotating log file."""
    log_file = tmp_path / "logs" / "git-mirror.log"

    cli.setup_logging(verbose=False, log_file=log_file, max_log_size=1024)
    logging.getLogger(APP_NAME).info("Cloned something")

    for handler in logging.getLogger(APP_NAME).handlers:
        handler.flush()
    text = log_file.read_text()
    assert "INFO: Cloned something" in text
