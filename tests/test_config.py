"""Tests for the configuration management subsystem."""

import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from git_mirror.config import Config, parse_optional_time, parse_size, parse_time
from git_mirror.transport import HostKeyPolicy


@pytest.fixture(autouse=True)
def no_global_config(tmp_path: Path, mocker: MagicMock) -> Path:
    """Points the global CONFIG_FILE at a path that does not exist yet."""
    path = tmp_path / "global" / "config.toml"
    mocker.patch("git_mirror.config.CONFIG_FILE", path)
    return path


def test_config_defaults() -> None:
    """Verifies that the configuration initializes with sensible defaults."""
    conf = Config.load()
    assert conf.core.remote_name == "origin"
    assert conf.core.default_branch == "master"
    assert conf.core.push_refspec == "HEAD:refs/heads/master"
    assert conf.transport.identity_file == Path("~/.ssh/id_rsa")
    assert conf.transport.host_key_policy is HostKeyPolicy.STRICT
    assert conf.transport.operation_timeout == 600
    assert conf.limits.max_log_size == 5 * 1024 * 1024


def test_config_load_merges_layers(tmp_path: Path, no_global_config: Path) -> None:
    """Verifies the cascading merge logic (Defaults -> Global -> Explicit file)."""
    no_global_config.parent.mkdir()
    no_global_config.write_text(
        '[core]\nremote_name = "upstream"\ndefault_branch = "main"\n'
        '[transport]\nidentity_file = "~/.ssh/deploy"\nconnect_timeout = "1m"\n'
    )
    local = tmp_path / "service.toml"
    local.write_text(
        '[core]\ndefault_branch = "sync"\n'
        '[transport]\nhost_key_policy = "accept-new"\noperation_timeout = "off"\n'
        'extra_options = ["ServerAliveInterval=15"]\n'
        '[limits]\nmax_log_size = "1MB"\n'
    )

    conf = Config.load(local)

    assert conf.core.remote_name == "upstream"  # From Global
    assert conf.core.default_branch == "sync"  # Explicit overrides Global
    assert conf.transport.identity_file == Path("~/.ssh/deploy").expanduser()
    assert conf.transport.connect_timeout == 60
    assert conf.transport.host_key_policy is HostKeyPolicy.ACCEPT_NEW
    assert conf.transport.operation_timeout is None
    assert conf.transport.extra_options == ("ServerAliveInterval=15",)
    assert conf.limits.max_log_size == 1024 * 1024


def test_config_empty_identity_unsets_key(tmp_path: Path) -> None:
    local = tmp_path / "c.toml"
    local.write_text('[transport]\nidentity_file = ""\nuse_agent = true\n')

    conf = Config.load(local)

    assert conf.transport.identity_file is None
    assert conf.transport.use_agent is True


def test_config_missing_explicit_file(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    conf = Config.load(tmp_path / "absent.toml")
    assert conf.core.remote_name == "origin"
    assert "does not exist" in caplog.text


def test_config_syntax_error_is_logged(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    local = tmp_path / "broken.toml"
    local.write_text("[core\nremote_name = ")

    conf = Config.load(local)

    assert conf.core.remote_name == "origin"
    assert "Config syntax error" in caplog.text


def test_parse_size() -> None:
    """Verifies that human-readable sizes are correctly converted to bytes."""
    assert parse_size(100) == 100
    assert parse_size("100kb") == 102400
    assert parse_size("10 MB") == 10485760

    with pytest.raises(ValueError, match=r"Invalid size format '100 bits'"):
        parse_size("100 bits")


def test_parse_time() -> None:
    """Verifies that human-readable times are correctly converted to seconds."""
    assert parse_time(50) == 50
    assert parse_time("30s") == 30
    assert parse_time("10 min") == 600
    assert parse_time("1.5h") == 5400
    assert parse_optional_time("off") is None
    assert parse_optional_time(0) is None
    assert parse_optional_time("2m") == 120

    with pytest.raises(ValueError, match=r"Invalid time format '10 lightyears'"):
        parse_time("10 lightyears")


def test_config_invalid_keys_and_values(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Verifies that unknown keys are ignored and bad values fall back to defaults."""
    caplog.set_level(logging.WARNING)

    local = tmp_path / "c.toml"
    local.write_text(
        "[transport]\n"
        'connect_timeout = "fast"\n'
        'host_key_policy = "trust-me"\n'
        'password = "hunter2"\n'
        "[limits]\n"
        'max_log_size = "10 gallons"\n'
    )

    conf = Config.load(local)

    assert conf.transport.connect_timeout == 30
    assert conf.transport.host_key_policy is HostKeyPolicy.STRICT
    assert conf.limits.max_log_size == 5242880

    assert "Unknown config keys in [transport]: password" in caplog.text
    assert (
        "Config error in [transport].connect_timeout: Invalid time format"
        in caplog.text
    )
    assert "Config error in [transport].host_key_policy" in caplog.text
    assert "Config error in [limits].max_log_size: Invalid size format" in caplog.text
