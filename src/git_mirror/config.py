import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_BRANCH,
    DEFAULT_REMOTE,
)
from .transport import HostKeyPolicy, TransportConfig

logger = logging.getLogger(APP_NAME)


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | str) -> int:
    """Converts human-readable time strings (e.g., '1hr', '30s') to seconds."""
    if isinstance(value, int):
        return value
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    return int(num * multiplier[unit])


def parse_optional_path(value: str | None) -> Path | None:
    """Converts a path string to a Path; an empty string means 'unset'."""
    if value is None or str(value).strip() == "":
        return None
    return Path(str(value)).expanduser()


def parse_ssh_options(value: str | list[str]) -> tuple[str, ...]:
    """Normalizes one or more `Key=Value` ssh options to a tuple."""
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def parse_optional_time(value: int | str | None) -> int | None:
    """Like `parse_time`, but 0, 'none' and 'off' disable the limit."""
    if value is None or str(value).strip().lower() in ("none", "off", "0"):
        return None
    return parse_time(value)


@dataclass(frozen=True)
class SessionConfig:
    """Repository binding settings.

    Attributes:
        remote_name (str): The alias of the remote endpoint.
        default_branch (str): The branch pushed to and pulled from.
        author_name (str | None): Commit author name; None defers to git config.
        author_email (str | None): Commit author email; None defers to git config.
    """

    remote_name: str = DEFAULT_REMOTE
    default_branch: str = DEFAULT_BRANCH
    author_name: str | None = None
    author_email: str | None = None

    @property
    def push_refspec(self) -> str:
        """The refspec publishing the checked-out commit to the default branch."""
        return f"HEAD:refs/heads/{self.default_branch}"


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for log files before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


# Keys routed through a parser before being applied.
_PARSERS: dict[str, Any] = {
    "max_log_size": parse_size,
    "connect_timeout": parse_time,
    "operation_timeout": parse_optional_time,
    "identity_file": parse_optional_path,
    "known_hosts_file": parse_optional_path,
    "host_key_policy": HostKeyPolicy,
    "extra_options": parse_ssh_options,
}


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        core (SessionConfig): Remote/branch binding and commit identity.
        transport (TransportConfig): SSH transport settings.
        limits (LimitsConfig): Resource limits.
    """

    core: SessionConfig = field(default_factory=SessionConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads and merges configuration from defaults, the global file and ``path``.

        Args:
            path (Path | None): An explicit TOML file applied on top of the
                                global configuration.

        Returns:
            Config: The fully merged configuration object.
        """
        instance = cls()
        if CONFIG_FILE.exists():
            instance._merge_from_file(CONFIG_FILE)

        if path is not None:
            if path.exists():
                instance._merge_from_file(path)
            else:
                logger.warning(f"Config file {path} does not exist. Ignoring.")

        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if not data:
                return

            if "core" in data:
                self.core = self._update_dataclass("core", self.core, data["core"])
            if "transport" in data:
                self.transport = self._update_dataclass(
                    "transport", self.transport, data["transport"]
                )
            if "limits" in data:
                self.limits = self._update_dataclass(
                    "limits", self.limits, data["limits"]
                )

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: "
                f"{', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                parser = _PARSERS.get(k)
                filtered_updates[k] = parser(v) if parser else v
            except (TypeError, ValueError) as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
