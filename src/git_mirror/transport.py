import enum
import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from .constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_IDENTITY_FILE,
    DEFAULT_OPERATION_TIMEOUT,
)


class HostKeyPolicy(str, enum.Enum):
    """How the SSH client treats host keys of the remote.

    Values map onto OpenSSH's ``StrictHostKeyChecking`` option.
    """

    STRICT = "strict"
    ACCEPT_NEW = "accept-new"
    OFF = "off"

    @property
    def ssh_value(self) -> str:
        return {"strict": "yes", "accept-new": "accept-new", "off": "no"}[self.value]


@dataclass(frozen=True)
class TransportConfig:
    """Authenticated channel settings shared by every network operation of a session.

    The configuration is immutable; it is created once, handed to a session at
    construction and read by clone, push and pull.

    Attributes:
        identity_file (Path | None): Private key offered to the remote. None
            leaves key selection to ssh (agent, ~/.ssh/config).
        use_agent (bool): Whether keys held by ssh-agent may be offered in
            addition to ``identity_file``.
        host_key_policy (HostKeyPolicy): Host key trust policy.
        known_hosts_file (Path | None): Alternative known_hosts file.
        connect_timeout (int): Seconds allowed for the SSH handshake.
        operation_timeout (int | None): Seconds a network git command may run
            before it is killed. None disables the limit.
        ssh_binary (str): The ssh executable to invoke.
    """

    identity_file: Path | None = DEFAULT_IDENTITY_FILE
    use_agent: bool = False
    host_key_policy: HostKeyPolicy = HostKeyPolicy.STRICT
    known_hosts_file: Path | None = None
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    operation_timeout: int | None = DEFAULT_OPERATION_TIMEOUT
    ssh_binary: str = "ssh"
    extra_options: tuple[str, ...] = field(default_factory=tuple)

    def ssh_command(self) -> str:
        """Renders the settings as a shell-quoted command for ``GIT_SSH_COMMAND``.

        BatchMode is always on so that a missing key or an unknown host fails
        immediately instead of waiting for a passphrase or confirmation.

        Returns:
            str: The full ssh command line.
        """
        args = [self.ssh_binary]
        if self.identity_file is not None:
            args.extend(["-i", str(self.identity_file.expanduser())])
            if not self.use_agent:
                args.extend(["-o", "IdentitiesOnly=yes"])
        args.extend(["-o", "BatchMode=yes"])
        args.extend(["-o", f"StrictHostKeyChecking={self.host_key_policy.ssh_value}"])
        if self.known_hosts_file is not None:
            args.extend(
                ["-o", f"UserKnownHostsFile={self.known_hosts_file.expanduser()}"]
            )
        if self.connect_timeout > 0:
            args.extend(["-o", f"ConnectTimeout={self.connect_timeout}"])
        for option in self.extra_options:
            args.extend(["-o", option])
        return shlex.join(args)

    def environment(self, base: dict[str, str] | None = None) -> dict[str, str]:
        """Builds the child process environment for a network git command.

        Args:
            base (dict[str, str] | None, optional): The environment to extend.
                                                    Defaults to os.environ.

        Returns:
            dict[str, str]: A copy of ``base`` with the ssh command installed
                            and interactive credential prompts disabled.
        """
        env = dict(os.environ if base is None else base)
        env["GIT_SSH_COMMAND"] = self.ssh_command()
        env["GIT_TERMINAL_PROMPT"] = "0"
        if not self.use_agent:
            env.pop("SSH_AUTH_SOCK", None)
        return env
