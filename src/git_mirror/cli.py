import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .config import Config
from .constants import APP_NAME, LOG_FILE
from .errors import PushError, SyncError
from .session import RepositorySyncSession

logger = logging.getLogger(APP_NAME)
console = Console()
err_console = Console(stderr=True)


def setup_logging(
    verbose: bool = False,
    log_file: Path | None = None,
    max_log_size: int = 5 * 1024 * 1024,
) -> None:
    """Configures the logging subsystem.

    Args:
        verbose (bool, optional): Log DEBUG records instead of WARNING and above
                                  to stderr. Defaults to False.
        log_file (Path | None, optional): Also write INFO and above to this
                                          file, rotated at ``max_log_size``.
        max_log_size (int, optional): Bytes before the log file is rotated.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    logger.setLevel(logging.DEBUG)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_log_size,
            backupCount=5,
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def _report(error: SyncError) -> None:
    """Prints a failure in a form an operator can act on."""
    if isinstance(error, PushError) and error.commit:
        err_console.print(
            f"[bold yellow]Committed locally ({error.commit[:8]}) "
            f"but the push failed:[/bold yellow] {error.kind.value}"
        )
        err_console.print("   Pull, then publish again to reconcile.")
    else:
        err_console.print(
            f"[bold red]✘ {error.operation} failed:[/bold red] {error.kind.value}"
        )
    if error.message:
        err_console.print(f"   {error.message}", markup=False)


def _open(path: Path, config: Config) -> RepositorySyncSession | None:
    with console.status(f"Opening {path} and pulling...", spinner="dots"):
        session = RepositorySyncSession.open(path, config.transport, config.core)
    if session.error is not None:
        _report(session.error)
        return None
    if session.open_pull_error is not None:
        _report(session.open_pull_error)
    return session


def cmd_clone(url: str, path: Path, config: Config) -> int:
    with console.status(f"Cloning {url}...", spinner="dots"):
        session = RepositorySyncSession.clone(url, path, config.transport, config.core)
    if session.error is not None:
        _report(session.error)
        return 1
    session.close()
    console.print(f"[bold green]✔ Cloned into {path}[/bold green]")
    return 0


def cmd_pull(path: Path, config: Config) -> int:
    session = _open(path, config)
    if session is None:
        return 1
    with session:
        if session.open_pull_error is not None:
            return 1
    console.print("[bold green]✔ Up to date.[/bold green]")
    return 0


def cmd_publish(
    path: Path,
    message: str,
    add: list[str],
    remove: list[str],
    config: Config,
) -> int:
    session = _open(path, config)
    if session is None:
        return 1
    with session:
        try:
            for name in add:
                session.stage(name)
            for name in remove:
                session.unstage(name)
            with console.status("Committing and pushing...", spinner="dots"):
                sha = session.commit_and_push(message)
        except SyncError as e:
            _report(e)
            return 1
    console.print(f"[bold green]✔ Published {sha[:8]}[/bold green]")
    return 0


def cmd_status(path: Path, config: Config) -> int:
    session = _open(path, config)
    if session is None:
        return 1
    with session:
        table = Table(title=str(path), show_header=False, box=None)
        table.add_row("Remote", session.remote_url or "[dim]unknown[/dim]")
        table.add_row(
            "Branch", f"{session.config.remote_name}/{session.config.default_branch}"
        )
        table.add_row("HEAD", session.head() or "[dim]unborn[/dim]")
        marker = session.in_progress_operation()
        if marker:
            table.add_row("Blocked", f"[bold red]{marker}[/bold red]")
        changes = session.status()
        table.add_row("Changes", str(len(changes)) if changes else "clean")
        console.print(table)
        for entry in session.history(5):
            console.print(f"  [cyan]{entry.sha[:8]}[/cyan] {entry.subject}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Keep a local directory in sync with a remote git repository.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show debug logs on stderr"
    )
    parser.add_argument(
        "--config", type=Path, default=None, help="Extra TOML config file"
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=LOG_FILE,
        help=f"Log file (default: {LOG_FILE})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    clone_parser = subparsers.add_parser(
        "clone", help="Reset a directory and clone the remote into it"
    )
    clone_parser.add_argument("url", help="Remote URL (user@host:path.git)")
    clone_parser.add_argument("path", type=Path, help="Local directory")

    pull_parser = subparsers.add_parser("pull", help="Pull the default branch")
    pull_parser.add_argument("path", type=Path, help="Local repository")

    publish_parser = subparsers.add_parser(
        "publish", help="Stage files, commit and push"
    )
    publish_parser.add_argument("path", type=Path, help="Local repository")
    publish_parser.add_argument("-m", "--message", required=True, help="Commit message")
    publish_parser.add_argument(
        "--add", action="append", default=[], metavar="FILE", help="File to stage"
    )
    publish_parser.add_argument(
        "--remove", action="append", default=[], metavar="FILE", help="File to remove"
    )

    status_parser = subparsers.add_parser("status", help="Show repository state")
    status_parser.add_argument("path", type=Path, help="Local repository")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the git-mirror CLI."""
    args = build_parser().parse_args(argv)
    config = Config.load(args.config)
    setup_logging(args.verbose, args.log_file, config.limits.max_log_size)

    if args.command == "clone":
        return cmd_clone(args.url, args.path, config)
    elif args.command == "pull":
        return cmd_pull(args.path, config)
    elif args.command == "publish":
        return cmd_publish(args.path, args.message, args.add, args.remove, config)
    elif args.command == "status":
        return cmd_status(args.path, config)
    return 2


if __name__ == "__main__":
    sys.exit(main())
