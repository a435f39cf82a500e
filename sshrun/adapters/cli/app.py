"""
Main CLI application
"""
import typer
from pathlib import Path
from typing import Optional

from ...core.logging import setup_logging
from .commands import register_ssh_commands

# Create main app
app = typer.Typer(
    name="sshrun",
    add_completion=False,
    help="Run commands and move files over SSH, directly or through a proxy host",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

register_ssh_commands(app)


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Log file path",
    ),
):
    """
    sshrun - remote command execution and file transfer

    Use subcommands to perform different operations:
    - exec: Run a command on a remote host
    - upload / download: Copy a single file over SFTP
    - console: Open an interactive ssh session
    """
    setup_logging(level=log_level, log_file=log_file)


def run():
    """CLI entry point"""
    app()


if __name__ == "__main__":
    run()
