"""
Rich-based logging for sshrun

Logs go to stderr through a RichHandler so that remote command output
echoed on stdout stays clean. Remote stream headers, SSH options and
transfer events are emitted at DEBUG.
"""
import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install as install_traceback


_stdout_console = Console()
_stderr_console = Console(stderr=True)

install_traceback(show_locals=False, width=120)

# Third-party loggers that flood DEBUG with per-packet detail
_NOISY_LOGGERS = ("paramiko",)

_FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Path] = None,
    rich_tracebacks: bool = True,
) -> None:
    """
    Route all logging to the stderr console, and optionally to a file.

    Replaces any handlers already on the root logger, so calling it
    again (e.g. from a second CLI invocation) does not duplicate lines.

    Args:
        level: Level name (DEBUG, INFO, ...) or number
        log_file: Also append plain-text records here
        rich_tracebacks: Render exception tracebacks with rich
    """
    log_level = _resolve_level(level)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()

    console_handler = RichHandler(
        console=_stderr_console,
        show_time=True,
        show_path=True,
        show_level=True,
        rich_tracebacks=rich_tracebacks,
        # remote output may contain [brackets]; never parse it as markup
        markup=False,
    )
    console_handler.setLevel(log_level)
    root.addHandler(console_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.INFO))

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        root.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Module logger; call with ``__name__``"""
    return logging.getLogger(name)


def get_stdout_console() -> Console:
    """Console for user-facing output (progress bars, dry-run commands)"""
    return _stdout_console


def get_stderr_console() -> Console:
    """Console for errors, prompts and log records"""
    return _stderr_console
