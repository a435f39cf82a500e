from __future__ import annotations

import os
from typing import NoReturn, Optional

from .core.interfaces import SessionFactory
from .core.logging import get_logger
from .domain.ssh.commands import build_console_argv, build_console_command
from .domain.ssh.executor import CommandExecutor
from .domain.ssh.manager import ConnectionManager
from .domain.ssh.models import ConnectionConfig, ExecResult
from .domain.ssh.transfer import FileTransferService, TransferListener

logger = get_logger(__name__)


class SSH:
    """
    One connection to one remote host.

    - exec / upload / download share a lazily-opened session
    - transient end-of-stream failures are retried (3 attempts)
    - console() replaces the current process with an interactive ssh
    - supports with-context management

    Example::

        config = ConnectionConfig(host="127.0.0.1", user="alice",
                                  identity_file="~/.ssh/id_rsa")
        with SSH(config) as ssh:
            result = ssh.exec("hostname -f", silence=True)
            print(result.text, result.exit_status)
    """

    def __init__(self, config: ConnectionConfig, factory: Optional[SessionFactory] = None) -> None:
        self.config = config
        self.manager = ConnectionManager(config, factory)
        self.executor = CommandExecutor(self.manager)
        self.transfer = FileTransferService(self.manager)

    def __repr__(self) -> str:
        return self.config.label()

    # --------------------
    # Operations
    # --------------------
    def exec(self, command: str, silence: bool = False) -> ExecResult:
        """Run a command; see CommandExecutor.exec"""
        logger.debug(f"config({self.config!r})")
        return self.executor.exec(command, silence=silence)

    def upload(self, local: str, remote: str, listener: Optional[TransferListener] = None) -> bool:
        logger.debug(f"config({self.config!r})")
        return self.transfer.upload(local, remote, listener)

    def download(self, remote: str, local: str, listener: Optional[TransferListener] = None) -> bool:
        logger.debug(f"config({self.config!r})")
        return self.transfer.download(remote, local, listener)

    def console_command(self) -> str:
        return build_console_command(self.config)

    def console(self) -> NoReturn:
        """
        Replace the current process with an interactive ssh session.

        Only call this as the last action of a command-line entry point;
        it never returns.
        """
        argv = build_console_argv(self.config)
        logger.info(f"console({build_console_command(self.config)!r})")
        os.execvp(argv[0], argv)

    def close(self) -> None:
        self.manager.close()

    # --------------------
    # Context manager
    # --------------------
    def __enter__(self) -> SSH:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
