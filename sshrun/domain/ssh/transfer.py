"""
File transfer over the SFTP sub-session
"""
import os
import stat
from pathlib import Path
from typing import Callable, Optional

import paramiko

from ...core.constants import DEFAULT_RETRY_ATTEMPTS, TRANSFER_CHUNK_SIZE
from ...core.exceptions import TransferError, TransientIOError
from ...core.logging import get_logger
from ...core.retry import RetryPolicy
from ...core.utils import remote_parents
from .manager import ConnectionManager
from .models import TransferEvent, TransferEventKind

logger = get_logger(__name__)

TransferListener = Callable[[TransferEvent], None]


class FileTransferService:
    """
    Upload and download single files.

    Each transfer emits OPEN, MKDIR (per directory created), PUT/GET
    (per chunk), CLOSE and FINISH events. Events are logged and passed
    to an optional listener; they never change the outcome.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        chunk_size: int = TRANSFER_CHUNK_SIZE,
    ):
        self.manager = manager
        self.chunk_size = chunk_size
        self.retry = RetryPolicy(
            max_attempts=max_attempts,
            retry_on=(EOFError,),
            on_retry=lambda attempt, exc: self.manager.reset(),
        )

    # --------------------
    # Public API
    # --------------------
    def upload(self, local: str, remote: str, listener: Optional[TransferListener] = None) -> bool:
        """
        Upload a local file to the remote host.

        Missing remote parent directories are created.

        Raises:
            TransferError: If the upload fails for a non-transient reason
        """
        local, remote = str(local), str(remote)
        logger.info(f"upload({local!r}, {remote!r})")
        self.retry.call(
            lambda: self._guard("upload", local, remote, self._upload_once, listener),
            label=f"upload({local!r}, {remote!r})",
        )
        return True

    def download(self, remote: str, local: str, listener: Optional[TransferListener] = None) -> bool:
        """
        Download a remote file to the local host.

        Missing local parent directories are created.

        Raises:
            TransferError: If the download fails for a non-transient reason
        """
        remote, local = str(remote), str(local)
        logger.info(f"download({remote!r}, {local!r})")
        self.retry.call(
            lambda: self._guard("download", local, remote, self._download_once, listener),
            label=f"download({remote!r}, {local!r})",
        )
        return True

    # --------------------
    # Internals
    # --------------------
    def _guard(self, op: str, local: str, remote: str, fn, listener) -> None:
        def emit(event: TransferEvent) -> None:
            logger.debug(event.describe())
            if listener:
                listener(event)

        try:
            fn(local, remote, emit)
        except (EOFError, TransferError):
            raise
        except (OSError, paramiko.SSHException) as e:
            where = f"upload({local!r} -> {remote!r})" if op == "upload" else f"download({remote!r} -> {local!r})"
            # a dead transport surfaces as "Socket is closed"; that is retryable
            if self.manager.is_connected and not self.manager.is_alive:
                raise TransientIOError(
                    f"{where}: connection to {self.manager.config.label()} dropped: {e}"
                ) from e
            raise TransferError(f"{where} failed: {e}") from e

    def _upload_once(self, local: str, remote: str, emit: TransferListener) -> None:
        sftp = self.manager.sftp()
        size = os.path.getsize(local)

        emit(TransferEvent(TransferEventKind.OPEN, local, remote, size=size))
        for directory in remote_parents(remote):
            if not _remote_dir_exists(sftp, directory):
                emit(TransferEvent(TransferEventKind.MKDIR, local, remote, path=directory))
                sftp.mkdir(directory)

        offset = 0
        with open(local, "rb") as src, sftp.open(remote, "wb") as dst:
            dst.set_pipelined(True)
            while True:
                data = src.read(self.chunk_size)
                if not data:
                    break
                dst.write(data)
                emit(TransferEvent(TransferEventKind.PUT, local, remote, offset=offset, size=len(data)))
                offset += len(data)
        emit(TransferEvent(TransferEventKind.CLOSE, local, remote, size=offset))

        if offset != size:
            raise TransferError(
                f"upload({local!r} -> {remote!r}) wrote {offset} of {size} bytes"
            )
        emit(TransferEvent(TransferEventKind.FINISH, local, remote, size=offset))

    def _download_once(self, local: str, remote: str, emit: TransferListener) -> None:
        sftp = self.manager.sftp()
        size = sftp.stat(remote).st_size or 0

        emit(TransferEvent(TransferEventKind.OPEN, local, remote, size=size))
        parent = Path(local).parent
        missing = [p for p in reversed([parent, *parent.parents]) if not p.exists()]
        for directory in missing:
            emit(TransferEvent(TransferEventKind.MKDIR, local, remote, path=str(directory)))
            directory.mkdir()

        offset = 0
        with sftp.open(remote, "rb") as src, open(local, "wb") as dst:
            src.prefetch(size)
            while True:
                data = src.read(self.chunk_size)
                if not data:
                    break
                dst.write(data)
                emit(TransferEvent(TransferEventKind.GET, local, remote, offset=offset, size=len(data)))
                offset += len(data)
        emit(TransferEvent(TransferEventKind.CLOSE, local, remote, size=offset))

        if offset != size:
            raise TransferError(
                f"download({remote!r} -> {local!r}) read {offset} of {size} bytes"
            )
        emit(TransferEvent(TransferEventKind.FINISH, local, remote, size=offset))


def _remote_dir_exists(sftp: paramiko.SFTPClient, path: str) -> bool:
    try:
        attrs = sftp.stat(path)
    except FileNotFoundError:
        return False
    if attrs.st_mode is not None and not stat.S_ISDIR(attrs.st_mode):
        raise TransferError(f"remote path {path!r} exists and is not a directory")
    return True
