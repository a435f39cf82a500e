"""
Scripted stand-ins for the paramiko objects the SSH domain talks to.

A FakeChannel replays a list of ``(stream, payload)`` events in order,
so tests control exactly how stdout and stderr chunks interleave.
"""
from __future__ import annotations

import io
import stat
from types import SimpleNamespace
from typing import Callable, Iterable, List, Optional

import paramiko
import pytest

from sshrun.core.interfaces import SessionFactory
from sshrun.domain.ssh.models import ConnectionConfig


class _Broken(bytes):
    """A chunk whose read fails, as when the transport dies mid-stream"""


class FakePipe:
    """Inbound buffer with paramiko's BufferedPipe feed/read shape"""

    def __init__(self) -> None:
        self.chunks: List[bytes] = []

    def feed(self, data: bytes) -> None:
        self.chunks.append(data)

    def read(self, nbytes: int) -> bytes:
        if not self.chunks:
            return b""
        chunk = self.chunks[0]
        if isinstance(chunk, _Broken):
            raise EOFError("stream ended")
        self.chunks[0] = chunk[nbytes:]
        if not self.chunks[0]:
            self.chunks.pop(0)
        return chunk[:nbytes]


class FakeChannel:
    """
    Feeds every scripted event into its stdout/stderr pipes when the
    command starts, so both streams can be ready at the same time.
    An ``("eof", ...)`` event makes the read at that point fail.
    """

    def __init__(
        self,
        events: Iterable[tuple] = (),
        exit_status: int = 0,
        reject: bool = False,
    ) -> None:
        self.events: List[tuple] = list(events)
        self.exit_status = exit_status
        self.reject = reject
        self.command: Optional[str] = None
        self.closed = False
        self.started = False
        self.agent_requested = False
        self.in_buffer = FakePipe()
        self.in_stderr_buffer = FakePipe()

    # paramiko.Channel API used by the executor
    def request_forward_agent(self, handler) -> bool:
        self.agent_requested = True
        return True

    def exec_command(self, command: str) -> None:
        self.command = command
        if self.reject:
            raise paramiko.SSHException("exec request rejected")
        for kind, payload in self.events:
            if kind == "stdout":
                self.in_buffer.feed(payload)
            elif kind == "stderr":
                self.in_stderr_buffer.feed(payload)
            else:
                self.in_buffer.feed(_Broken(b"!"))
        self.started = True

    def recv_ready(self) -> bool:
        return bool(self.in_buffer.chunks)

    def recv_stderr_ready(self) -> bool:
        return bool(self.in_stderr_buffer.chunks)

    def recv(self, nbytes: int) -> bytes:
        return self.in_buffer.read(nbytes)

    def recv_stderr(self, nbytes: int) -> bytes:
        return self.in_stderr_buffer.read(nbytes)

    def exit_status_ready(self) -> bool:
        return self.started

    def recv_exit_status(self) -> int:
        return self.exit_status

    def close(self) -> None:
        self.closed = True


class FakeTransport:
    def __init__(self, channels: Iterable[FakeChannel] = (), active: bool = True) -> None:
        self.channels = list(channels)
        self.opened: List[FakeChannel] = []
        self.active = active

    def open_session(self) -> FakeChannel:
        channel = self.channels.pop(0)
        self.opened.append(channel)
        return channel

    def is_active(self) -> bool:
        return self.active


class FakeRemoteFile:
    def __init__(self, sftp: "FakeSFTP", path: str, mode: str) -> None:
        self.sftp = sftp
        self.path = path
        self.mode = mode
        self.pipelined = False
        self.prefetched = None
        if "r" in mode:
            self._buf = io.BytesIO(sftp.files[path])
        else:
            self._buf = io.BytesIO()

    def set_pipelined(self, pipelined: bool = True) -> None:
        self.pipelined = pipelined

    def prefetch(self, file_size=None) -> None:
        self.prefetched = file_size

    def write(self, data: bytes) -> None:
        if self.sftp.fail_write:
            self.sftp.fail_write -= 1
            raise self.sftp.write_error("Socket is closed")
        self._buf.write(data)

    def read(self, size: int) -> bytes:
        return self._buf.read(size)

    def close(self) -> None:
        if "w" in self.mode:
            self.sftp.files[self.path] = self._buf.getvalue()

    def __enter__(self) -> "FakeRemoteFile":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class FakeSFTP:
    """In-memory SFTP server shared by every client a factory hands out"""

    def __init__(
        self,
        dirs: Iterable[str] = ("/", "/tmp"),
        fail_write: int = 0,
        write_error: type = EOFError,
    ) -> None:
        self.files: dict = {}
        self.dirs = set(dirs)
        self.mkdirs: List[str] = []
        self.fail_write = fail_write
        self.write_error = write_error
        self.closed = False

    def stat(self, path: str):
        if path in self.dirs:
            return SimpleNamespace(st_size=0, st_mode=stat.S_IFDIR | 0o755)
        if path in self.files:
            return SimpleNamespace(st_size=len(self.files[path]), st_mode=stat.S_IFREG | 0o644)
        raise FileNotFoundError(2, "No such file", path)

    def mkdir(self, path: str) -> None:
        self.mkdirs.append(path)
        self.dirs.add(path)

    def open(self, path: str, mode: str = "r") -> FakeRemoteFile:
        if "r" in mode and path not in self.files:
            raise FileNotFoundError(2, "No such file", path)
        return FakeRemoteFile(self, path, mode)

    def close(self) -> None:
        self.closed = True


class FakeClient:
    def __init__(self, transport: Optional[FakeTransport] = None, sftp: Optional[FakeSFTP] = None) -> None:
        self.transport = transport or FakeTransport()
        self.sftp = sftp
        self.sftp_opens = 0
        self.close_calls = 0

    def get_transport(self) -> FakeTransport:
        return self.transport

    def open_sftp(self) -> FakeSFTP:
        self.sftp_opens += 1
        return self.sftp

    def close(self) -> None:
        self.close_calls += 1


class FakeSessionFactory(SessionFactory):
    """Hands out clients built by ``make_client`` and counts connects"""

    def __init__(self, make_client: Callable[[], FakeClient]) -> None:
        self.make_client = make_client
        self.calls = 0
        self.clients: List[FakeClient] = []

    def create(self, config: ConnectionConfig) -> FakeClient:
        self.calls += 1
        client = self.make_client()
        self.clients.append(client)
        return client


@pytest.fixture
def sinks():
    return SimpleNamespace(stdout=io.StringIO(), stderr=io.StringIO())


@pytest.fixture
def config(sinks) -> ConnectionConfig:
    return ConnectionConfig(
        host="127.0.0.1",
        user="alice",
        identity_file="/keys/id_rsa",
        stdout=sinks.stdout,
        stderr=sinks.stderr,
    )


def channel_factory(*channels_per_connect: List[FakeChannel], active: bool = True) -> FakeSessionFactory:
    """Factory whose n-th connect returns a client serving the n-th channel list"""
    queue = [list(c) for c in channels_per_connect]

    def make() -> FakeClient:
        return FakeClient(FakeTransport(queue.pop(0), active=active))

    return FakeSessionFactory(make)
