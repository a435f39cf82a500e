"""
Remote command execution over a session channel

A command runs on its own channel. Output arrives on two streams
(stdout and the stderr "extended data" stream); each chunk is handed to
the matching handler as soon as it is read, so the accumulated output
keeps the order in which chunks arrived across both streams.
"""
import codecs
import queue
from enum import Enum
from typing import Callable, List, Optional, TextIO, Tuple

import paramiko
from paramiko.agent import AgentRequestHandler

from ...core.constants import CHANNEL_POLL_INTERVAL, DEFAULT_RETRY_ATTEMPTS
from ...core.exceptions import CommandError, TransientIOError
from ...core.logging import get_logger
from ...core.retry import RetryPolicy
from .manager import ConnectionManager
from .models import ExecResult

logger = get_logger(__name__)


class StreamKind(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


class HeaderState(Enum):
    NONE = 0
    STDOUT_ACTIVE = 1
    STDERR_ACTIVE = 2


class HeaderTracker:
    """
    Logs a separator when output switches from one stream to the other.

    Consecutive chunks on the same stream produce a single header.
    """

    def __init__(self, label: str, emit: Optional[Callable[[str], None]] = None):
        self.label = label
        self.state = HeaderState.NONE
        self.transitions = 0
        self._emit = emit or logger.debug

    def observe(self, kind: StreamKind) -> bool:
        target = (
            HeaderState.STDOUT_ACTIVE if kind is StreamKind.STDOUT
            else HeaderState.STDERR_ACTIVE
        )
        if self.state is target:
            return False
        self.state = target
        self.transitions += 1
        self._emit(_banner(kind.value.upper(), self.label))
        return True


def _banner(tag: str, label: str) -> str:
    return f"===[{tag}]===[{tag}]===[{label}]===[{tag}]===[{tag}]==="


class _StreamSink:
    """Forwards one stream's bytes to a text sink, decoding incrementally"""

    def __init__(self, sink: TextIO, silence: bool):
        self.sink = sink
        self.silence = silence
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def write(self, data: bytes) -> None:
        if self.silence:
            return
        text = self._decoder.decode(data)
        if text:
            self.sink.write(text)
            self.sink.flush()

    def finish(self) -> None:
        if self.silence:
            return
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self.sink.write(tail)
            self.sink.flush()


class ArrivalOrder:
    """
    Replays a channel's stdout and stderr in the order the bytes arrived.

    paramiko's transport thread feeds the two streams into separate
    buffers, so polling them later cannot tell which chunk came first.
    Each buffer's ``feed`` is wrapped to queue a ``(kind, size)`` marker
    right after the bytes land; the calling thread then reads exactly
    that many bytes from that stream, marker by marker.
    """

    def __init__(self, channel):
        self.channel = channel
        self.markers: "queue.Queue[Tuple[StreamKind, int]]" = queue.Queue()
        self._tap(channel.in_buffer, StreamKind.STDOUT)
        self._tap(channel.in_stderr_buffer, StreamKind.STDERR)

    def _tap(self, pipe, kind: StreamKind) -> None:
        feed = pipe.feed

        def tapped(data) -> None:
            feed(data)
            if data:
                self.markers.put((kind, len(data)))

        pipe.feed = tapped

    def _read(self, kind: StreamKind, size: int) -> bytes:
        recv = self.channel.recv if kind is StreamKind.STDOUT else self.channel.recv_stderr
        parts: List[bytes] = []
        while size > 0:
            data = recv(size)
            if not data:
                break
            parts.append(data)
            size -= len(data)
        return b"".join(parts)

    def pump(self, on_data: Callable[[StreamKind, bytes], None]) -> None:
        """Dispatch chunks until the channel reports exit and no marker is left"""
        while True:
            try:
                kind, size = self.markers.get(timeout=CHANNEL_POLL_INTERVAL)
            except queue.Empty:
                finished = self.channel.exit_status_ready() or self.channel.closed
                if finished and self.markers.empty():
                    return
                continue
            data = self._read(kind, size)
            if data:
                on_data(kind, data)


class CommandExecutor:
    """Runs commands on the session owned by a ConnectionManager"""

    def __init__(self, manager: ConnectionManager, max_attempts: int = DEFAULT_RETRY_ATTEMPTS):
        self.manager = manager
        self.retry = RetryPolicy(
            max_attempts=max_attempts,
            retry_on=(EOFError,),
            on_retry=lambda attempt, exc: self.manager.reset(),
        )

    def exec(self, command: str, silence: bool = False) -> ExecResult:
        """
        Execute ``command`` and return its combined output.

        Output is always accumulated in the result; ``silence`` only
        stops it from being echoed to the configured stdout/stderr sinks.
        A non-zero exit status is reported in the result, not raised.

        Raises:
            CommandError: If the remote end rejects the exec request
            ConnectionError: If the session cannot be established
            EOFError: If the stream keeps dropping after every retry
        """
        logger.info(f"exec({command!r}, silence={silence})")
        return self.retry.call(
            lambda: self._exec_once(command, silence),
            label=f"exec({command!r})",
        )

    def _exec_once(self, command: str, silence: bool) -> ExecResult:
        config = self.manager.config
        label = config.label()
        transport = self.manager.transport()

        chunks: List[bytes] = []
        headers = HeaderTracker(label)
        sinks = {
            StreamKind.STDOUT: _StreamSink(config.stdout_sink, silence),
            StreamKind.STDERR: _StreamSink(config.stderr_sink, silence),
        }

        def on_data(kind: StreamKind, data: bytes) -> None:
            headers.observe(kind)
            logger.debug(data)
            chunks.append(data)
            sinks[kind].write(data)

        channel = transport.open_session()
        # must be in place before exec_command, or early output is unordered
        arrivals = ArrivalOrder(channel)
        logger.debug("Channel opened.")
        logger.debug(_banner("OPENED", label))
        try:
            if config.forward_agent:
                AgentRequestHandler(channel)
            try:
                channel.exec_command(command)
            except paramiko.SSHException as e:
                raise CommandError(f"could not execute '{command}'") from e

            arrivals.pump(on_data)
            exit_status = channel.recv_exit_status()
            if exit_status == -1 and not transport.is_active():
                raise TransientIOError(
                    f"connection to {label} dropped while running '{command}'"
                )
        finally:
            channel.close()
            for sink in sinks.values():
                sink.finish()
            logger.debug(_banner("CLOSED", label))
            logger.debug("Channel closed.")

        return ExecResult(command=command, output=b"".join(chunks), exit_status=exit_status)
