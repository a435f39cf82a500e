"""
SSH domain models
"""
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, TextIO, Tuple, Union

from ...core.constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_FORWARD_AGENT,
    DEFAULT_HOST_KEY_VERIFY,
    DEFAULT_SSH_PORT,
)
from ...core.exceptions import ConfigError
from ...core.logging import get_logger

logger = get_logger(__name__)

IdentityFiles = Union[str, Sequence[str], None]


def _normalize_identities(value: IdentityFiles) -> Tuple[str, ...]:
    """Accept one path or many; expand ~ in each"""
    if not value:
        return ()
    if isinstance(value, (str, Path)):
        value = [value]
    return tuple(str(Path(v).expanduser()) for v in value)


@dataclass(frozen=True)
class ProxyConfig:
    """Intermediate host used to tunnel the outer session"""
    host: Optional[str] = None
    user: Optional[str] = None
    port: Optional[int] = None
    identity_file: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "identity_file", _normalize_identities(self.identity_file))

    def validate(self) -> None:
        """Proxying needs both a user and a host (checked in that order)"""
        if not self.user:
            message = "You must specify a proxy user in order to SSH proxy."
            logger.error(message)
            raise ConfigError(message)
        if not self.host:
            message = "You must specify a proxy host in order to SSH proxy."
            logger.error(message)
            raise ConfigError(message)


@dataclass(frozen=True)
class ConnectionConfig:
    """
    Everything needed to reach one remote host.

    Optional fields left at ``None`` are not passed to paramiko, so the
    library defaults apply.
    """
    host: str
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    identity_file: Tuple[str, ...] = ()
    timeout: Optional[float] = DEFAULT_CONNECT_TIMEOUT
    compression: bool = False
    compression_level: Optional[int] = None
    forward_agent: bool = DEFAULT_FORWARD_AGENT
    host_key_verify: bool = DEFAULT_HOST_KEY_VERIFY
    known_hosts_file: Optional[str] = None
    encryption: Tuple[str, ...] = ()
    keys_only: bool = False
    proxy: Optional[ProxyConfig] = None
    stdout: Optional[TextIO] = field(default=None, repr=False, compare=False)
    stderr: Optional[TextIO] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "identity_file", _normalize_identities(self.identity_file))
        if isinstance(self.encryption, str):
            object.__setattr__(self, "encryption", (self.encryption,))
        else:
            object.__setattr__(self, "encryption", tuple(self.encryption or ()))

    def validate(self) -> None:
        """Check the config before any network activity"""
        if not self.host:
            raise ConfigError("You must specify a host to connect to.")
        if self.proxy is not None:
            self.proxy.validate()

    @property
    def effective_port(self) -> int:
        return self.port or DEFAULT_SSH_PORT

    @property
    def stdout_sink(self) -> TextIO:
        """Resolved lazily so redirected sys.stdout is honoured"""
        return self.stdout if self.stdout is not None else sys.stdout

    @property
    def stderr_sink(self) -> TextIO:
        return self.stderr if self.stderr is not None else sys.stderr

    def label(self) -> str:
        """user@host[:port], the way the connection is shown in logs"""
        user_host = f"{self.user}@{self.host}" if self.user else self.host
        return f"{user_host}:{self.port}" if self.port else user_host


@dataclass
class ExecResult:
    """Output of one remote command"""
    command: str
    output: bytes
    exit_status: int

    @property
    def success(self) -> bool:
        return self.exit_status == 0

    @property
    def text(self) -> str:
        return self.output.decode("utf-8", errors="replace")

    def __str__(self) -> str:
        return self.text


class TransferEventKind(str, Enum):
    """Stages of a file transfer"""
    OPEN = "open"
    PUT = "put"
    GET = "get"
    MKDIR = "mkdir"
    CLOSE = "close"
    FINISH = "finish"


@dataclass(frozen=True)
class TransferEvent:
    """Lifecycle event emitted while a file moves; observability only"""
    kind: TransferEventKind
    local: str
    remote: str
    offset: int = 0
    size: int = 0
    path: Optional[str] = None

    def describe(self) -> str:
        if self.kind is TransferEventKind.OPEN:
            return f"open({self.local} <-> {self.remote}, {self.size} bytes)"
        if self.kind in (TransferEventKind.PUT, TransferEventKind.GET):
            return f"{self.kind.value}({self.remote}, size {self.size} bytes, offset {self.offset})"
        if self.kind is TransferEventKind.MKDIR:
            return f"mkdir({self.path})"
        if self.kind is TransferEventKind.CLOSE:
            return f"close({self.remote})"
        return "finish"
