"""
sshrun - remote command execution and file transfer over SSH

Provides a small client for working with one remote host at a time:
- Command execution with interleaved stdout/stderr streaming
- Single-file upload and download over SFTP with lifecycle events
- Tunnelling through an intermediate proxy host (ProxyCommand)
- Transparent retry when the stream ends unexpectedly
- Interactive console sessions that replace the current process
"""

__version__ = "0.1.0"

from .client import SSH

from .core import (
    SSHRunError,
    ConfigError,
    ConnectionError,
    CommandError,
    TransferError,
    TransientIOError,
    RetryPolicy,
    setup_logging,
)

from .domain.ssh import (
    ConnectionConfig,
    ProxyConfig,
    ExecResult,
    TransferEvent,
    TransferEventKind,
    build_proxy_command,
    build_console_command,
)

__all__ = [
    # Version
    "__version__",
    # Client
    "SSH",
    # Models
    "ConnectionConfig",
    "ProxyConfig",
    "ExecResult",
    "TransferEvent",
    "TransferEventKind",
    # Command builders
    "build_proxy_command",
    "build_console_command",
    # Retry
    "RetryPolicy",
    # Logging
    "setup_logging",
    # Errors
    "SSHRunError",
    "ConfigError",
    "ConnectionError",
    "CommandError",
    "TransferError",
    "TransientIOError",
]
