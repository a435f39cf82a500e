"""
SSH domain module
"""
from .models import (
    ConnectionConfig,
    ProxyConfig,
    ExecResult,
    TransferEvent,
    TransferEventKind,
)
from .commands import (
    build_proxy_command,
    expand_proxy_tokens,
    build_console_argv,
    build_console_command,
)
from .manager import ConnectionManager, ParamikoSessionFactory
from .executor import ArrivalOrder, CommandExecutor, HeaderTracker, StreamKind
from .transfer import FileTransferService

__all__ = [
    "ConnectionConfig",
    "ProxyConfig",
    "ExecResult",
    "TransferEvent",
    "TransferEventKind",
    "build_proxy_command",
    "expand_proxy_tokens",
    "build_console_argv",
    "build_console_command",
    "ConnectionManager",
    "ParamikoSessionFactory",
    "ArrivalOrder",
    "CommandExecutor",
    "HeaderTracker",
    "StreamKind",
    "FileTransferService",
]
