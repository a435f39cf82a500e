"""
Core infrastructure layer
"""
from .constants import *
from .exceptions import *
from .logging import setup_logging, get_logger, get_stdout_console, get_stderr_console
from .interfaces import SessionFactory, PromptProvider
from .retry import RetryPolicy, retried
from .utils import load_ssh_config, remote_parents

__all__ = [
    "SSHRunError",
    "ConfigError",
    "ConnectionError",
    "CommandError",
    "TransferError",
    "TransientIOError",
    "setup_logging",
    "get_logger",
    "get_stdout_console",
    "get_stderr_console",
    "SessionFactory",
    "PromptProvider",
    "RetryPolicy",
    "retried",
    "load_ssh_config",
    "remote_parents",
]
