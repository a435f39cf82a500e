"""
Unified exception definitions
"""


class SSHRunError(Exception):
    """Base exception class"""
    pass


class ConfigError(SSHRunError):
    """Configuration error (raised before any network activity)"""
    pass


class ConnectionError(SSHRunError):
    """Session could not be established"""
    pass


class CommandError(SSHRunError):
    """Remote end rejected the execution request"""
    pass


class TransferError(SSHRunError):
    """Upload or download failed"""
    pass


class TransientIOError(SSHRunError, EOFError):
    """Stream ended unexpectedly during an in-flight operation"""
    pass
