"""
Session establishment and caching
"""
from typing import Any, Dict, Optional

import paramiko

from ...core.exceptions import ConnectionError
from ...core.interfaces import SessionFactory
from ...core.logging import get_logger
from .commands import build_proxy_command, expand_proxy_tokens
from .models import ConnectionConfig

logger = get_logger(__name__)


class ParamikoSessionFactory(SessionFactory):
    """Opens paramiko SSHClient sessions from a ConnectionConfig"""

    def connect_options(self, config: ConnectionConfig) -> Dict[str, Any]:
        """
        Translate a ConnectionConfig into ``SSHClient.connect`` kwargs.

        Only fields that were explicitly set are passed through.
        """
        options: Dict[str, Any] = {"hostname": config.host, "port": config.effective_port}

        if config.user:
            options["username"] = config.user
        if config.password:
            options["password"] = config.password
        if config.identity_file:
            options["key_filename"] = list(config.identity_file)
        if config.timeout:
            options["timeout"] = config.timeout
        if config.compression:
            options["compress"] = True
        if config.keys_only:
            options["look_for_keys"] = False
            options["allow_agent"] = False
        if config.encryption:
            preferred = getattr(paramiko.Transport, "_preferred_ciphers", ())
            options["disabled_algorithms"] = {
                "ciphers": [c for c in preferred if c not in config.encryption]
            }
        if config.proxy is not None:
            command = build_proxy_command(
                config.proxy,
                host_key_verify=config.host_key_verify,
                forward_agent=config.forward_agent,
            )
            options["sock"] = paramiko.ProxyCommand(
                expand_proxy_tokens(command, config.host, config.effective_port)
            )

        if config.compression_level is not None:
            logger.debug(
                f"compression_level={config.compression_level} ignored: paramiko uses zlib defaults"
            )
        logger.debug(f"ssh_options({_redact(options)!r})")
        return options

    def create(self, config: ConnectionConfig) -> paramiko.SSHClient:
        """
        Create and connect an SSH client.

        Raises:
            ConnectionError: If authentication fails or the host is unreachable
        """
        client = paramiko.SSHClient()
        if config.host_key_verify:
            client.load_system_host_keys()
            if config.known_hosts_file:
                client.load_host_keys(config.known_hosts_file)
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            # accepted keys live in memory only, like UserKnownHostsFile=/dev/null
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            client.connect(**self.connect_options(config))
        except EOFError:
            client.close()
            raise
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise ConnectionError(f"Failed to connect to {config.label()}: {e}") from e
        return client


def _redact(options: Dict[str, Any]) -> Dict[str, Any]:
    return {k: ("********" if k == "password" else v) for k, v in options.items()}


class ConnectionManager:
    """
    Owns the session (and SFTP sub-session) for one ConnectionConfig.

    Both handles are created on first use and reused until ``close()``
    or ``reset()``. Not safe for concurrent use.
    """

    def __init__(self, config: ConnectionConfig, factory: Optional[SessionFactory] = None):
        self.config = config
        self.factory = factory or ParamikoSessionFactory()
        self._session: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    @property
    def is_alive(self) -> bool:
        """A session exists and its transport is still up"""
        if self._session is None:
            return False
        transport = self._session.get_transport()
        return transport is not None and transport.is_active()

    def connect(self) -> paramiko.SSHClient:
        """Return the cached session, establishing it on first use"""
        if self._session is None:
            self.config.validate()
            logger.debug(f"connect({self.config.label()})")
            self._session = self.factory.create(self.config)
        return self._session

    def transport(self) -> paramiko.Transport:
        transport = self.connect().get_transport()
        if transport is None:
            raise ConnectionError(f"No transport for {self.config.label()}")
        return transport

    def sftp(self) -> paramiko.SFTPClient:
        """Return the cached SFTP sub-session, opening it on first use"""
        if self._sftp is None:
            session = self.connect()
            try:
                self._sftp = session.open_sftp()
            except paramiko.SSHException as e:
                raise ConnectionError(
                    f"Failed to open SFTP session on {self.config.label()}: {e}"
                ) from e
        return self._sftp

    def reset(self) -> None:
        """Drop cached handles so the next call reconnects"""
        self._close_handles(log_errors=False)

    def close(self) -> None:
        """Close the session; closing twice is a no-op"""
        if self._session is None and self._sftp is None:
            return
        logger.debug(f"close({self.config.label()})")
        self._close_handles(log_errors=True)

    def _close_handles(self, log_errors: bool) -> None:
        for handle in (self._sftp, self._session):
            if handle is None:
                continue
            try:
                handle.close()
            except Exception as e:
                if log_errors:
                    logger.debug(f"ignoring error while closing {handle!r}: {e}")
        self._sftp = None
        self._session = None
