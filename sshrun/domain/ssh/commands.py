"""
Builders for the ssh command lines this package spawns

Two command lines are built here: the ``ProxyCommand`` relay used to
tunnel the outer session through an intermediate host, and the
interactive console command that replaces the current process.
"""
import shlex
from typing import List, Optional

from ...core.constants import (
    KNOWN_HOSTS_DISABLED,
    PROXY_RELAY_COMMAND,
    SERVER_ALIVE_INTERVAL,
    SSH_BINARY,
)
from ...core.logging import get_logger
from .models import ConnectionConfig, ProxyConfig

logger = get_logger(__name__)


def _base_options(host_key_verify: bool, forward_agent: bool) -> List[str]:
    options = [SSH_BINARY, "-q"]
    if forward_agent:
        options.append("-A")
    if not host_key_verify:
        options += ["-o", f"UserKnownHostsFile={KNOWN_HOSTS_DISABLED}"]
        options += ["-o", "StrictHostKeyChecking=no"]
    options += ["-o", "KeepAlive=yes"]
    options += ["-o", f"ServerAliveInterval={SERVER_ALIVE_INTERVAL}"]
    return options


def _identity_and_port(identities, port: Optional[int]) -> List[str]:
    options: List[str] = []
    for identity in identities:
        options += ["-i", identity]
    if port:
        options += ["-p", str(port)]
    return options


def build_proxy_command(
    proxy: ProxyConfig,
    host_key_verify: bool = False,
    forward_agent: bool = True,
) -> str:
    """
    Build the shell command that relays a TCP stream through ``proxy``.

    The result ends in ``nc %h %p``; the ``%h``/``%p`` tokens are left
    for the ssh client (or :func:`expand_proxy_tokens`) to fill in with
    the final target.

    Raises:
        ConfigError: If the proxy user or host is missing
    """
    proxy.validate()

    parts = _base_options(host_key_verify, forward_agent)
    parts += _identity_and_port(proxy.identity_file, proxy.port)
    parts.append(f"{proxy.user}@{proxy.host}")
    parts += list(PROXY_RELAY_COMMAND)

    command = shlex.join(parts)
    logger.debug(f"proxy_command({command!r})")
    return command


def expand_proxy_tokens(command: str, host: str, port: int) -> str:
    """Substitute %h, %p and %% the way OpenSSH does for ProxyCommand"""
    out = []
    i = 0
    while i < len(command):
        ch = command[i]
        if ch == "%" and i + 1 < len(command):
            token = command[i + 1]
            if token == "h":
                out.append(host)
                i += 2
                continue
            if token == "p":
                out.append(str(port))
                i += 2
                continue
            if token == "%":
                out.append("%")
                i += 2
                continue
        out.append(ch)
        i += 1
    return "".join(out)


def build_console_argv(config: ConnectionConfig) -> List[str]:
    """argv for an interactive ssh session equivalent to ``config``"""
    config.validate()

    argv = _base_options(config.host_key_verify, config.forward_agent)
    argv += _identity_and_port(config.identity_file, config.port)
    if config.proxy is not None and config.proxy.host:
        proxy_command = build_proxy_command(
            config.proxy,
            host_key_verify=config.host_key_verify,
            forward_agent=config.forward_agent,
        )
        argv += ["-o", f"ProxyCommand={proxy_command}"]
    argv.append(f"{config.user}@{config.host}" if config.user else config.host)
    return argv


def build_console_command(config: ConnectionConfig) -> str:
    """Shell-quoted form of :func:`build_console_argv`"""
    command = shlex.join(build_console_argv(config))
    logger.debug(f"console_command({command!r})")
    return command
