"""
SSH CLI commands: exec, upload, download, console
"""
import typer
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.progress import Progress, BarColumn, TextColumn, TransferSpeedColumn

from ...client import SSH
from ...core.exceptions import (
    CommandError,
    ConfigError,
    ConnectionError,
    TransferError,
)
from ...core.logging import get_logger, get_stdout_console, get_stderr_console
from ...core.utils import load_ssh_config
from ...domain.ssh.models import ConnectionConfig, TransferEvent, TransferEventKind
from ..config.loader import ConfigLoader, build_connection_config
from .host_parser import parse_host_string
from .prompts import RichPromptProvider

logger = get_logger(__name__)
stdout_console = get_stdout_console()
stderr_console = get_stderr_console()
prompt_provider = RichPromptProvider()


# ============================================================
# Shared options
# ============================================================

HOST = typer.Argument(..., help="Hostname or SSH config alias (supports user@host:port)")
USER = typer.Option(None, "--user", "-u", help="Username")
PORT = typer.Option(None, "--port", "-p", help="SSH port")
IDENTITY = typer.Option(None, "--identity", "-i", help="Identity file (repeatable)")
PASSWORD = typer.Option(False, "--password", help="Prompt for password")
TIMEOUT = typer.Option(None, "--timeout", help="Connect timeout in seconds (default: 60)")
COMPRESSION = typer.Option(None, "--compression/--no-compression", help="Compress the session")
FORWARD_AGENT = typer.Option(None, "--forward-agent/--no-forward-agent", help="Forward the SSH agent (default: on)")
HOST_KEY_VERIFY = typer.Option(None, "--host-key-verify/--no-host-key-verify", help="Check host keys against known_hosts (default: off)")
PROXY_HOST = typer.Option(None, "--proxy-host", help="Intermediate host to tunnel through")
PROXY_USER = typer.Option(None, "--proxy-user", help="Username on the proxy host")
PROXY_PORT = typer.Option(None, "--proxy-port", help="SSH port of the proxy host")
PROXY_IDENTITY = typer.Option(None, "--proxy-identity", help="Identity file for the proxy host (repeatable)")
CONFIG_FILE = typer.Option(None, "--config", "-c", help="Configuration file path (TOML)")


def resolve_config(
    host: str,
    user: Optional[str] = None,
    port: Optional[int] = None,
    identity: Optional[List[str]] = None,
    password: bool = False,
    timeout: Optional[float] = None,
    compression: Optional[bool] = None,
    forward_agent: Optional[bool] = None,
    host_key_verify: Optional[bool] = None,
    proxy_host: Optional[str] = None,
    proxy_user: Optional[str] = None,
    proxy_port: Optional[int] = None,
    proxy_identity: Optional[List[str]] = None,
    config_file: Optional[Path] = None,
) -> ConnectionConfig:
    """Merge CLI flags, ~/.ssh/config, environment and TOML into a ConnectionConfig"""
    parsed_host, parsed_user, parsed_port = parse_host_string(host, user, port)

    alias: Dict[str, Any] = {}
    try:
        alias = load_ssh_config(parsed_host)
    except ConfigError:
        pass

    password_str = None
    if password:
        label = f"{parsed_user}@{parsed_host}" if parsed_user else parsed_host
        password_str = prompt_provider.prompt(f"Password for {label}", password=True)

    cli_overrides: Dict[str, Any] = {
        "host": alias.get("host") or parsed_host,
        "user": parsed_user or alias.get("user"),
        "port": parsed_port or alias.get("port"),
        "identity_file": list(identity or []) or alias.get("identity_file"),
        "password": password_str,
        "timeout": timeout,
        "compression": compression,
        "forward_agent": forward_agent,
        "host_key_verify": host_key_verify,
        "proxy": {
            "host": proxy_host,
            "user": proxy_user,
            "port": proxy_port,
            "identity_file": list(proxy_identity or []) or None,
        },
    }
    data = ConfigLoader().load(toml_path=config_file, cli_overrides=cli_overrides)
    return build_connection_config(data)


def _fail(prefix: str, error: object) -> typer.Exit:
    stderr_console.print(f"[red]{prefix}:[/red] {error}")
    return typer.Exit(1)


# ============================================================
# Commands
# ============================================================

def exec_run(
    host: str = HOST,
    command: List[str] = typer.Argument(..., help="Command to run on the remote host"),
    silence: bool = typer.Option(False, "--silence", "-s", help="Do not echo remote output"),
    user: Optional[str] = USER,
    port: Optional[int] = PORT,
    identity: Optional[List[str]] = IDENTITY,
    password: bool = PASSWORD,
    timeout: Optional[float] = TIMEOUT,
    compression: Optional[bool] = COMPRESSION,
    forward_agent: Optional[bool] = FORWARD_AGENT,
    host_key_verify: Optional[bool] = HOST_KEY_VERIFY,
    proxy_host: Optional[str] = PROXY_HOST,
    proxy_user: Optional[str] = PROXY_USER,
    proxy_port: Optional[int] = PROXY_PORT,
    proxy_identity: Optional[List[str]] = PROXY_IDENTITY,
    config_file: Optional[Path] = CONFIG_FILE,
) -> None:
    """
    Run a command on the remote host.

    Exits with the remote command's exit status.

    Examples:
        sshrun exec alice@10.0.0.5 -- uname -a
        sshrun exec db1 --proxy-host jump --proxy-user bob -- df -h
    """
    try:
        config = resolve_config(
            host, user, port, identity, password, timeout, compression,
            forward_agent, host_key_verify, proxy_host, proxy_user, proxy_port,
            proxy_identity, config_file,
        )
    except ConfigError as e:
        raise _fail("Error", e)

    command_str = " ".join(command)
    try:
        with SSH(config) as ssh:
            result = ssh.exec(command_str, silence=silence)
    except ConfigError as e:
        raise _fail("Error", e)
    except ConnectionError as e:
        raise _fail("Connection error", e)
    except CommandError as e:
        raise _fail("Error", e)
    except EOFError as e:
        raise _fail("Connection lost", e)

    if not result.success:
        logger.debug(f"'{command_str}' exited with status {result.exit_status}")
        raise typer.Exit(result.exit_status if result.exit_status > 0 else 255)


def _transfer(config: ConnectionConfig, direction: str, src: str, dst: str, quiet: bool) -> None:
    show_progress = not quiet and stdout_console.is_terminal

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TransferSpeedColumn(),
        console=stdout_console,
        disable=not show_progress,
        transient=True,
    ) as progress:
        task = None

        def on_event(event: TransferEvent) -> None:
            nonlocal task
            if event.kind is TransferEventKind.OPEN:
                # a retried attempt starts over from offset 0
                if task is not None:
                    progress.reset(task, total=event.size or None)
                else:
                    task = progress.add_task(f"{direction} {Path(src).name}", total=event.size or None)
            elif event.kind in (TransferEventKind.PUT, TransferEventKind.GET) and task is not None:
                progress.advance(task, event.size)

        with SSH(config) as ssh:
            if direction == "upload":
                ssh.upload(src, dst, listener=on_event)
            else:
                ssh.download(src, dst, listener=on_event)

    if not quiet:
        stdout_console.print(f"[green]✓[/green] {src} → {dst}")


def upload_run(
    host: str = HOST,
    local: str = typer.Argument(..., help="Local file"),
    remote: str = typer.Argument(..., help="Remote destination path"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Quiet mode"),
    user: Optional[str] = USER,
    port: Optional[int] = PORT,
    identity: Optional[List[str]] = IDENTITY,
    password: bool = PASSWORD,
    timeout: Optional[float] = TIMEOUT,
    compression: Optional[bool] = COMPRESSION,
    forward_agent: Optional[bool] = FORWARD_AGENT,
    host_key_verify: Optional[bool] = HOST_KEY_VERIFY,
    proxy_host: Optional[str] = PROXY_HOST,
    proxy_user: Optional[str] = PROXY_USER,
    proxy_port: Optional[int] = PROXY_PORT,
    proxy_identity: Optional[List[str]] = PROXY_IDENTITY,
    config_file: Optional[Path] = CONFIG_FILE,
) -> None:
    """Upload a local file to the remote host."""
    try:
        config = resolve_config(
            host, user, port, identity, password, timeout, compression,
            forward_agent, host_key_verify, proxy_host, proxy_user, proxy_port,
            proxy_identity, config_file,
        )
        _transfer(config, "upload", local, remote, quiet)
    except (ConfigError, TransferError) as e:
        raise _fail("Error", e)
    except ConnectionError as e:
        raise _fail("Connection error", e)
    except EOFError as e:
        raise _fail("Connection lost", e)


def download_run(
    host: str = HOST,
    remote: str = typer.Argument(..., help="Remote file"),
    local: str = typer.Argument(..., help="Local destination path"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Quiet mode"),
    user: Optional[str] = USER,
    port: Optional[int] = PORT,
    identity: Optional[List[str]] = IDENTITY,
    password: bool = PASSWORD,
    timeout: Optional[float] = TIMEOUT,
    compression: Optional[bool] = COMPRESSION,
    forward_agent: Optional[bool] = FORWARD_AGENT,
    host_key_verify: Optional[bool] = HOST_KEY_VERIFY,
    proxy_host: Optional[str] = PROXY_HOST,
    proxy_user: Optional[str] = PROXY_USER,
    proxy_port: Optional[int] = PROXY_PORT,
    proxy_identity: Optional[List[str]] = PROXY_IDENTITY,
    config_file: Optional[Path] = CONFIG_FILE,
) -> None:
    """Download a remote file to the local host."""
    try:
        config = resolve_config(
            host, user, port, identity, password, timeout, compression,
            forward_agent, host_key_verify, proxy_host, proxy_user, proxy_port,
            proxy_identity, config_file,
        )
        _transfer(config, "download", remote, local, quiet)
    except (ConfigError, TransferError) as e:
        raise _fail("Error", e)
    except ConnectionError as e:
        raise _fail("Connection error", e)
    except EOFError as e:
        raise _fail("Connection lost", e)


def console_run(
    host: str = HOST,
    user: Optional[str] = USER,
    port: Optional[int] = PORT,
    identity: Optional[List[str]] = IDENTITY,
    forward_agent: Optional[bool] = FORWARD_AGENT,
    host_key_verify: Optional[bool] = HOST_KEY_VERIFY,
    proxy_host: Optional[str] = PROXY_HOST,
    proxy_user: Optional[str] = PROXY_USER,
    proxy_port: Optional[int] = PROXY_PORT,
    proxy_identity: Optional[List[str]] = PROXY_IDENTITY,
    config_file: Optional[Path] = CONFIG_FILE,
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Print the ssh command instead of running it"),
) -> None:
    """
    Open an interactive ssh session, replacing this process.

    Examples:
        sshrun console alice@10.0.0.5
        sshrun console db1 --proxy-host jump --proxy-user bob -i ~/.ssh/id_ed25519
    """
    try:
        config = resolve_config(
            host, user, port, identity, False, None, None,
            forward_agent, host_key_verify, proxy_host, proxy_user, proxy_port,
            proxy_identity, config_file,
        )
        ssh = SSH(config)
        if dry_run:
            stdout_console.print(ssh.console_command(), markup=False, highlight=False, soft_wrap=True)
            return
        ssh.console()
    except ConfigError as e:
        raise _fail("Error", e)
    except OSError as e:
        raise _fail("Error", f"could not launch ssh: {e}")


def register_ssh_commands(app: typer.Typer) -> None:
    """Register the SSH commands on the main app"""
    app.command(
        name="exec",
        context_settings={"ignore_unknown_options": True},
    )(exec_run)
    app.command(name="upload")(upload_run)
    app.command(name="download")(download_run)
    app.command(name="console")(console_run)
