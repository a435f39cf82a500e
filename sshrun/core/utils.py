"""
Core utility functions
"""
import paramiko
from pathlib import Path
from typing import Dict, Any, Optional

from .constants import SSH_CONFIG_PATH
from .exceptions import ConfigError


# ============================================================
# SSH Config Management
# ============================================================

def load_ssh_config(hostname: str, config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration for specified Host from ~/.ssh/config.

    Args:
        hostname: Host name in SSH configuration
        config_path: Alternate config file (default: ~/.ssh/config)

    Returns:
        Dictionary containing host, user, port, identity_file

    Raises:
        ConfigError: If the config file doesn't exist
    """
    path = (config_path or Path(SSH_CONFIG_PATH)).expanduser()
    if not path.exists():
        raise ConfigError(f"{path} does not exist")

    ssh_config = paramiko.SSHConfig.from_path(str(path))
    entry = ssh_config.lookup(hostname)

    port = entry.get("port")
    return {
        "host": entry.get("hostname", hostname),
        "user": entry.get("user"),
        "port": int(port) if port else None,
        "identity_file": entry.get("identityfile") or None,
    }


# ============================================================
# Path Utilities
# ============================================================

def remote_parents(path: str) -> list[str]:
    """
    List the parent directories of a POSIX remote path, outermost first.

    "/a/b/c.txt" -> ["/a", "/a/b"]; "x/y.txt" -> ["x"]
    """
    parts = [p for p in path.split("/")[:-1] if p]
    prefix = "/" if path.startswith("/") else ""
    return [prefix + "/".join(parts[: i + 1]) for i in range(len(parts))]
