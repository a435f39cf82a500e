"""
Configuration loader with priority: CLI > env > TOML > defaults
"""
import os
import tomllib
from pathlib import Path
from typing import Callable, Dict, Any, Optional, Tuple

from ...core.constants import ENV_PREFIX
from ...core.exceptions import ConfigError
from ...domain.ssh.models import ConnectionConfig, ProxyConfig


def _to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "on", "1"):
        return True
    if lowered in ("false", "no", "off", "0"):
        return False
    raise ValueError(f"expected a boolean, got {value!r}")


class ConfigLoader:
    """Configuration loader with priority support"""

    # environment variable suffix -> (config key, converter); "a.b" is nested
    ENV_MAPPINGS: Dict[str, Tuple[str, Callable[[str], Any]]] = {
        "HOST": ("host", str),
        "PORT": ("port", int),
        "USER": ("user", str),
        "PASSWORD": ("password", str),
        "IDENTITY_FILE": ("identity_file", str),
        "TIMEOUT": ("timeout", float),
        "COMPRESSION": ("compression", _to_bool),
        "COMPRESSION_LEVEL": ("compression_level", int),
        "FORWARD_AGENT": ("forward_agent", _to_bool),
        "HOST_KEY_VERIFY": ("host_key_verify", _to_bool),
        "KNOWN_HOSTS_FILE": ("known_hosts_file", str),
        "PROXY_HOST": ("proxy.host", str),
        "PROXY_USER": ("proxy.user", str),
        "PROXY_PORT": ("proxy.port", int),
        "PROXY_IDENTITY_FILE": ("proxy.identity_file", str),
    }

    def __init__(self, env_prefix: str = ENV_PREFIX):
        self._env_prefix = env_prefix

    def load_toml(self, path: Path) -> Dict[str, Any]:
        """Load TOML configuration file"""
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Failed to parse TOML configuration: {e}") from e
        return _fold_proxy_keys(data)

    def load_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        config: Dict[str, Any] = {}

        for suffix, (config_key, convert) in self.ENV_MAPPINGS.items():
            name = self._env_prefix + suffix
            value = os.getenv(name)
            if not value:
                continue
            try:
                converted = convert(value)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {name}: {e}") from e
            if "." in config_key:
                section, key = config_key.split(".", 1)
                config.setdefault(section, {})[key] = converted
            else:
                config[config_key] = converted

        return config

    def merge_configs(self, *configs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge multiple configurations with priority.
        Later configs override earlier ones.
        """
        result: Dict[str, Any] = {}

        for config in configs:
            result = self._deep_merge(result, config)

        return result

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries; None values in override are skipped"""
        result = base.copy()

        for key, value in override.items():
            if value is None:
                continue
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def load(
        self,
        toml_path: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        use_env: bool = True,
    ) -> Dict[str, Any]:
        """
        Load configuration with priority: CLI > env > TOML > defaults

        Args:
            toml_path: Path to TOML configuration file
            cli_overrides: CLI parameter overrides
            use_env: Whether to load from environment variables

        Returns:
            Merged configuration dictionary
        """
        configs = []

        if toml_path:
            configs.append(self.load_toml(toml_path))

        if use_env:
            env_config = self.load_env()
            if env_config:
                configs.append(env_config)

        if cli_overrides:
            configs.append(cli_overrides)

        return self.merge_configs(*configs)


_CONNECTION_KEYS = {
    "port", "user", "password", "identity_file", "timeout", "compression",
    "compression_level", "forward_agent", "host_key_verify", "known_hosts_file",
    "encryption", "keys_only",
}

# top-level spelling of the [proxy] table keys
_FLAT_PROXY_KEYS = {
    "proxy_host": "host",
    "proxy_user": "user",
    "proxy_port": "port",
    "proxy_identity_file": "identity_file",
}


def _fold_proxy_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Move flat proxy_* keys into the proxy table; table entries win"""
    if not any(flat in data for flat in _FLAT_PROXY_KEYS):
        return data
    folded = {k: v for k, v in data.items() if k not in _FLAT_PROXY_KEYS}
    proxy = dict(data.get("proxy") or {})
    for flat, key in _FLAT_PROXY_KEYS.items():
        if data.get(flat) is not None and proxy.get(key) is None:
            proxy[key] = data[flat]
    folded["proxy"] = proxy
    return folded


def build_connection_config(data: Dict[str, Any]) -> ConnectionConfig:
    """
    Build a validated ConnectionConfig from a merged config dictionary.

    Raises:
        ConfigError: If the host is missing, a key is unknown, or the
            proxy section is incomplete
    """
    if not data.get("host"):
        raise ConfigError("You must specify a host to connect to.")

    data = _fold_proxy_keys(data)
    unknown = set(data) - _CONNECTION_KEYS - {"host", "proxy"}
    if unknown:
        raise ConfigError(f"Unknown configuration key(s): {', '.join(sorted(unknown))}")

    kwargs = {k: v for k, v in data.items() if k in _CONNECTION_KEYS}

    proxy_data = data.get("proxy") or {}
    proxy = None
    if any(proxy_data.get(k) for k in ("host", "user", "port", "identity_file")):
        proxy = ProxyConfig(
            host=proxy_data.get("host"),
            user=proxy_data.get("user"),
            port=proxy_data.get("port"),
            identity_file=proxy_data.get("identity_file") or (),
        )

    config = ConnectionConfig(host=str(data["host"]), proxy=proxy, **kwargs)
    config.validate()
    return config
