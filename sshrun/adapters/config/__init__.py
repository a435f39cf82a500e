"""
Configuration loading
"""
from .loader import ConfigLoader, build_connection_config

__all__ = ["ConfigLoader", "build_connection_config"]
