"""
Core interfaces for dependency injection
"""
from abc import ABC, abstractmethod
from typing import Any, Optional


class SessionFactory(ABC):
    """SSH session factory interface"""

    @abstractmethod
    def create(self, config: Any) -> Any:
        """Create and connect an SSH client for a ConnectionConfig"""
        pass


class PromptProvider(ABC):
    """User prompt interface"""

    @abstractmethod
    def prompt(self, message: str, default: Optional[str] = None, password: bool = False) -> str:
        """Prompt user for input"""
        pass
