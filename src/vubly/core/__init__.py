"""Core components: configuration, errors and the acquisition cascades."""

from .config import Config, get_config
from .exceptions import VublyError

__all__ = [
    "Config",
    "get_config",
    "VublyError",
]
