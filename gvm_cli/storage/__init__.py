"""
Storage Layer.

This package handles all data persistence: the JSON install state and the
INI settings file.
"""

from .config_manager import ConfigManager
from .state_store import StateStore

__all__ = ["ConfigManager", "StateStore"]
