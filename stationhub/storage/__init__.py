"""
Storage Layer.

This package handles all data persistence: the installation registry and the
user preferences file.
"""

from .preferences_manager import PreferencesManager
from .registry import InstallationRegistry

__all__ = ["InstallationRegistry", "PreferencesManager"]
