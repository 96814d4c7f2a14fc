"""
Detection of the platform the launcher is running on and of the per-user
directories it stores its data in.
"""

import os
import sys
from enum import Enum
from pathlib import Path

APP_DIR_NAME = "stationhub"


class CurrentEnvironment(Enum):
    """Platforms the launcher knows how to install and start builds on."""

    WINDOWS_STANDALONE = "windows"
    MACOS_STANDALONE = "macos"
    LINUX_STANDALONE = "linux"
    LINUX_FLATPAK = "linux-flatpak"
    UNKNOWN = "unknown"

    @property
    def is_windows(self) -> bool:
        return self is CurrentEnvironment.WINDOWS_STANDALONE

    @property
    def is_linux(self) -> bool:
        return self in (
            CurrentEnvironment.LINUX_STANDALONE,
            CurrentEnvironment.LINUX_FLATPAK,
        )


def detect_environment() -> CurrentEnvironment:
    """Maps the running interpreter's platform onto a CurrentEnvironment."""
    if sys.platform.startswith("win"):
        return CurrentEnvironment.WINDOWS_STANDALONE
    if sys.platform == "darwin":
        return CurrentEnvironment.MACOS_STANDALONE
    if sys.platform.startswith("linux"):
        if os.getenv("FLATPAK_ID") or Path("/.flatpak-info").exists():
            return CurrentEnvironment.LINUX_FLATPAK
        return CurrentEnvironment.LINUX_STANDALONE
    return CurrentEnvironment.UNKNOWN


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / APP_DIR_NAME


def get_userdata_dir() -> Path:
    """Directory holding the installation registry and, by default, the builds."""
    if os.name == "nt":
        base_dir = Path(os.getenv("LOCALAPPDATA", "~\\AppData\\Local"))
    else:
        base_dir = Path(os.getenv("XDG_DATA_HOME", "~/.local/share"))
    return base_dir.expanduser() / APP_DIR_NAME


def get_default_installation_path() -> Path:
    return get_userdata_dir() / "Installations"
