"""
Maps an installation directory onto the game binary for the current platform.
"""

import logging
import os
import stat
from pathlib import Path

from .environment import CurrentEnvironment

log = logging.getLogger(__name__)

APP_NAME = "Unitystation"


def resolve_executable(
    installation_path: str | None, environment: CurrentEnvironment
) -> Path | None:
    """
    Returns where the game binary is expected to live inside an installation.

    The path is not checked for existence; a missing binary surfaces when the
    process is spawned. Returns None for a blank path or an unknown platform.
    """
    if not installation_path or not installation_path.strip():
        return None

    base = Path(installation_path)
    if environment is CurrentEnvironment.WINDOWS_STANDALONE:
        return base / f"{APP_NAME}.exe"
    if environment is CurrentEnvironment.MACOS_STANDALONE:
        return base / f"{APP_NAME}.app" / "Contents" / "MacOS" / APP_NAME.lower()
    if environment.is_linux:
        return base / APP_NAME
    return None


def ensure_executable(path: Path, environment: CurrentEnvironment) -> bool:
    """
    Adds the user read/write/execute bits to a path on non-Windows platforms.

    Returns False if the permissions could not be changed.
    """
    if environment.is_windows:
        return True

    try:
        mode = os.stat(path).st_mode
        if mode & stat.S_IRWXU != stat.S_IRWXU:
            os.chmod(path, mode | stat.S_IRWXU)
        return True
    except OSError as e:
        log.warning(f"Could not set execute permission on '{path}': {e}")
        return False
