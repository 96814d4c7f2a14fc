"""
Where installations live on disk: canonical install paths, pre-flight checks
for a user-chosen base path, and relocation of installations between bases.
"""

import logging
import os
import shutil
import stat
import uuid
from pathlib import Path

from pathvalidate import sanitize_filename

from stationhub.models.installation import Installation
from stationhub.system.environment import CurrentEnvironment

log = logging.getLogger(__name__)

NON_ASCII_REASON = "Path contains non-ASCII characters."
NO_WRITE_ACCESS_REASON = "No write access to the selected directory."

_PROBE_TEXT = (
    "This file is written to test if StationHub has write access here.\n"
    "It should have been deleted straight away; if you can see it, "
    "it is safe to delete.\n"
)


def installation_path(base_path: str | Path, fork_name: str, build_version: int) -> Path:
    """
    Returns the canonical `base/fork/version` directory for a build.

    The fork name is passed through `sanitize_filename`, so the directory name
    can differ from it (e.g. path separators are dropped). Always build install
    paths through this function rather than joining the parts directly.
    """
    fork_dir = sanitize_filename(fork_name, platform="universal") or "unknown-fork"
    return Path(base_path) / fork_dir / str(build_version)


def validate_writable(path: str | Path) -> tuple[bool, str]:
    """
    Proves write access to a directory, creating it if it does not exist.

    An existing directory is probed by writing and deleting a uniquely named file.
    """
    directory = Path(path)
    try:
        if directory.is_dir():
            probe = directory / f"StationHubTestFile-{uuid.uuid4()}"
            while probe.exists():
                probe = directory / f"StationHubTestFile-{uuid.uuid4()}"
            probe.write_text(_PROBE_TEXT, encoding="utf-8")
            probe.unlink()
        else:
            directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        log.debug(f"Write probe failed for '{directory}': {e}")
        return False, NO_WRITE_ACCESS_REASON
    return True, ""


def validate_base_path(path: str | Path) -> tuple[bool, str]:
    """Pre-flight check for a user-selected installation base path."""
    if not str(path).isascii():
        return False, NON_ASCII_REASON
    return validate_writable(path)


def setup_base_path(path: str | Path, environment: CurrentEnvironment) -> None:
    """Creates the base path and grants the user full access to it off Windows."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    if environment.is_windows:
        return

    try:
        mode = os.stat(directory).st_mode
        os.chmod(directory, mode | stat.S_IRWXU)
    except OSError as e:
        log.error(
            "There was an issue setting up permissions for the installation "
            f"directory '{directory}': {e}"
        )


def is_under(path: str | Path, base_path: str | Path) -> bool:
    return Path(path).is_relative_to(Path(base_path))


def relocated_path(path: str | Path, old_base: str | Path, new_base: str | Path) -> Path:
    """Substitutes the `old_base` prefix of `path` with `new_base`."""
    return Path(new_base) / Path(path).relative_to(Path(old_base))


def move_installation(
    installation: Installation, old_base: str | Path, new_base: str | Path
) -> bool:
    """
    Moves one installation directory from `old_base` to `new_base`.

    The installation's path is only updated once the directory has moved. An
    existing destination is never overwritten.
    """
    old_path = installation.installation_path
    if not old_path or not old_path.strip():
        return True

    new_path = relocated_path(old_path, old_base, new_base)
    try:
        if not Path(old_path).is_dir():
            log.error(f"Directory does not exist: OldPath={old_path}")
            return True

        if new_path.exists():
            log.warning(f"New path for installation is already in use! NewPath={new_path}")
            return False

        new_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(old_path, new_path)
    except OSError as e:
        log.error(
            f"Error while moving installation: OldInstallationPath='{old_path}' "
            f"NewInstallationPath='{new_path}' Error='{e}'"
        )
        return False

    installation.installation_path = str(new_path)
    log.info(
        f"Moved {installation.fork_name} build {installation.build_version} "
        f"to [dim]{new_path}[/dim]"
    )
    return True


def move_installations(
    installations: list[Installation], old_base: str | Path, new_base: str | Path
) -> bool:
    """
    Moves every installation below `old_base` to `new_base`, stopping at the
    first failure.

    All destinations are checked before anything is moved, so a conflict leaves
    every installation where it was.
    """
    to_move = [
        i
        for i in installations
        if i.installation_path and is_under(i.installation_path, old_base)
    ]

    for installation in to_move:
        destination = relocated_path(installation.installation_path, old_base, new_base)
        if destination.exists():
            log.warning(
                f"New path for installation is already in use! NewPath={destination}"
            )
            return False

    for installation in to_move:
        if not move_installation(installation, old_base, new_base):
            return False
    return True
