"""
Builds and spawns the game process. The launcher never tracks the child after
it has been started.
"""

import logging
import os
import subprocess
from pathlib import Path

from .environment import CurrentEnvironment

log = logging.getLogger(__name__)


def build_arguments(server: str | None = None, port: int | None = None) -> list[str]:
    """Command-line arguments telling the game which server to join, if any."""
    if not server or not server.strip():
        return []

    arguments = ["--server", server.strip()]
    if port is not None:
        arguments += ["--port", str(port)]
    return arguments


def build_launch_command(
    executable: Path, arguments: list[str], environment: CurrentEnvironment
) -> list[str] | None:
    """Returns the argv used to start the game, or None for unsupported platforms."""
    if environment is CurrentEnvironment.UNKNOWN:
        return None
    return [str(executable), *arguments]


def spawn_detached(argv: list[str], cwd: Path | None = None) -> int:
    """
    Starts a process without a shell, detached from the launcher.

    Returns the child's PID. Raises OSError if the process could not be created.
    """
    kwargs: dict = {
        "cwd": str(cwd) if cwd else None,
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
        "shell": False,
    }
    if os.name == "nt":
        kwargs["creationflags"] = (
            subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
        )
    else:
        kwargs["start_new_session"] = True

    process = subprocess.Popen(argv, **kwargs)  # noqa: S603
    log.debug(f"Spawned '{argv[0]}' with PID {process.pid}")
    return process.pid
