"""
Platform Layer.

This package isolates everything that differs between operating systems:
environment detection, executable lookup, process spawning and the removal
of installation directories.
"""

from .environment import CurrentEnvironment, detect_environment
from .executable import ensure_executable, resolve_executable
from .process import build_arguments, build_launch_command, spawn_detached
from .removal import TreeRemover, tree_remover_for

__all__ = [
    "CurrentEnvironment",
    "TreeRemover",
    "build_arguments",
    "build_launch_command",
    "detect_environment",
    "ensure_executable",
    "resolve_executable",
    "spawn_detached",
    "tree_remover_for",
]
