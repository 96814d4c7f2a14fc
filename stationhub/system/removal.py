"""
Recursive removal of installation directories, with one strategy per platform.
"""

import os
import shutil
import stat
from abc import ABC, abstractmethod
from pathlib import Path

from .environment import CurrentEnvironment


class TreeRemover(ABC):
    """Deletes a directory and everything below it."""

    @abstractmethod
    def remove(self, path: Path) -> None:
        """Removes the tree at `path`. Raises OSError on failure."""


class PosixTreeRemover(TreeRemover):
    def remove(self, path: Path) -> None:
        shutil.rmtree(path)


class WindowsTreeRemover(TreeRemover):
    """
    Clears the read-only attribute on every entry before deleting it. Build
    archives frequently contain read-only files which a plain delete refuses
    to remove on Windows.
    """

    def remove(self, path: Path) -> None:
        _make_writable(path)
        with os.scandir(path) as entries:
            children = [Path(entry.path) for entry in entries]
        for child in children:
            if child.is_dir() and not child.is_symlink():
                self.remove(child)
            else:
                if not child.is_symlink():
                    _make_writable(child)
                child.unlink()
        path.rmdir()


def _make_writable(path: Path) -> None:
    os.chmod(path, os.stat(path).st_mode | stat.S_IWRITE)


def tree_remover_for(environment: CurrentEnvironment) -> TreeRemover:
    if environment.is_windows:
        return WindowsTreeRemover()
    return PosixTreeRemover()
