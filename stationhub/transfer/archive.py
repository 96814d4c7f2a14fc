"""
The archive capability: materializes a downloaded build archive as a directory.
"""

import logging
import os
import shutil
import stat
import tarfile
import zipfile
from pathlib import Path
from typing import Protocol

from stationhub.exceptions import ArchiveError

log = logging.getLogger(__name__)


class ArchiveExtractor(Protocol):
    def extract(self, archive_path: Path, target_dir: Path) -> int:
        """Extracts into `target_dir`, overwriting existing files. Returns the entry count."""
        ...


def _safe_destination(target_dir: Path, member_name: str) -> Path:
    """Resolves an archive member below `target_dir`, rejecting path traversal."""
    destination = (target_dir / member_name).resolve()
    root = target_dir.resolve()
    if destination != root and root not in destination.parents:
        raise ArchiveError(f"Archive entry '{member_name}' escapes the target directory.")
    return destination


class DefaultArchiveExtractor:
    """Extracts zip archives (the format builds are published in) and tarballs."""

    def extract(self, archive_path: Path, target_dir: Path) -> int:
        target_dir.mkdir(parents=True, exist_ok=True)
        try:
            if zipfile.is_zipfile(archive_path):
                return self._extract_zip(archive_path, target_dir)
            if tarfile.is_tarfile(archive_path):
                return self._extract_tar(archive_path, target_dir)
        except (zipfile.BadZipFile, tarfile.TarError, EOFError) as e:
            raise ArchiveError(f"Corrupt archive '{archive_path.name}': {e}") from e
        raise ArchiveError(f"'{archive_path.name}' is not a supported archive.")

    def _extract_zip(self, archive_path: Path, target_dir: Path) -> int:
        count = 0
        with zipfile.ZipFile(archive_path) as archive:
            for info in archive.infolist():
                destination = _safe_destination(target_dir, info.filename)
                if info.is_dir():
                    destination.mkdir(parents=True, exist_ok=True)
                    continue

                destination.parent.mkdir(parents=True, exist_ok=True)
                if destination.exists():
                    os.chmod(destination, stat.S_IWRITE | stat.S_IREAD)
                with archive.open(info) as src, open(destination, "wb") as dst:
                    shutil.copyfileobj(src, dst, 1024 * 1024)

                # Zips built on Unix keep the mode in the high bits of external_attr.
                mode = (info.external_attr >> 16) & 0o777
                if mode and os.name != "nt":
                    os.chmod(destination, mode)
                count += 1
        log.debug(f"Extracted {count} files from zip into '{target_dir}'.")
        return count

    def _extract_tar(self, archive_path: Path, target_dir: Path) -> int:
        with tarfile.open(archive_path) as archive:
            members = archive.getmembers()
            for member in members:
                _safe_destination(target_dir, member.name)
                if member.issym():
                    link_target = os.path.join(os.path.dirname(member.name), member.linkname)
                    _safe_destination(target_dir, link_target)
                elif member.islnk():
                    _safe_destination(target_dir, member.linkname)
            if hasattr(tarfile, "data_filter"):
                archive.extractall(target_dir, members=members, filter="data")
            else:
                archive.extractall(target_dir, members=members)  # noqa: S202
        count = sum(1 for m in members if m.isfile())
        log.debug(f"Extracted {count} files from tarball into '{target_dir}'.")
        return count
