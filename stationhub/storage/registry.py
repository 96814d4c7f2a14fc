"""
Manages the JSON file that records every installed build so that installations
survive restarts of the launcher.
"""

import logging
import os
import threading
import uuid
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from stationhub.models.installation import Installation

log = logging.getLogger(__name__)

_INSTALLATION_LIST = TypeAdapter(list[Installation])


class InstallationRegistry:
    """
    The single owner of the installation list.

    Every mutation rewrites the whole backing file. Reads, mutations and writes
    are serialized through one re-entrant lock, so downloads finishing in the
    background cannot interleave with deletions or moves.
    """

    def __init__(self, userdata_dir: Path):
        self.file_path = userdata_dir / "installations.json"
        self.lock = threading.RLock()
        self._installations: list[Installation] = self._load()

    def _load(self) -> list[Installation]:
        """Reads the registry file. Anything unreadable yields an empty registry."""
        if not self.file_path.is_file():
            return []

        try:
            # Bytes, so invalid UTF-8 surfaces as a ValidationError below.
            raw = self.file_path.read_bytes()
        except OSError as e:
            log.warning(f"Could not read installation registry '{self.file_path}': {e}")
            return []

        if not raw.strip():
            return []

        try:
            installations = _INSTALLATION_LIST.validate_json(raw)
        except ValidationError as e:
            log.warning(
                f"[yellow]Installation registry '{self.file_path}' is malformed, "
                f"starting with an empty registry:[/yellow] {e}"
            )
            return []

        log.debug(f"Loaded {len(installations)} installations from registry.")
        return installations

    def save(self) -> None:
        """Overwrites the backing file with the full current set of installations."""
        with self.lock:
            payload = _INSTALLATION_LIST.dump_json(self._installations, indent=2)
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.file_path.with_suffix(".json.tmp")
            with open(tmp_path, "wb") as f:
                f.write(payload)
            os.replace(tmp_path, self.file_path)
            log.debug("Installation registry written.")

    def list(self) -> list[Installation]:
        with self.lock:
            return list(self._installations)

    def find(self, fork_name: str, build_version: int) -> Installation | None:
        with self.lock:
            return next(
                (
                    i
                    for i in self._installations
                    if i.fork_name == fork_name and i.build_version == build_version
                ),
                None,
            )

    def find_by_id(self, installation_id: uuid.UUID) -> Installation | None:
        with self.lock:
            return next(
                (
                    i
                    for i in self._installations
                    if i.installation_id == installation_id
                ),
                None,
            )

    def add(self, installation: Installation) -> None:
        """Adds an installation, replacing any record for the same fork and version."""
        with self.lock:
            existing = self.find(installation.fork_name, installation.build_version)
            if existing is not None:
                log.warning(
                    f"Replacing registry entry for {installation.fork_name} "
                    f"build {installation.build_version} "
                    f"(old ID {existing.installation_id})."
                )
                self._installations.remove(existing)
            self._installations.append(installation)
            self.save()

    def remove(self, installation: Installation) -> bool:
        """Removes an installation. Returns False if it was not registered."""
        with self.lock:
            existing = self.find_by_id(installation.installation_id)
            if existing is None:
                return False
            self._installations.remove(existing)
            self.save()
            return True

    def __len__(self) -> int:
        with self.lock:
            return len(self._installations)

