"""
The main entry point for everything the launcher does with installations:
downloading, launching, deleting, cleaning up and relocating builds.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from stationhub.core import path_policy
from stationhub.core.download_coordinator import DownloadCoordinator
from stationhub.core.extraction import ExtractionPipeline
from stationhub.exceptions import ConfigurationError
from stationhub.models.download import Download
from stationhub.models.installation import Installation
from stationhub.models.preferences import Preferences
from stationhub.models.server import ServerDescriptor
from stationhub.storage.registry import InstallationRegistry
from stationhub.system.environment import CurrentEnvironment, detect_environment
from stationhub.system.executable import ensure_executable, resolve_executable
from stationhub.system.process import (
    build_arguments,
    build_launch_command,
    spawn_detached,
)
from stationhub.system.removal import TreeRemover, tree_remover_for
from stationhub.transfer.archive import ArchiveExtractor, DefaultArchiveExtractor
from stationhub.transfer.fetcher import Fetcher, HttpFetcher

log = logging.getLogger(__name__)

NOT_FOUND_REASON = "Installation not found."
NO_EXECUTABLE_REASON = "Couldn't find executable to start."
UNHANDLED_PLATFORM_REASON = "Unhandled platform."
EMPTY_PATH_REASON = "Installation path is empty."
AUTO_REMOVE_DISABLED_REASON = "AutoRemove is disabled for installations."


class PreferencesProvider(Protocol):
    def get_preferences(self) -> Preferences: ...

    def update(self, **changes: Any) -> Preferences: ...


class InstallationManager:
    """
    Coordinates the registry, the download coordinator and the filesystem.

    Every public operation reports failure through its return value, either a
    boolean or a `(success, reason)` pair, instead of raising.
    """

    def __init__(
        self,
        registry: InstallationRegistry,
        preferences: PreferencesProvider,
        environment: CurrentEnvironment | None = None,
        fetcher: Fetcher | None = None,
        extractor: ArchiveExtractor | None = None,
        in_use: Callable[[Installation], bool] | None = None,
        tree_remover: TreeRemover | None = None,
        spawner: Callable[[list[str], Path | None], int] = spawn_detached,
    ):
        self.registry = registry
        self.preferences = preferences
        self.environment = environment or detect_environment()
        self.fetcher = fetcher or HttpFetcher()
        self.in_use = in_use or (lambda _installation: False)
        self.tree_remover = tree_remover or tree_remover_for(self.environment)
        self._spawn = spawner

        pipeline = ExtractionPipeline(
            registry,
            self.fetcher,
            extractor or DefaultArchiveExtractor(),
            self.environment,
        )
        self.coordinator = DownloadCoordinator(
            pipeline, self.environment, self._base_path
        )

    def _base_path(self) -> str:
        return self.preferences.get_preferences().installation_path

    async def startup(self, auto_cleanup: bool = False) -> None:
        """
        Prepares the installation base path.

        With `auto_cleanup`, also runs the automatic cleanup. Callers must only
        ask for it when `in_use` knows every installation a server still runs.
        """
        try:
            path_policy.setup_base_path(self._base_path(), self.environment)
        except OSError as e:
            log.error(f"[red]Could not create installation directory:[/] {e}")
        if auto_cleanup:
            await self.cleanup_old_versions(is_automatic=True)

    async def close(self) -> None:
        await self.coordinator.shutdown()
        await self.fetcher.close()

    # Reads

    def list_installations(self) -> list[Installation]:
        return self.registry.list()

    def get_installation(self, fork_name: str, build_version: int) -> Installation | None:
        return self.registry.find(fork_name, build_version)

    def get_installation_by_id(self, installation_id: uuid.UUID) -> Installation | None:
        return self.registry.find_by_id(installation_id)

    def get_active_download(self, fork_name: str, build_version: int) -> Download | None:
        return self.coordinator.get_active(fork_name, build_version)

    def list_downloads(self) -> list[Download]:
        return self.coordinator.list()

    # Downloads

    def start_download(self, server: ServerDescriptor) -> tuple[Download | None, str]:
        return self.coordinator.start(server)

    def cancel_download(self, fork_name: str, build_version: int) -> tuple[bool, str]:
        return self.coordinator.cancel(fork_name, build_version)

    # Installations

    def start_installation(
        self,
        installation_id: uuid.UUID,
        server: str | None = None,
        port: int | None = None,
    ) -> tuple[bool, str]:
        """Starts the game from an installation, optionally joining a server."""
        installation = self.registry.find_by_id(installation_id)
        if installation is None:
            log.warning(f"{NOT_FOUND_REASON} ID: {installation_id}")
            return False, NOT_FOUND_REASON

        executable = resolve_executable(installation.installation_path, self.environment)
        if executable is None:
            if self.environment is CurrentEnvironment.UNKNOWN:
                log.warning(f"{UNHANDLED_PLATFORM_REASON} Platform: {self.environment.name}")
                return False, UNHANDLED_PLATFORM_REASON
            log.warning(
                f"{NO_EXECUTABLE_REASON} Installation Path: "
                f"{installation.installation_path or 'null'}"
            )
            return False, NO_EXECUTABLE_REASON

        ensure_executable(executable, self.environment)

        argv = build_launch_command(
            executable, build_arguments(server, port), self.environment
        )
        if argv is None:
            log.warning(f"{UNHANDLED_PLATFORM_REASON} Platform: {self.environment.name}")
            return False, UNHANDLED_PLATFORM_REASON

        try:
            self._spawn(argv, Path(installation.installation_path))
        except OSError as e:
            log.error(f"[red]Failed to start '{executable}':[/] {e}")
            return False, f"Failed to start the game process: {e}"

        with self.registry.lock:
            installation.mark_played()
            try:
                self.registry.save()
            except OSError as e:
                log.error(f"[red]Could not write installation registry:[/] {e}")

        log.info(
            f"Started {installation.fork_name} build {installation.build_version}"
            + (f" joining {server}" if server else "")
        )
        return True, ""

    async def delete_installation(self, installation_id: uuid.UUID) -> tuple[bool, str]:
        """Removes an installation's files and its registry entry."""
        installation = self.registry.find_by_id(installation_id)
        if installation is None:
            log.warning(f"{NOT_FOUND_REASON} ID: {installation_id}")
            return False, NOT_FOUND_REASON

        path = installation.installation_path
        if not path or not path.strip():
            log.warning(f"{EMPTY_PATH_REASON} ID: {installation_id}")
            return False, EMPTY_PATH_REASON

        if Path(path).is_dir():
            log.info(
                f"Deleting installation. Fork={installation.fork_name} "
                f"Version={installation.build_version} Path={path}"
            )
            try:
                await asyncio.to_thread(self.tree_remover.remove, Path(path))
            except OSError as e:
                log.error(f"[red]Failed to delete installation at '{path}':[/] {e}")
                return False, f"Failed to delete installation files: {e}"

        try:
            self.registry.remove(installation)
        except OSError as e:
            log.error(f"[red]Could not write installation registry:[/] {e}")
            return False, "Could not update the installation registry."
        return True, ""

    async def cleanup_old_versions(self, is_automatic: bool) -> tuple[bool, str]:
        """
        Deletes every installation that is neither in use nor recently played.

        A failure to delete one installation does not stop the others.
        """
        if is_automatic and not self.preferences.get_preferences().auto_remove:
            log.info(AUTO_REMOVE_DISABLED_REASON)
            return False, AUTO_REMOVE_DISABLED_REASON

        removed = 0
        for installation in self.registry.list():
            if self.in_use(installation) or installation.recently_used:
                continue

            success, reason = await self.delete_installation(installation.installation_id)
            if success:
                removed += 1
            else:
                log.warning(
                    f"[yellow]Could not clean up {installation.fork_name} build "
                    f"{installation.build_version}:[/yellow] {reason}"
                )

        log.info(f"Cleanup removed {removed} old installation(s).")
        return True, ""

    async def move_installations(self, new_base_path: str) -> bool:
        """
        Relocates every installation under the current base path to a new one
        and makes it the configured base path.

        The batch stops at the first installation that cannot be moved.
        """
        old_base_path = self._base_path()
        if Path(new_base_path).resolve() == Path(old_base_path).resolve():
            log.info("New installation path is the current one, nothing to move.")
            return True

        if any(d.active for d in self.coordinator.list()):
            log.warning("Cannot move installations while a download is in progress.")
            return False

        try:
            path_policy.setup_base_path(new_base_path, self.environment)
        except OSError as e:
            log.error(f"[red]Could not create '{new_base_path}':[/] {e}")
            return False

        def _move() -> bool:
            with self.registry.lock:
                moved = path_policy.move_installations(
                    self.registry.list(), old_base_path, new_base_path
                )
                self.registry.save()
                return moved

        try:
            moved = await asyncio.to_thread(_move)
        except OSError as e:
            log.error(f"[red]Could not write installation registry:[/] {e}")
            return False

        if not moved:
            return False

        try:
            self.preferences.update(installation_path=new_base_path)
        except ConfigurationError as e:
            log.error(f"[red]Could not store the new installation path:[/] {e}")
            return False
        return True

    def is_valid_installation_base_path(self, path: str) -> tuple[bool, str]:
        return path_policy.validate_base_path(path)

    # Orphans

    def find_orphaned_directories(self) -> list[Path]:
        """
        Lists `base/<fork>/<version>` directories that are neither registered nor
        being downloaded, typically left behind by failed or interrupted downloads.
        """
        base = Path(self._base_path())
        if not base.is_dir():
            return []

        known = {
            Path(i.installation_path).resolve()
            for i in self.registry.list()
            if i.installation_path
        }
        known |= {
            Path(d.install_path).resolve() for d in self.coordinator.list() if d.active
        }

        orphans = []
        for fork_dir in base.iterdir():
            if not fork_dir.is_dir():
                continue
            for version_dir in fork_dir.iterdir():
                if (
                    version_dir.is_dir()
                    and version_dir.name.isdigit()
                    and version_dir.resolve() not in known
                ):
                    orphans.append(version_dir)
        return sorted(orphans)

    async def remove_orphaned_directories(self) -> int:
        """Deletes orphaned directories. Returns how many were removed."""
        removed = 0
        for orphan in self.find_orphaned_directories():
            try:
                await asyncio.to_thread(self.tree_remover.remove, orphan)
                removed += 1
                log.info(f"Removed orphaned directory [dim]{orphan}[/dim]")
            except OSError as e:
                log.error(f"[red]Failed to remove orphaned directory '{orphan}':[/] {e}")
        return removed
