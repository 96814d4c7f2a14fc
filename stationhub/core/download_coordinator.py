"""
Tracks in-flight downloads and guarantees at most one active download per fork
and build version.
"""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from stationhub.core.extraction import ExtractionPipeline
from stationhub.core.path_policy import installation_path
from stationhub.models.download import (
    Download,
    DownloadPhase,
    DownloadState,
    TransferOutcome,
    TransferResult,
)
from stationhub.models.server import ServerDescriptor
from stationhub.system.environment import CurrentEnvironment

log = logging.getLogger(__name__)

MISSING_URL_REASON = "Empty or missing download url for server."
PATH_OCCUPIED_REASON = "Installation path already occupied."


class DownloadCoordinator:
    """
    Owns the transient list of downloads. Nothing here survives a restart.

    `start` must be called from inside the running event loop; it schedules the
    transfer as a background task and returns straight away.
    """

    def __init__(
        self,
        pipeline: ExtractionPipeline,
        environment: CurrentEnvironment,
        base_path: Callable[[], str],
    ):
        self.pipeline = pipeline
        self.environment = environment
        self._base_path = base_path
        self._downloads: dict[tuple[str, int], Download] = {}
        self._tasks: dict[tuple[str, int], asyncio.Task] = {}

    def list(self) -> list[Download]:
        return list(self._downloads.values())

    def get_active(self, fork_name: str, build_version: int) -> Download | None:
        download = self._downloads.get((fork_name, build_version))
        if download and download.active:
            return download
        return None

    def start(self, server: ServerDescriptor) -> tuple[Download | None, str]:
        """
        Starts downloading the build a server runs.

        Returns the existing download if one is already active for the same fork
        and version.
        """
        download_url = server.get_download_url(self.environment)
        if not download_url or not download_url.strip():
            log.warning(f"{MISSING_URL_REASON} ServerName: {server.server_name}")
            return None, MISSING_URL_REASON

        existing = self.get_active(server.fork_name, server.build_version)
        if existing is not None:
            log.warning(
                "Download already in progress. "
                f"ForkName={server.fork_name} BuildVersion={server.build_version}"
            )
            return existing, ""

        install_path = installation_path(
            self._base_path(), server.fork_name, server.build_version
        )
        if Path(install_path).exists():
            log.warning(f"{PATH_OCCUPIED_REASON} Path={install_path}")
            return None, PATH_OCCUPIED_REASON

        download = Download(
            download_url=download_url.strip(),
            install_path=str(install_path),
            fork_name=server.fork_name,
            build_version=server.build_version,
        )
        download.state = DownloadState.ACTIVE
        self._downloads[download.key] = download

        task = asyncio.get_running_loop().create_task(
            self.pipeline.run(download),
            name=f"download-{server.fork_name}-{server.build_version}",
        )
        self._tasks[download.key] = task
        task.add_done_callback(lambda t, d=download: self._on_task_done(d, t))
        return download, ""

    def cancel(self, fork_name: str, build_version: int) -> tuple[bool, str]:
        """Aborts a download that has not reached extraction yet."""
        download = self.get_active(fork_name, build_version)
        if download is None:
            return False, "No active download for this version."
        if download.phase is DownloadPhase.EXTRACTING:
            return False, "The build is already being extracted and cannot be cancelled."

        task = self._tasks.get(download.key)
        if task is None or task.done():
            return False, "No active download for this version."
        task.cancel()
        return True, ""

    async def shutdown(self) -> None:
        """Cancels transfers still in progress and waits for every task to settle."""
        for key, task in list(self._tasks.items()):
            download = self._downloads.get(key)
            if download and download.phase is DownloadPhase.TRANSFERRING:
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    def _on_task_done(self, download: Download, task: asyncio.Task) -> None:
        if self._tasks.get(download.key) is task:
            del self._tasks[download.key]

        if task.cancelled():
            # A task cancelled before its first step never reaches the pipeline's
            # cleanup, so the download has to be closed here.
            if download.active:
                download.finish(
                    TransferResult(TransferOutcome.CANCELLED, "Download cancelled.")
                )
            return

        if (exc := task.exception()) is not None:
            log.error(f"Download task for {download.key} crashed: {exc}")
