"""
Turns an active download into a registered installation: streams the archive
to disk while publishing progress, extracts it, and records the result.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path

import aiofiles
import aiohttp

from stationhub.core.progress import ProgressThrottle
from stationhub.exceptions import ArchiveError, TransferError
from stationhub.models.download import (
    Download,
    DownloadPhase,
    TransferOutcome,
    TransferResult,
)
from stationhub.models.installation import Installation
from stationhub.storage.registry import InstallationRegistry
from stationhub.system.environment import CurrentEnvironment
from stationhub.system.executable import ensure_executable, resolve_executable
from stationhub.transfer.archive import ArchiveExtractor
from stationhub.transfer.fetcher import Fetcher
from stationhub.utils.formatting import format_size

log = logging.getLogger(__name__)


def spool_path_for(install_path: str | Path) -> Path:
    """The temporary file an archive is written to before extraction."""
    install_dir = Path(install_path)
    return install_dir.parent / f".{install_dir.name}.download"


class ExtractionPipeline:
    """
    Runs one download to completion in the background.

    Failures never propagate out of `run`; they are logged and recorded in the
    download's result. A directory left behind by a failed extraction is not
    removed and is not registered.
    """

    def __init__(
        self,
        registry: InstallationRegistry,
        fetcher: Fetcher,
        extractor: ArchiveExtractor,
        environment: CurrentEnvironment,
        progress_interval: float = 0.25,
        progress_percent: float = 25.0,
    ):
        self.registry = registry
        self.fetcher = fetcher
        self.extractor = extractor
        self.environment = environment
        self.progress_interval = progress_interval
        self.progress_percent = progress_percent

    async def run(self, download: Download) -> TransferResult:
        install_dir = Path(download.install_path)
        spool_path = spool_path_for(install_dir)
        log.info(
            f"Download requested, Installation Path '{install_dir}', "
            f"Url '{download.download_url}'"
        )

        result = TransferResult(
            TransferOutcome.TRANSFER_FAILED, "Download did not complete."
        )
        try:
            install_dir.mkdir(parents=True, exist_ok=True)
            result = await self._transfer(download, spool_path)
            if result.success:
                download.phase = DownloadPhase.EXTRACTING
                result = await self._extract_and_register(download, spool_path)
        except asyncio.CancelledError:
            log.warning(
                f"[yellow]Download of {download.fork_name} build "
                f"{download.build_version} cancelled.[/yellow]"
            )
            result = TransferResult(TransferOutcome.CANCELLED, "Download cancelled.")
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, TransferError, OSError) as e:
            log.error(f"[red]Failed to download Url '{download.download_url}':[/] {e}")
            result = TransferResult(TransferOutcome.TRANSFER_FAILED, str(e))
        except Exception as e:
            log.error(
                f"[red]Unexpected error downloading '{download.download_url}':[/] {e}",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            result = TransferResult(TransferOutcome.TRANSFER_FAILED, str(e))
        finally:
            download.finish(result)
            self._discard_spool(spool_path)
            self._persist_registry()

        return result

    async def _transfer(self, download: Download, spool_path: Path) -> TransferResult:
        """Writes the response body to `spool_path`, publishing progress as it goes."""
        log.info("Download started...")
        async with self.fetcher.open(download.download_url) as response:
            log.info("Download connection established")
            if response.content_length is None:
                reason = "Server did not report a content length for the download."
                log.error(f"[red]{reason}[/red] Url '{download.download_url}'")
                return TransferResult(TransferOutcome.MISSING_CONTENT_LENGTH, reason)

            download.size = response.content_length
            unsubscribe = download.progress.subscribe(self._progress_logger(download))
            try:
                async with aiofiles.open(spool_path, "wb") as f:
                    async for chunk in response.iter_chunks():
                        await f.write(chunk)
                        download.advance(len(chunk))
            finally:
                unsubscribe()

        if download.downloaded < download.size:
            reason = (
                f"Connection closed after {format_size(download.downloaded)} "
                f"of {format_size(download.size)}."
            )
            log.error(f"[red]{reason}[/red]")
            return TransferResult(TransferOutcome.TRANSFER_FAILED, reason)
        return TransferResult(TransferOutcome.COMPLETED)

    async def _extract_and_register(
        self, download: Download, spool_path: Path
    ) -> TransferResult:
        install_dir = Path(download.install_path)
        log.info("Extracting...")
        try:
            count = await asyncio.to_thread(
                self.extractor.extract, spool_path, install_dir
            )
        except (ArchiveError, OSError) as e:
            log.error(f"[red]Extracting stopped:[/] {e}")
            return TransferResult(TransferOutcome.EXTRACTION_FAILED, str(e))

        installation = Installation(
            fork_name=download.fork_name,
            build_version=download.build_version,
            installation_path=str(install_dir),
            last_played_date=datetime.now(),
        )
        self.registry.add(installation)
        self._fix_permissions(install_dir)

        log.info(
            f"[green]✓ Download completed:[/] {download.fork_name} build "
            f"{download.build_version} ({count} files)"
        )
        return TransferResult(TransferOutcome.COMPLETED, installation=installation)

    def _fix_permissions(self, install_dir: Path) -> None:
        if self.environment.is_windows:
            return
        ensure_executable(install_dir, self.environment)
        executable = resolve_executable(str(install_dir), self.environment)
        if executable and executable.exists():
            ensure_executable(executable, self.environment)

    def _progress_logger(self, download: Download):
        throttle = ProgressThrottle(
            download.size or 0,
            min_interval=self.progress_interval,
            min_percent=self.progress_percent,
        )

        def log_progress(position: int) -> None:
            emit, speed = throttle.should_emit(position)
            if emit:
                log.info(
                    f"Progress: {download.percentage}%, "
                    f"Speed = {format_size(int(speed))}/s"
                )

        return log_progress

    @staticmethod
    def _discard_spool(spool_path: Path) -> None:
        try:
            spool_path.unlink(missing_ok=True)
        except OSError as e:
            log.warning(f"Could not remove temporary archive '{spool_path}': {e}")

    def _persist_registry(self) -> None:
        try:
            self.registry.save()
        except OSError as e:
            log.error(f"[red]Could not write installation registry:[/] {e}")
