"""
In-memory models for downloads. Nothing here is persisted; downloads that were
in flight when the process exited are simply gone on the next start.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

from stationhub.core.progress import ProgressChannel
from stationhub.models.installation import Installation


class DownloadState(Enum):
    REQUESTED = "requested"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class DownloadPhase(Enum):
    TRANSFERRING = "transferring"
    EXTRACTING = "extracting"


class TransferOutcome(Enum):
    """How a download ended."""

    COMPLETED = "completed"
    MISSING_CONTENT_LENGTH = "missing_content_length"
    TRANSFER_FAILED = "transfer_failed"
    EXTRACTION_FAILED = "extraction_failed"
    CANCELLED = "cancelled"


@dataclass
class TransferResult:
    outcome: TransferOutcome
    reason: str = ""
    installation: Installation | None = None

    @property
    def success(self) -> bool:
        return self.outcome is TransferOutcome.COMPLETED


@dataclass
class Download:
    """Tracks one transfer-and-extract operation for a fork and build version."""

    download_url: str
    install_path: str
    fork_name: str
    build_version: int
    size: int | None = None
    downloaded: int = 0
    state: DownloadState = DownloadState.REQUESTED
    phase: DownloadPhase = DownloadPhase.TRANSFERRING
    result: TransferResult | None = None
    progress: ProgressChannel = field(default_factory=ProgressChannel, repr=False)
    _finished: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def key(self) -> tuple[str, int]:
        return self.fork_name, self.build_version

    @property
    def active(self) -> bool:
        return self.state is DownloadState.ACTIVE

    @property
    def percentage(self) -> int:
        if not self.size:
            return 0
        return self.downloaded * 100 // self.size

    def advance(self, byte_count: int) -> None:
        """Adds transferred bytes and publishes the new total to subscribers."""
        if byte_count <= 0:
            return
        self.downloaded += byte_count
        self.progress.publish(self.downloaded)

    def finish(self, result: TransferResult) -> None:
        self.result = result
        self.state = (
            DownloadState.COMPLETED if result.success else DownloadState.FAILED
        )
        self.progress.close()
        self._finished.set()

    async def wait(self) -> TransferResult | None:
        """Waits until the download has completed or failed."""
        await self._finished.wait()
        return self.result
