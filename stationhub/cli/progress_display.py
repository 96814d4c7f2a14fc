"""
Renders download progress with a Rich progress bar by subscribing to a
download's progress broadcast.
"""

import asyncio

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from stationhub.models.download import Download, DownloadPhase


class DownloadProgressDisplay:
    """Shows one bar per watched download until the display is closed."""

    def __init__(self, console: Console):
        self.console = console
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=False,
        )
        self._unsubscribers: list = []

    def watch(self, download: Download) -> TaskID:
        description = f"[cyan]{download.fork_name}[/cyan] build {download.build_version}"
        task_id = self.progress.add_task(description, total=download.size, start=True)

        def on_progress(position: int) -> None:
            self.progress.update(task_id, completed=position, total=download.size)

        self._unsubscribers.append(download.progress.subscribe(on_progress))
        return task_id

    async def follow(self, download: Download, task_id: TaskID) -> None:
        """Waits for the download, relabelling the bar once extraction starts."""
        while not download.result:
            if download.phase is DownloadPhase.EXTRACTING:
                self.progress.update(
                    task_id,
                    description=(
                        f"[yellow]Extracting[/yellow] {download.fork_name} "
                        f"build {download.build_version}"
                    ),
                )
            try:
                await asyncio.wait_for(asyncio.shield(download.wait()), timeout=0.2)
            except asyncio.TimeoutError:
                continue

        style = "green" if download.result.success else "red"
        self.progress.update(
            task_id,
            description=(
                f"[{style}]{download.fork_name} build {download.build_version}"
                f"[/{style}]"
            ),
        )

    async def __aenter__(self):
        self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        await asyncio.sleep(0.1)
        self.progress.stop()
