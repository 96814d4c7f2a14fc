"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from stationhub.models.download import Download, TransferOutcome
from stationhub.models.installation import Installation
from stationhub.models.preferences import Preferences
from stationhub.utils.formatting import format_last_played, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check the values in your preferences file.",
            "• Run `stationhub prefs` to see the file location and current values.",
        ],
        "ArchiveError": [
            "• The downloaded build is corrupt or in an unexpected format.",
            "• Delete the leftover directory with `stationhub orphans --remove`"
            " and download again.",
        ],
        "TransferError": [
            "• The build server refused the download.",
            "• The build may have been removed; check the server list.",
        ],
        "ClientConnectorError": [
            "• A network connection issue occurred.",
            "• Check your internet connection and try again.",
        ],
        "PermissionError": [
            "• The launcher cannot write to the installation directory.",
            "• Pick another directory with `stationhub move`.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -v for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_installations_table(installations: list[Installation]):
    """Displays every registered installation."""
    console = Console()
    if not installations:
        console.print("[dim]No installations yet.[/dim]")
        return

    table = Table(title="Installations", box=box.SIMPLE_HEAVY)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Fork", style="cyan")
    table.add_column("Build", justify="right", style="green")
    table.add_column("Last Played")
    table.add_column("Path", style="dim")

    for installation in sorted(installations, key=lambda i: i.key):
        last_played = format_last_played(installation.last_played_date)
        if installation.recently_used:
            last_played = f"[yellow]{last_played}[/yellow]"
        table.add_row(
            str(installation.installation_id),
            installation.fork_name,
            str(installation.build_version),
            last_played,
            installation.installation_path or "[red]missing[/red]",
        )
    console.print(table)


def print_download_result(download: Download):
    """Summarizes how a download ended."""
    console = Console()
    result = download.result
    if result is None:
        console.print("[yellow]Download is still running.[/yellow]")
        return

    if result.success and result.installation:
        console.print(
            f"[bold green]✓ Installed {download.fork_name} build "
            f"{download.build_version}[/bold green] "
            f"({format_size(download.downloaded)})\n"
            f"  ID:   [cyan]{result.installation.installation_id}[/cyan]\n"
            f"  Path: [dim]{result.installation.installation_path}[/dim]"
        )
        return

    style = "yellow" if result.outcome is TransferOutcome.CANCELLED else "red"
    console.print(
        f"[bold {style}]✗ {download.fork_name} build {download.build_version}: "
        f"{result.outcome.value.replace('_', ' ')}[/bold {style}]"
    )
    if result.reason:
        console.print(f"  [dim]{result.reason}[/dim]")
    if result.outcome is TransferOutcome.EXTRACTION_FAILED:
        console.print(
            f"  [dim]Partial files were left in {download.install_path}. "
            "Run `stationhub orphans --remove` to delete them.[/dim]"
        )


def print_preferences(preferences_path: Path, preferences: Preferences):
    """Displays the current preferences."""
    console = Console()
    content = "\n".join(
        f"{key} = {value}" for key, value in preferences.model_dump().items()
    )
    console.print(
        Panel(
            content,
            title=f"Preferences ([dim]{preferences_path}[/dim])",
            border_style="cyan",
        )
    )


def print_orphans(orphans: list[Path]):
    """Lists directories that do not belong to any installation."""
    console = Console()
    if not orphans:
        console.print("[green]✓ No orphaned directories found.[/green]")
        return
    console.print(f"[yellow]Found {len(orphans)} orphaned directories:[/yellow]")
    for orphan in orphans:
        console.print(f"  [dim]{orphan}[/dim]")
