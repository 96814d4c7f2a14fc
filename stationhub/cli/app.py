"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import typer
from rich.console import Console
from rich.logging import RichHandler

from stationhub import __version__
from stationhub.core.installation_manager import InstallationManager
from stationhub.exceptions import StationHubError
from stationhub.models.installation import Installation
from stationhub.models.server import ServerDescriptor
from stationhub.storage.preferences_manager import PreferencesManager
from stationhub.storage.registry import InstallationRegistry
from stationhub.system.environment import get_config_dir, get_userdata_dir

from .formatters import (
    print_download_result,
    print_installations_table,
    print_orphans,
    print_preferences,
)
from .progress_display import DownloadProgressDisplay

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("stationhub")

app = typer.Typer(
    name="stationhub",
    help=(
        "Download, launch and manage game builds. Use 'stationhub <command> --help'"
        " for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_DIR = get_config_dir()
PREFERENCES_FILE = CONFIG_DIR / "preferences.ini"
USERDATA_DIR = get_userdata_dir()


def _parse_keep(keep: list[str]) -> set[tuple[str, int]]:
    """Parses FORK:BUILD pairs given on the command line."""
    pairs = set()
    for item in keep:
        fork, _, build = item.rpartition(":")
        if not fork or not build.isdigit():
            console.print(
                f"[red]✗ Invalid --keep value '{item}', expected FORK:BUILD.[/red]"
            )
            raise typer.Exit(code=1)
        pairs.add((fork, int(build)))
    return pairs


@asynccontextmanager
async def _open_manager(
    keep: set[tuple[str, int]] | None = None,
) -> AsyncIterator[InstallationManager]:
    preferences = PreferencesManager(PREFERENCES_FILE)
    preferences.load()
    keep = keep or set()

    def in_use(installation: Installation) -> bool:
        return installation.key in keep

    manager = InstallationManager(
        InstallationRegistry(USERDATA_DIR), preferences, in_use=in_use
    )
    try:
        await manager.startup()
        yield manager
    finally:
        await manager.close()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
):
    """StationHub installation manager"""
    if version:
        console.print(f"[bold]stationhub[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    logging.getLogger("stationhub").setLevel("DEBUG" if verbose >= 1 else "INFO")

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command(name="list")
def list_command():
    """List installed builds."""

    async def _list():
        async with _open_manager() as manager:
            print_installations_table(manager.list_installations())

    asyncio.run(_list())


@app.command(name="download")
def download_command(
    fork: str = typer.Option(..., "--fork", "-f", help="Fork name of the build."),
    build: int = typer.Option(..., "--build", "-b", help="Build version number."),
    url: str = typer.Option(..., "--url", "-u", help="Archive URL for this platform."),
    server_name: str = typer.Option(
        "", "--server-name", help="Server offering the build."
    ),
):
    """Download and install a build."""
    server = ServerDescriptor(
        server_name=server_name,
        fork_name=fork,
        build_version=build,
        win_download=url,
        osx_download=url,
        linux_download=url,
    )

    async def _download():
        async with _open_manager() as manager:
            download, reason = manager.start_download(server)
            if download is None:
                console.print(f"[red]✗ Cannot download:[/red] {reason}")
                raise typer.Exit(code=1)

            async with DownloadProgressDisplay(console) as display:
                task_id = display.watch(download)
                await display.follow(download, task_id)

            print_download_result(download)
            if not download.result or not download.result.success:
                raise typer.Exit(code=1)

    asyncio.run(_download())


@app.command()
def launch(
    installation_id: uuid.UUID = typer.Argument(..., help="ID from 'stationhub list'."),
    server: str | None = typer.Option(None, "--server", "-s", help="Server to join."),
    port: int | None = typer.Option(None, "--port", "-p", help="Server port."),
):
    """Start the game from an installation."""

    async def _launch():
        async with _open_manager() as manager:
            success, reason = manager.start_installation(installation_id, server, port)
            if not success:
                console.print(f"[red]✗ Could not start the game:[/red] {reason}")
                raise typer.Exit(code=1)
            console.print("[green]✓ Game started.[/green]")

    asyncio.run(_launch())


@app.command()
def delete(
    installation_id: uuid.UUID = typer.Argument(..., help="ID from 'stationhub list'."),
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Delete an installation from disk."""
    if not force and not typer.confirm(f"Delete installation {installation_id}?"):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    async def _delete():
        async with _open_manager() as manager:
            success, reason = await manager.delete_installation(installation_id)
            if not success:
                console.print(f"[red]✗ Could not delete installation:[/red] {reason}")
                raise typer.Exit(code=1)
            console.print("[green]✓ Installation deleted.[/green]")

    asyncio.run(_delete())


@app.command()
def cleanup(
    keep: list[str] | None = typer.Option(  # noqa: B008
        None, "--keep", "-k", help="FORK:BUILD still used by a server. Repeatable."
    ),
    auto: bool = typer.Option(
        False,
        "--auto",
        help="Only clean up if 'auto_remove' is enabled in the preferences.",
    ),
):
    """Delete every installation that is not in use and was not played recently."""
    keep_pairs = _parse_keep(keep or [])

    async def _cleanup():
        async with _open_manager(keep_pairs) as manager:
            before = len(manager.list_installations())
            success, reason = await manager.cleanup_old_versions(is_automatic=auto)
            if not success and auto:
                console.print(f"[yellow]Nothing removed:[/yellow] {reason}")
                return
            if not success:
                console.print(f"[red]✗ Cleanup failed:[/red] {reason}")
                raise typer.Exit(code=1)
            removed = before - len(manager.list_installations())
            console.print(f"[green]✓ Removed {removed} installation(s).[/green]")

    asyncio.run(_cleanup())


@app.command()
def move(
    new_path: str = typer.Argument(..., help="New installation base directory."),
):
    """Move all installations to a new base directory."""

    async def _move():
        async with _open_manager() as manager:
            valid, reason = manager.is_valid_installation_base_path(new_path)
            if not valid:
                console.print(f"[red]✗ Invalid installation path:[/red] {reason}")
                raise typer.Exit(code=1)
            if not await manager.move_installations(new_path):
                console.print("[red]✗ Moving installations failed, see log above.[/red]")
                raise typer.Exit(code=1)
            console.print(f"[green]✓ Installations now live in {new_path}[/green]")

    asyncio.run(_move())


@app.command(name="check-path")
def check_path(
    path: str = typer.Argument(..., help="Directory to check."),
):
    """Check whether a directory can be used as installation base path."""

    async def _check():
        async with _open_manager() as manager:
            valid, reason = manager.is_valid_installation_base_path(path)
            if valid:
                console.print(f"[green]✓ '{path}' can be used.[/green]")
            else:
                console.print(f"[red]✗ '{path}' cannot be used:[/red] {reason.strip()}")
                raise typer.Exit(code=1)

    asyncio.run(_check())


@app.command()
def orphans(
    remove: bool = typer.Option(
        False, "--remove", help="Delete the orphaned directories."
    ),
):
    """List directories left behind by failed or interrupted downloads."""

    async def _orphans():
        async with _open_manager() as manager:
            found = manager.find_orphaned_directories()
            print_orphans(found)
            if remove and found:
                removed = await manager.remove_orphaned_directories()
                console.print(f"[green]✓ Removed {removed} directories.[/green]")

    asyncio.run(_orphans())


@app.command()
def prefs(
    auto_remove: bool | None = typer.Option(
        None,
        "--auto-remove/--no-auto-remove",
        help="Remove unused installations automatically on start.",
    ),
):
    """Show or change preferences. Use 'move' to change the installation path."""
    try:
        manager = PreferencesManager(PREFERENCES_FILE)
        preferences = manager.load()
        if auto_remove is not None:
            preferences = manager.update(auto_remove=auto_remove)
            console.print("[green]✓ Preferences saved.[/green]")
        print_preferences(PREFERENCES_FILE, preferences)
    except StationHubError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
