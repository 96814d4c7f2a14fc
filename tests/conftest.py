import asyncio
import io
import zipfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import pytest

from stationhub.core.installation_manager import InstallationManager
from stationhub.models.preferences import Preferences
from stationhub.models.server import ServerDescriptor
from stationhub.storage.registry import InstallationRegistry
from stationhub.system.environment import CurrentEnvironment

FORK = "CoolFork"
BUILD = 4021
URL = "https://builds.example.org/CoolFork/4021/linux.zip"


def build_zip(files: dict[str, bytes]) -> bytes:
    """Builds an in-memory zip archive from a name -> content mapping."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


@dataclass
class FakeResponse:
    content_length: int | None
    body: bytes
    chunk_size: int
    gate: asyncio.Event | None = None

    async def iter_chunks(self):
        for offset in range(0, len(self.body), self.chunk_size):
            if self.gate is not None:
                await self.gate.wait()
            yield self.body[offset : offset + self.chunk_size]


class FakeFetcher:
    """Serves a fixed body for any URL."""

    def __init__(
        self,
        body: bytes = b"",
        declare_length: bool = True,
        declared_length: int | None = None,
        chunk_size: int = 1024,
        error: Exception | None = None,
    ):
        self.body = body
        self.declare_length = declare_length
        self.declared_length = declared_length
        self.chunk_size = chunk_size
        self.error = error
        self.gate: asyncio.Event | None = None
        self.opened: list[str] = []
        self.closed = False

    def hold(self) -> asyncio.Event:
        """Blocks the body until the returned event is set."""
        self.gate = asyncio.Event()
        return self.gate

    @asynccontextmanager
    async def open(self, url: str):
        self.opened.append(url)
        if self.error is not None:
            raise self.error
        length = None
        if self.declare_length:
            length = (
                self.declared_length
                if self.declared_length is not None
                else len(self.body)
            )
        yield FakeResponse(length, self.body, self.chunk_size, self.gate)

    async def close(self) -> None:
        self.closed = True


class FakePreferences:
    """In-memory stand-in for the preferences file."""

    def __init__(self, installation_path: Path, auto_remove: bool = False):
        self._preferences = Preferences(
            installation_path=str(installation_path), auto_remove=auto_remove
        )
        self.updates: list[dict] = []

    def get_preferences(self) -> Preferences:
        return self._preferences

    def update(self, **changes) -> Preferences:
        self.updates.append(changes)
        self._preferences = self._preferences.model_copy(update=changes)
        return self._preferences


@pytest.fixture
def base_path(tmp_path: Path) -> Path:
    path = tmp_path / "Installations"
    path.mkdir()
    return path


@pytest.fixture
def registry(tmp_path: Path) -> InstallationRegistry:
    return InstallationRegistry(tmp_path / "userdata")


@pytest.fixture
def preferences(base_path: Path) -> FakePreferences:
    return FakePreferences(base_path)


@pytest.fixture
def archive_body() -> bytes:
    return build_zip(
        {
            "Unitystation": b"#!/bin/sh\necho hi\n",
            "Unitystation_Data/level0": b"x" * 5000,
        }
    )


@pytest.fixture
def fetcher(archive_body: bytes) -> FakeFetcher:
    return FakeFetcher(archive_body)


@pytest.fixture
def spawner(mocker):
    return mocker.Mock(return_value=4242)


@pytest.fixture
def server() -> ServerDescriptor:
    return ServerDescriptor(
        server_name="Test Station",
        fork_name=FORK,
        build_version=BUILD,
        win_download=URL.replace("linux", "win"),
        osx_download=URL.replace("linux", "osx"),
        linux_download=URL,
    )


@pytest.fixture
def manager(registry, preferences, fetcher, spawner) -> InstallationManager:
    return InstallationManager(
        registry,
        preferences,
        environment=CurrentEnvironment.LINUX_STANDALONE,
        fetcher=fetcher,
        spawner=spawner,
    )
