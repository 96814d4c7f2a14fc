"""
Tests for platform-specific helpers: executable lookup, process spawning and
directory removal.
"""

import os
import stat
import subprocess
from pathlib import Path

import pytest

from stationhub.system import process
from stationhub.system.environment import CurrentEnvironment, detect_environment
from stationhub.system.executable import ensure_executable, resolve_executable
from stationhub.system.process import (
    build_arguments,
    build_launch_command,
    spawn_detached,
)
from stationhub.system.removal import (
    PosixTreeRemover,
    WindowsTreeRemover,
    tree_remover_for,
)


class TestResolveExecutable:
    """Per-platform binary location inside an installation"""

    @pytest.mark.parametrize(
        "environment,relative",
        [
            (CurrentEnvironment.WINDOWS_STANDALONE, "Unitystation.exe"),
            (
                CurrentEnvironment.MACOS_STANDALONE,
                "Unitystation.app/Contents/MacOS/unitystation",
            ),
            (CurrentEnvironment.LINUX_STANDALONE, "Unitystation"),
            (CurrentEnvironment.LINUX_FLATPAK, "Unitystation"),
        ],
    )
    def test_known_platforms(self, tmp_path, environment, relative):
        assert resolve_executable(str(tmp_path), environment) == tmp_path / relative

    def test_unknown_platform(self, tmp_path):
        assert resolve_executable(str(tmp_path), CurrentEnvironment.UNKNOWN) is None

    @pytest.mark.parametrize("path", [None, "", "   "])
    def test_blank_path(self, path):
        assert resolve_executable(path, CurrentEnvironment.LINUX_STANDALONE) is None


class TestEnsureExecutable:
    """Permission fix-up before launching"""

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    def test_adds_user_execute_bit(self, tmp_path):
        binary = tmp_path / "Unitystation"
        binary.write_bytes(b"bin")
        binary.chmod(0o644)

        assert ensure_executable(binary, CurrentEnvironment.LINUX_STANDALONE) is True
        assert os.stat(binary).st_mode & stat.S_IXUSR

    def test_missing_file_reports_failure(self, tmp_path):
        missing = tmp_path / "nope"
        assert ensure_executable(missing, CurrentEnvironment.LINUX_STANDALONE) is False

    def test_windows_is_a_no_op(self, tmp_path, mocker):
        chmod = mocker.patch("stationhub.system.executable.os.chmod")
        missing = tmp_path / "nope"
        assert ensure_executable(missing, CurrentEnvironment.WINDOWS_STANDALONE) is True
        chmod.assert_not_called()


class TestEnvironmentDetection:
    """Platform detection"""

    @pytest.mark.parametrize(
        "platform,expected",
        [
            ("win32", CurrentEnvironment.WINDOWS_STANDALONE),
            ("darwin", CurrentEnvironment.MACOS_STANDALONE),
            ("freebsd13", CurrentEnvironment.UNKNOWN),
        ],
    )
    def test_platforms(self, mocker, platform, expected):
        mocker.patch("stationhub.system.environment.sys.platform", platform)
        assert detect_environment() is expected

    def test_flatpak(self, mocker, monkeypatch):
        mocker.patch("stationhub.system.environment.sys.platform", "linux")
        monkeypatch.setenv("FLATPAK_ID", "org.unitystation.StationHub")
        assert detect_environment() is CurrentEnvironment.LINUX_FLATPAK

    def test_plain_linux(self, mocker, monkeypatch):
        mocker.patch("stationhub.system.environment.sys.platform", "linux")
        flatpak_info = mocker.patch("stationhub.system.environment.Path")
        flatpak_info.return_value.exists.return_value = False
        monkeypatch.delenv("FLATPAK_ID", raising=False)
        assert detect_environment() is CurrentEnvironment.LINUX_STANDALONE


class TestProcess:
    """Argument construction and process spawning"""

    def test_no_server_means_no_arguments(self):
        assert build_arguments() == []
        assert build_arguments("  ", 7777) == []

    def test_server_and_port(self):
        assert build_arguments("play.example.org", 7777) == [
            "--server",
            "play.example.org",
            "--port",
            "7777",
        ]

    def test_server_without_port(self):
        assert build_arguments("play.example.org") == ["--server", "play.example.org"]

    def test_launch_command(self, tmp_path):
        executable = tmp_path / "Unitystation"
        argv = build_launch_command(
            executable, ["--server", "x"], CurrentEnvironment.LINUX_STANDALONE
        )
        assert argv == [str(executable), "--server", "x"]

    def test_launch_command_unknown_platform(self, tmp_path):
        assert (
            build_launch_command(tmp_path / "x", [], CurrentEnvironment.UNKNOWN) is None
        )

    def test_spawn_detached_never_uses_a_shell(self, tmp_path, mocker):
        popen = mocker.patch.object(process.subprocess, "Popen")
        popen.return_value.pid = 99

        assert spawn_detached(["/bin/game", "--server", "a b"], tmp_path) == 99

        args, kwargs = popen.call_args
        assert args[0] == ["/bin/game", "--server", "a b"]
        assert kwargs["shell"] is False
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["stdout"] is subprocess.DEVNULL

    def test_spawn_failure_propagates(self, mocker):
        mocker.patch.object(
            process.subprocess, "Popen", side_effect=FileNotFoundError("missing")
        )
        with pytest.raises(OSError):
            spawn_detached(["/does/not/exist"])


def _make_tree(root: Path) -> None:
    (root / "Data" / "Managed").mkdir(parents=True)
    (root / "Unitystation").write_bytes(b"bin")
    (root / "Data" / "Managed" / "game.dll").write_bytes(b"dll")


class TestTreeRemoval:
    """Recursive removal strategies"""

    def test_strategy_per_platform(self):
        assert isinstance(
            tree_remover_for(CurrentEnvironment.WINDOWS_STANDALONE), WindowsTreeRemover
        )
        assert isinstance(
            tree_remover_for(CurrentEnvironment.LINUX_FLATPAK), PosixTreeRemover
        )

    @pytest.mark.parametrize("remover", [PosixTreeRemover(), WindowsTreeRemover()])
    def test_removes_whole_tree(self, tmp_path, remover):
        root = tmp_path / "CoolFork" / "12"
        _make_tree(root)

        remover.remove(root)
        assert not root.exists()
        assert (tmp_path / "CoolFork").is_dir()

    def test_windows_strategy_removes_read_only_files(self, tmp_path):
        root = tmp_path / "build"
        _make_tree(root)
        read_only = root / "Data" / "Managed" / "game.dll"
        read_only.chmod(stat.S_IREAD)

        WindowsTreeRemover().remove(root)
        assert not root.exists()

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(OSError):
            PosixTreeRemover().remove(tmp_path / "missing")
