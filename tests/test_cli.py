"""
Smoke tests for the command-line interface.
"""

from datetime import datetime, timedelta
from pathlib import Path

import pytest
from typer.testing import CliRunner

from stationhub.cli import app as cli
from stationhub.models.installation import Installation
from stationhub.storage.registry import InstallationRegistry

runner = CliRunner()


@pytest.fixture
def cli_dirs(tmp_path, monkeypatch):
    """Points the CLI at a throwaway config and user data directory."""
    prefs_file = tmp_path / "config" / "preferences.ini"
    userdata = tmp_path / "userdata"
    base = tmp_path / "Installations"
    prefs_file.parent.mkdir()
    prefs_file.write_text(
        f"[DEFAULT]\ninstallation_path = {base}\nauto_remove = false\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(cli, "PREFERENCES_FILE", prefs_file)
    monkeypatch.setattr(cli, "USERDATA_DIR", userdata)
    monkeypatch.setenv("COLUMNS", "200")
    return prefs_file, userdata, base


class TestCli:
    """Commands that do not touch the network"""

    def test_version(self):
        result = runner.invoke(cli.app, ["--version"])
        assert result.exit_code == 0
        assert "stationhub" in result.output

    def test_list_empty(self, cli_dirs):
        result = runner.invoke(cli.app, ["list"])
        assert result.exit_code == 0
        assert "No installations" in result.output

    def test_list_shows_installations(self, cli_dirs):
        _, userdata, base = cli_dirs
        InstallationRegistry(userdata).add(
            Installation(
                fork_name="CoolFork",
                build_version=12,
                installation_path=str(base / "CoolFork" / "12"),
            )
        )
        result = runner.invoke(cli.app, ["list"])
        assert result.exit_code == 0
        assert "CoolFork" in result.output

    def test_check_path(self, cli_dirs, tmp_path):
        result = runner.invoke(cli.app, ["check-path", str(tmp_path / "new")])
        assert result.exit_code == 0
        assert (tmp_path / "new").is_dir()

    def test_check_path_non_ascii(self, cli_dirs, tmp_path):
        result = runner.invoke(cli.app, ["check-path", str(tmp_path / "jeux-é")])
        assert result.exit_code == 1

    def test_prefs_toggle_auto_remove(self, cli_dirs):
        prefs_file, _, _ = cli_dirs
        result = runner.invoke(cli.app, ["prefs", "--auto-remove"])
        assert result.exit_code == 0
        assert "auto_remove = true" in prefs_file.read_text(encoding="utf-8")

    def test_cleanup_rejects_bad_keep(self, cli_dirs):
        result = runner.invoke(cli.app, ["cleanup", "--keep", "no-build-number"])
        assert result.exit_code == 1

    def test_launch_unknown_id(self, cli_dirs):
        result = runner.invoke(
            cli.app, ["launch", "00000000-0000-0000-0000-000000000000"]
        )
        assert result.exit_code == 1
        assert "Installation not found" in result.output


@pytest.fixture
def stale_installation(cli_dirs):
    """Enables auto_remove and registers a build last played an hour ago."""
    prefs_file, userdata, base = cli_dirs
    prefs_file.write_text(
        f"[DEFAULT]\ninstallation_path = {base}\nauto_remove = true\n",
        encoding="utf-8",
    )
    path = base / "CoolFork" / "12"
    path.mkdir(parents=True)
    (path / "Unitystation").write_bytes(b"bin")
    installation = Installation(
        fork_name="CoolFork",
        build_version=12,
        installation_path=str(path),
        last_played_date=datetime.now() - timedelta(hours=1),
    )
    InstallationRegistry(userdata).add(installation)
    return installation


class TestCliKeepsInstallations:
    """Only an explicit cleanup may delete builds, even with auto_remove on"""

    def _assert_kept(self, cli_dirs, installation):
        _, userdata, _ = cli_dirs
        assert InstallationRegistry(userdata).find_by_id(
            installation.installation_id
        ) is not None
        assert Path(installation.installation_path).is_dir()

    def test_list(self, cli_dirs, stale_installation):
        result = runner.invoke(cli.app, ["list"])
        assert result.exit_code == 0
        assert "CoolFork" in result.output
        self._assert_kept(cli_dirs, stale_installation)

    def test_launch(self, cli_dirs, stale_installation, mocker):
        popen = mocker.patch("stationhub.system.process.subprocess.Popen")
        popen.return_value.pid = 4242

        result = runner.invoke(
            cli.app, ["launch", str(stale_installation.installation_id)]
        )

        assert result.exit_code == 0
        popen.assert_called_once()
        self._assert_kept(cli_dirs, stale_installation)

    def test_orphans(self, cli_dirs, stale_installation):
        result = runner.invoke(cli.app, ["orphans"])
        assert result.exit_code == 0
        self._assert_kept(cli_dirs, stale_installation)

    def test_cleanup_auto_honours_preference(self, cli_dirs, stale_installation):
        prefs_file, userdata, _ = cli_dirs
        result = runner.invoke(cli.app, ["cleanup", "--auto"])
        assert result.exit_code == 0
        assert InstallationRegistry(userdata).list() == []

        prefs_file.write_text(
            prefs_file.read_text(encoding="utf-8").replace(
                "auto_remove = true", "auto_remove = false"
            ),
            encoding="utf-8",
        )
        result = runner.invoke(cli.app, ["cleanup", "--auto"])
        assert result.exit_code == 0
        assert "Nothing removed" in result.output
