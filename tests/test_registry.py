"""
Tests for the persisted installation registry.
"""

import json
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from stationhub.models.installation import Installation
from stationhub.storage.registry import InstallationRegistry


class TestInstallationRegistryLoading:
    """Loading the registry file"""

    def test_missing_file_gives_empty_registry(self, tmp_path):
        """A fresh user data directory has no installations"""
        registry = InstallationRegistry(tmp_path)
        assert registry.list() == []
        assert len(registry) == 0

    def test_empty_file_gives_empty_registry(self, tmp_path):
        """An empty file is treated like a missing one"""
        (tmp_path / "installations.json").write_text("  \n", encoding="utf-8")
        assert InstallationRegistry(tmp_path).list() == []

    def test_malformed_file_gives_empty_registry(self, tmp_path):
        """Garbage in the file never prevents startup"""
        (tmp_path / "installations.json").write_text("{not json", encoding="utf-8")
        assert InstallationRegistry(tmp_path).list() == []

    def test_invalid_utf8_gives_empty_registry(self, tmp_path):
        """Bytes that are not UTF-8 are treated like any other corruption"""
        (tmp_path / "installations.json").write_bytes(b"\xff\xfe[garbage\x80")
        registry = InstallationRegistry(tmp_path)
        assert registry.list() == []

        registry.add(Installation(fork_name="A", build_version=1))
        assert len(InstallationRegistry(tmp_path)) == 1

    def test_wrong_shape_gives_empty_registry(self, tmp_path):
        """Valid JSON with missing fields is rejected as a whole"""
        (tmp_path / "installations.json").write_text(
            json.dumps([{"fork_name": "CoolFork"}]), encoding="utf-8"
        )
        assert InstallationRegistry(tmp_path).list() == []

    def test_round_trip_across_instances(self, tmp_path):
        """Installations survive a restart with every field intact"""
        played = datetime(2024, 5, 1, 12, 30)
        installation = Installation(
            fork_name="CoolFork",
            build_version=12,
            installation_path=str(tmp_path / "CoolFork" / "12"),
            last_played_date=played,
        )
        InstallationRegistry(tmp_path).add(installation)

        reloaded = InstallationRegistry(tmp_path).list()
        assert len(reloaded) == 1
        assert reloaded[0].installation_id == installation.installation_id
        assert reloaded[0].fork_name == "CoolFork"
        assert reloaded[0].build_version == 12
        assert reloaded[0].last_played_date == played


class TestInstallationRegistryMutations:
    """Adding, finding and removing installations"""

    def test_add_writes_file(self, tmp_path):
        """Every mutation rewrites the backing file"""
        registry = InstallationRegistry(tmp_path)
        registry.add(Installation(fork_name="A", build_version=1))

        data = json.loads((tmp_path / "installations.json").read_text(encoding="utf-8"))
        assert [entry["fork_name"] for entry in data] == ["A"]
        assert not (tmp_path / "installations.json.tmp").exists()

    def test_add_replaces_same_fork_and_version(self, tmp_path):
        """There is never more than one record per fork and version"""
        registry = InstallationRegistry(tmp_path)
        first = Installation(fork_name="A", build_version=1, installation_path="/one")
        second = Installation(fork_name="A", build_version=1, installation_path="/two")
        registry.add(first)
        registry.add(second)

        assert len(registry) == 1
        assert registry.find("A", 1).installation_id == second.installation_id

    def test_find_and_find_by_id(self, tmp_path):
        """Lookups by key and by ID"""
        registry = InstallationRegistry(tmp_path)
        installation = Installation(fork_name="A", build_version=7)
        registry.add(installation)

        assert registry.find("A", 7) is installation
        assert registry.find("A", 8) is None
        assert registry.find_by_id(installation.installation_id) is installation

    def test_remove(self, tmp_path):
        """Removal persists and reports whether anything was removed"""
        registry = InstallationRegistry(tmp_path)
        installation = Installation(fork_name="A", build_version=7)
        registry.add(installation)

        assert registry.remove(installation) is True
        assert registry.remove(installation) is False
        assert InstallationRegistry(tmp_path).list() == []

    def test_list_is_a_snapshot(self, tmp_path):
        """Mutating a listed result does not touch the registry"""
        registry = InstallationRegistry(tmp_path)
        registry.add(Installation(fork_name="A", build_version=1))

        snapshot = registry.list()
        snapshot.clear()
        assert len(registry) == 1


class TestInstallationRegistryConcurrency:
    """Mutations from worker threads"""

    def test_concurrent_mutations_keep_file_consistent(self, tmp_path):
        """Adds and removes from many threads leave one record per key on disk"""
        registry = InstallationRegistry(tmp_path)

        def worker(worker_id: int) -> None:
            for i in range(25):
                own = Installation(fork_name=f"Fork{worker_id}", build_version=i % 5)
                registry.add(own)
                registry.add(Installation(fork_name="Shared", build_version=i % 3))
                if i % 4 == 0:
                    registry.remove(own)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(worker, range(8)))

        in_memory = registry.list()
        keys = [i.key for i in in_memory]
        assert len(keys) == len(set(keys))
        assert {("Shared", 0), ("Shared", 1), ("Shared", 2)} <= set(keys)
        for worker_id in range(8):
            assert {v for f, v in keys if f == f"Fork{worker_id}"} == {1, 2, 3}

        reloaded = InstallationRegistry(tmp_path).list()
        assert {i.installation_id for i in reloaded} == {
            i.installation_id for i in in_memory
        }
        assert len({i.key for i in reloaded}) == len(reloaded)
        assert not (tmp_path / "installations.json.tmp").exists()
