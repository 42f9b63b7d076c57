"""Tests for the raw storage backends."""

from __future__ import annotations

from pathlib import Path

import pytest

from campussync.storage.backends import FileStorage, MemoryStorage


@pytest.fixture(params=["memory", "file"])
def backend(request, tmp_path: Path):
    if request.param == "memory":
        return MemoryStorage()
    return FileStorage(tmp_path / "cache")


class TestContract:
    def test_missing_key_reads_none(self, backend) -> None:
        assert backend.read_raw("cache:u1:students") is None

    def test_write_read_delete(self, backend) -> None:
        backend.write_raw("cache:u1:students", "[]")
        assert backend.read_raw("cache:u1:students") == "[]"

        backend.delete_raw("cache:u1:students")
        assert backend.read_raw("cache:u1:students") is None

    def test_delete_missing_key_is_a_noop(self, backend) -> None:
        backend.delete_raw("never-written")

    def test_keys_by_prefix(self, backend) -> None:
        for key in ("cache:u2:staff", "cache:u1:students", "cache:u1:attendance", "other"):
            backend.write_raw(key, "{}")

        assert backend.keys("cache:u1:") == ["cache:u1:attendance", "cache:u1:students"]
        assert len(backend.keys()) == 4

    def test_lock_is_a_context_manager(self, backend) -> None:
        with backend.lock("cache:u1:students"):
            backend.write_raw("cache:u1:students", "{}")
        assert backend.read_raw("cache:u1:students") == "{}"


class TestFileStorage:
    def test_keys_are_encoded_into_file_names(self, tmp_path: Path) -> None:
        storage = FileStorage(tmp_path)
        storage.write_raw("cache:u/1:..", "{}")

        names = sorted(p.name for p in tmp_path.glob("*.json"))
        assert names == ["cache%3Au%2F1%3A...json"]
        assert storage.keys() == ["cache:u/1:.."]

    def test_default_locks_dir(self, tmp_path: Path) -> None:
        storage = FileStorage(tmp_path / "cache")
        with storage.lock("cache:u1:students"):
            assert (tmp_path / "cache" / ".locks" / "cache%3Au1%3Astudents.lock").exists()

    def test_survives_reopen(self, tmp_path: Path) -> None:
        FileStorage(tmp_path).write_raw("k", "v")
        assert FileStorage(tmp_path).read_raw("k") == "v"

    def test_memory_storage_initial_data_is_copied(self) -> None:
        seed = {"k": "v"}
        storage = MemoryStorage(seed)
        storage.write_raw("k", "changed")
        assert seed == {"k": "v"}
