"""Tests for backend auto-selection and VFS.mount_auto."""

from __future__ import annotations

import asyncio

import pytest

from mountfs.fs import selection
from mountfs.fs.database_fs import DatabaseFileSystem
from mountfs.fs.exceptions import StorageError
from mountfs.fs.local_disk import LocalDiskBackend
from mountfs.fs.selection import BackendSelector, mount_slug, probe_disk_write
from mountfs.fs.vfs import VFS


@pytest.fixture
def no_disk(monkeypatch):
    """Make every disk write probe fail."""
    monkeypatch.setattr(selection, "probe_disk_write", lambda data_dir: False)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestMountSlug:
    @pytest.mark.parametrize(
        ("mount_path", "expected"),
        [
            ("/documents", "documents"),
            ("/a/b c", "a_b_c"),
            ("/", "root"),
            ("docs/", "docs"),
        ],
    )
    def test_slug(self, mount_path, expected):
        assert mount_slug(mount_path) == expected


class TestProbe:
    def test_probe_leaves_nothing_behind(self, tmp_path):
        (tmp_path / "files").mkdir()
        assert probe_disk_write(tmp_path) is True
        assert list((tmp_path / "files").iterdir()) == []

    def test_probe_fails_without_root(self, tmp_path):
        assert probe_disk_write(tmp_path / "missing") is False


# ---------------------------------------------------------------------------
# BackendSelector
# ---------------------------------------------------------------------------


class TestBackendSelector:
    async def test_auto_prefers_disk(self, tmp_path):
        selector = BackendSelector(tmp_path)
        assert await selector.select("auto") == "disk"

    async def test_database_preference(self, tmp_path):
        selector = BackendSelector(tmp_path)
        assert await selector.select("database") == "database"

    async def test_auto_falls_back(self, tmp_path, no_disk):
        selector = BackendSelector(tmp_path)
        assert await selector.select("auto") == "database"

    async def test_disk_preference_unavailable(self, tmp_path, no_disk):
        selector = BackendSelector(tmp_path)
        with pytest.raises(StorageError):
            await selector.select("disk")

    async def test_data_dir_is_a_file(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        selector = BackendSelector(blocker)
        assert await selector.disk_usable() is False

    async def test_unknown_preference(self, tmp_path):
        with pytest.raises(ValueError):
            await BackendSelector(tmp_path).select("cloud")  # type: ignore[arg-type]

    async def test_probe_runs_once(self, tmp_path, monkeypatch):
        calls: list[object] = []

        def counting_probe(data_dir):
            calls.append(data_dir)
            return True

        monkeypatch.setattr(selection, "probe_disk_write", counting_probe)
        selector = BackendSelector(tmp_path)
        results = await asyncio.gather(*(selector.disk_usable() for _ in range(5)))
        assert results == [True] * 5
        assert len(calls) == 1


# ---------------------------------------------------------------------------
# VFS.mount_auto
# ---------------------------------------------------------------------------


class TestMountAuto:
    async def test_disk_mount(self, tmp_path):
        async with VFS(data_dir=tmp_path) as vfs:
            backend = await vfs.mount_auto("/notes")
            assert isinstance(backend, LocalDiskBackend)
            assert backend.host_dir == (tmp_path / "files" / "notes").resolve()
            assert vfs.get_backend_type("/notes/x") == "disk"

            await vfs.write_file("/notes/a.txt", "hello")
            assert (tmp_path / "files" / "notes" / "a.txt").read_text() == "hello"

    async def test_database_mount(self, tmp_path):
        async with VFS(data_dir=tmp_path) as vfs:
            backend = await vfs.mount_auto("/cache", backend="database")
            assert isinstance(backend, DatabaseFileSystem)
            await vfs.write_file("/cache/a.txt", "hello")
            assert await vfs.read_file("/cache/a.txt") == "hello"
        assert (tmp_path / "cache.db").exists()

    async def test_fallback_to_database(self, tmp_path, no_disk):
        async with VFS(data_dir=tmp_path) as vfs:
            backend = await vfs.mount_auto("/x")
            assert backend.name == "database"

    async def test_disk_preference_raises(self, tmp_path, no_disk):
        async with VFS(data_dir=tmp_path) as vfs:
            with pytest.raises(StorageError):
                await vfs.mount_auto("/x", backend="disk")
            assert vfs.get_mounts() == []

    async def test_auto_mounts_do_not_alias(self, tmp_path):
        async with VFS(data_dir=tmp_path) as vfs:
            first = await vfs.mount_auto("/one", backend="database")
            second = await vfs.mount_auto("/two", backend="database")
            assert first is not second
            await vfs.write_file("/one/same.txt", "1")
            await vfs.write_file("/two/same.txt", "2")
            assert await vfs.read_file("/one/same.txt") == "1"
            assert await vfs.read_file("/two/same.txt") == "2"
