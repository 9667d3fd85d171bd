"""Tests for MountRegistry and MountConfig."""

from __future__ import annotations

import pytest

from mountfs.fs.database_fs import DatabaseFileSystem
from mountfs.fs.exceptions import MountNotFoundError
from mountfs.fs.mounts import MountConfig, MountRegistry, backend_name, normalize_mount_path


class FakeBackend:
    """Minimal stand-in backend for mount tests."""

    name = "fake"


# ---------------------------------------------------------------------------
# MountConfig
# ---------------------------------------------------------------------------


class TestMountConfig:
    def test_normalize_path(self):
        cfg = MountConfig(mount_path="/web", backend=FakeBackend())
        assert cfg.mount_path == "/web/"

    def test_root_mount(self):
        cfg = MountConfig(mount_path="/", backend=FakeBackend())
        assert cfg.mount_path == "/"
        assert cfg.root == ""

    def test_batch_capabilities_absent(self):
        cfg = MountConfig(mount_path="/x", backend=FakeBackend())
        assert cfg.batch_read is False
        assert cfg.batch_write is False

    def test_batch_capabilities_present(self):
        cfg = MountConfig(mount_path="/x", backend=DatabaseFileSystem("sqlite+aiosqlite://"))
        assert cfg.batch_read is True
        assert cfg.batch_write is True

    def test_matches_is_segment_aware(self):
        cfg = MountConfig(mount_path="/data", backend=FakeBackend())
        assert cfg.matches("/data")
        assert cfg.matches("/data/x")
        assert not cfg.matches("/datafile")
        assert not cfg.matches("/other")

    def test_relative(self):
        cfg = MountConfig(mount_path="/data", backend=FakeBackend())
        assert cfg.relative("/data") == "/"
        assert cfg.relative("/data/a/b.txt") == "/a/b.txt"

    def test_relative_root_mount(self):
        cfg = MountConfig(mount_path="/", backend=FakeBackend())
        assert cfg.relative("/a/b") == "/a/b"
        assert cfg.relative("/") == "/"


class TestNormalizeMountPath:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("/docs", "/docs/"), ("docs//", "/docs/"), ("/", "/"), ("", "/")],
    )
    def test_normalize(self, raw, expected):
        assert normalize_mount_path(raw) == expected

    def test_backend_name_falls_back_to_class(self):
        class Nameless:
            pass

        assert backend_name(FakeBackend()) == "fake"
        assert backend_name(Nameless()) == "Nameless"


# ---------------------------------------------------------------------------
# MountRegistry
# ---------------------------------------------------------------------------


class TestMountRegistry:
    def test_resolve_longest_prefix(self):
        reg = MountRegistry()
        outer, inner = FakeBackend(), FakeBackend()
        reg.add_mount(MountConfig(mount_path="/data", backend=outer))
        reg.add_mount(MountConfig(mount_path="/data/archive", backend=inner))

        config, rel = reg.resolve("/data/archive/old.txt")
        assert config.backend is inner
        assert rel == "/old.txt"

        config, rel = reg.resolve("/data/new.txt")
        assert config.backend is outer
        assert rel == "/new.txt"

    def test_registration_order_does_not_matter(self):
        reg = MountRegistry()
        inner, outer = FakeBackend(), FakeBackend()
        reg.add_mount(MountConfig(mount_path="/data/archive", backend=inner))
        reg.add_mount(MountConfig(mount_path="/data", backend=outer))
        assert reg.resolve("/data/archive/x")[0].backend is inner

    def test_no_aliasing_between_siblings(self):
        reg = MountRegistry()
        reg.add_mount(MountConfig(mount_path="/data", backend=FakeBackend()))
        with pytest.raises(MountNotFoundError):
            reg.resolve("/datafile/x")

    def test_root_mount_catches_all(self):
        reg = MountRegistry()
        root = FakeBackend()
        reg.add_mount(MountConfig(mount_path="/", backend=root))
        reg.add_mount(MountConfig(mount_path="/data", backend=FakeBackend()))
        config, rel = reg.resolve("/datafile/x")
        assert config.backend is root
        assert rel == "/datafile/x"

    def test_resolve_mount_point_itself(self):
        reg = MountRegistry()
        reg.add_mount(MountConfig(mount_path="/data", backend=FakeBackend()))
        _, rel = reg.resolve("/data/")
        assert rel == "/"

    def test_unmounted_path_raises(self):
        reg = MountRegistry()
        with pytest.raises(MountNotFoundError, match="No filesystem mounted"):
            reg.resolve("/nowhere")

    def test_add_replaces_same_path(self):
        reg = MountRegistry()
        first, second = FakeBackend(), FakeBackend()
        reg.add_mount(MountConfig(mount_path="/x", backend=first))
        reg.add_mount(MountConfig(mount_path="/x/", backend=second))
        assert len(reg.list_mounts()) == 1
        assert reg.resolve("/x/a")[0].backend is second

    def test_remove_mount(self):
        reg = MountRegistry()
        reg.add_mount(MountConfig(mount_path="/x", backend=FakeBackend()))
        removed = reg.remove_mount("/x")
        assert removed is not None
        assert removed.mount_path == "/x/"
        assert not reg.has_mount("/x")
        assert reg.remove_mount("/x") is None

    def test_mount_infos_in_priority_order(self):
        reg = MountRegistry()
        reg.add_mount(MountConfig(mount_path="/a", backend=FakeBackend()))
        reg.add_mount(MountConfig(mount_path="/a/b/c", backend=FakeBackend()))
        reg.add_mount(MountConfig(mount_path="/a/b", backend=FakeBackend()))
        assert [m.path for m in reg.mount_infos()] == ["/a/b/c/", "/a/b/", "/a/"]
        assert {m.backend for m in reg.mount_infos()} == {"fake"}

    def test_find_returns_none(self):
        reg = MountRegistry()
        assert reg.find("/x") is None
