"""Backend auto-selection for ``VFS.mount_auto``.

The disk backend is preferred when the data directory is writable;
otherwise the database backend, which only needs a SQLite file (or any
URL the caller configures), takes over.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
import uuid
from typing import TYPE_CHECKING

from .database_fs import DatabaseFileSystem
from .exceptions import StorageError
from .local_disk import LocalDiskBackend
from .utils import normalize_path

if TYPE_CHECKING:
    from pathlib import Path

    from .protocol import StorageBackend
    from .types import BackendPreference

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def mount_slug(mount_path: str) -> str:
    """Derive a directory-safe name from a mount path.

    Examples:
        mount_slug("/documents") -> "documents"
        mount_slug("/a/b c") -> "a_b_c"
        mount_slug("/") -> "root"
    """
    path = normalize_path(mount_path).strip("/")
    return _UNSAFE.sub("_", path.replace("/", "_")).strip("_") or "root"


def is_disk_available(data_dir: Path) -> bool:
    """True when the disk root can be created under *data_dir*."""
    try:
        (data_dir / "files").mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return True


def probe_disk_write(data_dir: Path) -> bool:
    """Write and remove a throwaway file under *data_dir*."""
    root = data_dir / "files"
    probe = root / f".write-test-{uuid.uuid4().hex}"
    try:
        probe.write_bytes(b"test")
    except OSError:
        logger.warning("Disk write test failed in %s", root, exc_info=True)
        return False
    finally:
        with contextlib.suppress(OSError):
            probe.unlink()
    return True


class BackendSelector:
    """Chooses and builds backends for auto-mounted paths.

    The disk probe runs at most once per selector; concurrent callers
    wait for the first probe instead of starting their own.
    """

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir
        self._disk_usable: bool | None = None
        self._probe_lock = asyncio.Lock()

    async def disk_usable(self) -> bool:
        if self._disk_usable is not None:
            return self._disk_usable
        async with self._probe_lock:
            if self._disk_usable is None:
                usable = await asyncio.to_thread(is_disk_available, self.data_dir)
                if usable:
                    usable = await asyncio.to_thread(probe_disk_write, self.data_dir)
                self._disk_usable = usable
                logger.debug("Disk backend usable: %s", usable)
        return self._disk_usable

    async def select(self, preference: BackendPreference = "auto") -> str:
        """Resolve *preference* to a concrete backend kind."""
        if preference == "database":
            return "database"
        if preference == "disk":
            if not await self.disk_usable():
                raise StorageError(f"Disk backend is not available in {self.data_dir}")
            return "disk"
        if preference != "auto":
            raise ValueError(f"Unknown backend preference: {preference!r}")
        if await self.disk_usable():
            return "disk"
        logger.warning("Disk backend unusable, falling back to the database backend")
        return "database"

    async def build(
        self, mount_path: str, preference: BackendPreference = "auto"
    ) -> StorageBackend:
        """Create a fresh backend of the selected kind, scoped to *mount_path*."""
        kind = await self.select(preference)
        slug = mount_slug(mount_path)
        if kind == "disk":
            root = self.data_dir / "files" / slug
            await asyncio.to_thread(root.mkdir, parents=True, exist_ok=True)
            return LocalDiskBackend(root)
        return DatabaseFileSystem(data_dir=self.data_dir, db_name=slug)
