"""LocalDiskBackend — direct disk access with native directories."""

from __future__ import annotations

import asyncio
import contextlib
import os
import shutil
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from .exceptions import InvalidOperationError, PathNotFoundError
from .types import FileEntry, FileStats, sort_entries
from .utils import normalize_path


class LocalDiskBackend:
    """Pure local disk access backend.

    Implements the ``StorageBackend`` protocol by delegating to the host
    filesystem, which already has directories: ``mkdir`` is
    ``Path.mkdir(parents=True)``, ``readdir`` is ``os.scandir`` and so on.
    Blocking calls run in worker threads via ``asyncio.to_thread``.

    Security: ``resolve_host_path()`` keeps every path inside ``host_dir``
    and refuses to traverse symlinks.
    """

    name = "disk"

    def __init__(self, host_dir: Path | str) -> None:
        self.host_dir = Path(host_dir).resolve()

        if not self.host_dir.exists():
            raise FileNotFoundError(f"Host directory does not exist: {self.host_dir}")
        if not self.host_dir.is_dir():
            raise NotADirectoryError(f"Host path is not a directory: {self.host_dir}")

    # =========================================================================
    # Path Resolution & Security
    # =========================================================================

    def resolve_host_path(self, virtual_path: str) -> Path:
        """Resolve a virtual path to a physical path on disk.

        Validates that the resolved path stays within host_dir.
        Rejects symlinks to prevent TOCTOU attacks.
        """
        virtual_path = normalize_path(virtual_path)
        rel = virtual_path.lstrip("/")
        if not rel:
            return self.host_dir

        current = self.host_dir
        for part in Path(rel).parts:
            current = current / part
            if current.is_symlink():
                raise PermissionError(
                    f"Symlinks not allowed: {virtual_path} contains symlink at "
                    f"{current.relative_to(self.host_dir)}"
                )

        resolved = (self.host_dir / rel).resolve()

        try:
            resolved.relative_to(self.host_dir)
        except ValueError:
            raise PermissionError(
                f"Path traversal detected: {virtual_path} resolves outside mount directory"
            ) from None

        return resolved

    def _resolve_entry(self, path: str) -> tuple[str, Path]:
        """Resolve a non-root path; the root has no parent to hold it."""
        path = normalize_path(path)
        if path == "/":
            raise InvalidOperationError("Invalid path: root has no parent")
        return path, self.resolve_host_path(path)

    # =========================================================================
    # Lifecycle (no-op for local disk)
    # =========================================================================

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    # =========================================================================
    # Files
    # =========================================================================

    async def read_file(self, path: str) -> str:
        data = await self.read_binary(path)
        return data.decode("utf-8", errors="replace")

    async def read_binary(self, path: str) -> bytes:
        path, resolved = self._resolve_entry(path)

        def _read() -> bytes | None:
            if not resolved.is_file():
                return None
            return resolved.read_bytes()

        data = await asyncio.to_thread(_read)
        if data is None:
            raise PathNotFoundError(f"No such file: {path}")
        return data

    async def write_file(self, path: str, content: str) -> None:
        await self.write_binary(path, content.encode("utf-8"))

    async def write_binary(self, path: str, content: bytes) -> None:
        """Write content to a file on disk. Atomic via tempfile + replace."""
        path, resolved = self._resolve_entry(path)

        def _write() -> None:
            if resolved.is_dir():
                raise InvalidOperationError(f"Is a directory: {path}")
            resolved.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(resolved.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(content)
                Path(tmp_path).replace(resolved)
            except Exception:
                with contextlib.suppress(OSError):
                    Path(tmp_path).unlink()
                raise

        await asyncio.to_thread(_write)

    async def delete_file(self, path: str) -> None:
        path, resolved = self._resolve_entry(path)

        def _delete() -> None:
            if resolved.is_dir():
                raise InvalidOperationError(f"Is a directory: {path}")
            resolved.unlink(missing_ok=True)

        await asyncio.to_thread(_delete)

    async def exists(self, path: str) -> bool:
        try:
            resolved = self.resolve_host_path(path)
        except PermissionError:
            return False
        return await asyncio.to_thread(resolved.exists)

    async def stat(self, path: str) -> FileStats:
        resolved = self.resolve_host_path(path)

        def _stat() -> FileStats | None:
            try:
                st = resolved.stat()
            except (FileNotFoundError, NotADirectoryError):
                return None
            is_dir = resolved.is_dir()
            return FileStats(
                size=0 if is_dir else st.st_size,
                is_file=not is_dir,
                is_directory=is_dir,
                mtime=datetime.fromtimestamp(st.st_mtime, tz=UTC),
            )

        stats = await asyncio.to_thread(_stat)
        if stats is None:
            raise PathNotFoundError(f"No such file or directory: {normalize_path(path)}")
        return stats

    # =========================================================================
    # Directories
    # =========================================================================

    async def mkdir(self, path: str) -> None:
        resolved = self.resolve_host_path(path)

        def _mkdir() -> None:
            if resolved.is_file():
                raise InvalidOperationError(f"Not a directory: {normalize_path(path)}")
            resolved.mkdir(parents=True, exist_ok=True)

        await asyncio.to_thread(_mkdir)

    async def rmdir(self, path: str, *, recursive: bool = False) -> None:
        """Remove a directory; non-recursive removal fails on a non-empty one."""
        path = normalize_path(path)
        if path == "/":
            raise InvalidOperationError("Cannot remove root directory")
        resolved = self.resolve_host_path(path)

        def _rmdir() -> None:
            if not resolved.exists():
                return
            if not resolved.is_dir():
                raise InvalidOperationError(f"Not a directory: {path}")
            if recursive:
                shutil.rmtree(resolved)
            else:
                resolved.rmdir()

        await asyncio.to_thread(_rmdir)

    async def readdir(self, path: str) -> list[FileEntry]:
        path = normalize_path(path)
        resolved = self.resolve_host_path(path)
        prefix = "/" if path == "/" else path + "/"

        def _scan() -> list[FileEntry] | None:
            if not resolved.is_dir():
                return None
            with os.scandir(resolved) as it:
                return [
                    FileEntry(
                        name=entry.name,
                        path=prefix + entry.name,
                        is_directory=entry.is_dir(follow_symlinks=False),
                    )
                    for entry in it
                ]

        entries = await asyncio.to_thread(_scan)
        if entries is None:
            raise PathNotFoundError(f"No such directory: {path}")
        return sort_entries(entries)

    # =========================================================================
    # Utility
    # =========================================================================

    async def rename(self, old_path: str, new_path: str) -> None:
        old_path, src = self._resolve_entry(old_path)
        new_path, dest = self._resolve_entry(new_path)

        def _move() -> None:
            if src.is_dir():
                raise InvalidOperationError(
                    "Cannot rename directories with rename(), use recursive copy"
                )
            if not src.is_file():
                raise PathNotFoundError(f"No such file: {old_path}")
            if dest.is_dir():
                raise InvalidOperationError(f"Is a directory: {new_path}")
            dest.parent.mkdir(parents=True, exist_ok=True)
            os.replace(src, dest)

        await asyncio.to_thread(_move)

    async def copy_file(self, src: str, dest: str) -> None:
        src, src_resolved = self._resolve_entry(src)
        dest, dest_resolved = self._resolve_entry(dest)

        if src == dest:
            return

        def _copy() -> None:
            if src_resolved.is_dir():
                raise InvalidOperationError(f"Is a directory: {src}")
            if not src_resolved.is_file():
                raise PathNotFoundError(f"No such file: {src}")
            if dest_resolved.is_dir():
                raise InvalidOperationError(f"Is a directory: {dest}")
            dest_resolved.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src_resolved, dest_resolved)

        await asyncio.to_thread(_copy)
