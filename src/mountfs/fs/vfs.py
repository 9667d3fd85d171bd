"""VFS — mount router with dispatch, cross-backend transfer, batches, events."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from mountfs.events import EventBus, EventType, FileSystemEvent

from .database_fs import DEFAULT_DATA_DIR
from .exceptions import InvalidOperationError, PathNotFoundError
from .mounts import MountConfig, MountRegistry, backend_name
from .protocol import StorageBackend
from .selection import BackendSelector
from .types import BatchEntry, FileEntry
from .utils import join_virtual, normalize_path, parent_path

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Sequence
    from types import TracebackType

    from mountfs.events import EventHandler

    from .types import BackendPreference, FileStats, MountInfo, ProgressCallback

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Backend instance id -> (first mount seen for it, [(path as given, relative path, payload)])
_Partition = dict[int, tuple[MountConfig, list[tuple[str, str, T]]]]


class VFS:
    """Routes operations to backends via the mount registry.

    Presents a single namespace to callers while delegating to the
    backend whose mount path is the longest prefix of the requested
    path.  Handles cross-backend rename/copy, fans batch operations out
    per backend, and notifies subscribers of successful mutations.

    Each backend owns its records; the VFS itself only holds the mount
    table and the subscriber list, both in memory.
    """

    def __init__(self, *, data_dir: str | Path | None = None, concurrency: int = 20) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.data_dir = Path(data_dir) if data_dir else DEFAULT_DATA_DIR
        self.concurrency = concurrency
        self._registry = MountRegistry()
        self._event_bus = EventBus()
        self._selector = BackendSelector(self.data_dir)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close every mounted backend.  Failures are logged, not raised."""
        closed: set[int] = set()
        for mount in self._registry.list_mounts():
            if id(mount.backend) in closed:
                continue
            closed.add(id(mount.backend))
            try:
                await mount.backend.close()
            except Exception:
                logger.warning("Backend close failed for %s", mount.mount_path, exc_info=True)

    async def __aenter__(self) -> VFS:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Mount management
    # ------------------------------------------------------------------

    def mount(self, path: str, backend: StorageBackend) -> None:
        """Mount *backend* at *path*, replacing any mount at the same path."""
        if not isinstance(backend, StorageBackend):
            raise TypeError(f"{type(backend).__name__} does not implement StorageBackend")
        self._registry.add_mount(MountConfig(mount_path=path, backend=backend))

    async def mount_auto(
        self, path: str, *, backend: BackendPreference = "auto"
    ) -> StorageBackend:
        """Build a backend of the preferred kind, open it, and mount it at *path*."""
        instance = await self._selector.build(path, backend)
        await instance.open()
        self.mount(path, instance)
        logger.debug("Auto-mounted %s backend at %s", instance.name, normalize_path(path))
        return instance

    def unmount(self, path: str) -> bool:
        """Remove the mount at exactly *path*.  The backend is left open."""
        removed = self._registry.remove_mount(path)
        if removed is not None:
            logger.debug("Unmounted %s", removed.mount_path)
        return removed is not None

    def resolve(self, path: str) -> tuple[StorageBackend, str]:
        """Backend and backend-relative path for *path*."""
        config, rel = self._registry.resolve(path)
        return config.backend, rel

    def get_mounts(self) -> list[MountInfo]:
        """Active mounts, most specific first."""
        return self._registry.mount_infos()

    def is_mounted(self, path: str) -> bool:
        """Whether some mount serves *path*."""
        return self._registry.find(path) is not None

    def get_backend_type(self, path: str) -> str | None:
        """Name of the backend that would serve *path*, or None."""
        config = self._registry.find(path)
        return backend_name(config.backend) if config is not None else None

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Call *handler* with every ``FileSystemEvent``; returns an unsubscriber."""
        return self._event_bus.subscribe(handler)

    def _notifies(self, silent: bool) -> bool:
        return not silent and self._event_bus.handler_count > 0

    def _emit(self, event_type: EventType, path: str, *, silent: bool = False) -> None:
        if self._notifies(silent):
            self._event_bus.emit(FileSystemEvent(type=event_type, path=path))

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def read_file(self, path: str) -> str:
        backend, rel = self.resolve(path)
        return await backend.read_file(rel)

    async def read_binary(self, path: str) -> bytes:
        backend, rel = self.resolve(path)
        return await backend.read_binary(rel)

    async def write_file(
        self, path: str, content: str, *, create_parents: bool = False, silent: bool = False
    ) -> None:
        await self._write(path, content, create_parents=create_parents, silent=silent)

    async def write_binary(
        self, path: str, content: bytes, *, create_parents: bool = False, silent: bool = False
    ) -> None:
        await self._write(path, content, create_parents=create_parents, silent=silent)

    async def _write(
        self, path: str, content: str | bytes, *, create_parents: bool, silent: bool
    ) -> None:
        path = normalize_path(path)
        backend, rel = self.resolve(path)

        existed = False
        if self._notifies(silent):
            existed = await backend.exists(rel)

        if create_parents:
            parent = parent_path(rel)
            if parent != "/":
                await backend.mkdir(parent)

        if isinstance(content, str):
            await backend.write_file(rel, content)
        else:
            await backend.write_binary(rel, content)

        event_type = EventType.FILE_MODIFIED if existed else EventType.FILE_CREATED
        self._emit(event_type, path, silent=silent)

    async def delete_file(self, path: str, *, silent: bool = False) -> None:
        """Delete a file.  Deleting a missing file succeeds."""
        path = normalize_path(path)
        backend, rel = self.resolve(path)
        await backend.delete_file(rel)
        self._emit(EventType.FILE_DELETED, path, silent=silent)

    async def exists(self, path: str) -> bool:
        """Whether *path* names a file or directory.  Never raises."""
        try:
            backend, rel = self.resolve(path)
            return await backend.exists(rel)
        except Exception:
            logger.debug("exists(%s) failed, reporting False", path, exc_info=True)
            return False

    async def stat(self, path: str) -> FileStats:
        backend, rel = self.resolve(path)
        return await backend.stat(rel)

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    async def mkdir(self, path: str, *, silent: bool = False) -> None:
        path = normalize_path(path)
        backend, rel = self.resolve(path)
        await backend.mkdir(rel)
        self._emit(EventType.DIRECTORY_CREATED, path, silent=silent)

    async def rmdir(self, path: str, *, recursive: bool = False, silent: bool = False) -> None:
        path = normalize_path(path)
        backend, rel = self.resolve(path)
        await backend.rmdir(rel, recursive=recursive)
        self._emit(EventType.DIRECTORY_DELETED, path, silent=silent)

    async def readdir(self, path: str) -> list[FileEntry]:
        """List *path*'s direct children with absolute virtual paths."""
        config, rel = self._registry.resolve(path)
        entries = await config.backend.readdir(rel)
        return [
            FileEntry(
                name=entry.name,
                path=join_virtual(config.root, entry.path),
                is_directory=entry.is_directory,
            )
            for entry in entries
        ]

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    async def rename(self, old_path: str, new_path: str, *, silent: bool = False) -> None:
        """Move a single file, across backends if needed (not atomic there)."""
        old_path = normalize_path(old_path)
        new_path = normalize_path(new_path)
        src, src_rel = self.resolve(old_path)
        dest, dest_rel = self.resolve(new_path)

        if src is dest:
            await src.rename(src_rel, dest_rel)
        else:
            await self._transfer(src, src_rel, dest, dest_rel, old_path)
            await src.delete_file(src_rel)

        if old_path != new_path:
            self._emit(EventType.FILE_DELETED, old_path, silent=silent)
            self._emit(EventType.FILE_CREATED, new_path, silent=silent)

    async def copy_file(self, src_path: str, dest_path: str, *, silent: bool = False) -> None:
        src_path = normalize_path(src_path)
        dest_path = normalize_path(dest_path)
        src, src_rel = self.resolve(src_path)
        dest, dest_rel = self.resolve(dest_path)

        if src is dest:
            await src.copy_file(src_rel, dest_rel)
        else:
            await self._transfer(src, src_rel, dest, dest_rel, src_path)

        if src_path != dest_path:
            self._emit(EventType.FILE_CREATED, dest_path, silent=silent)

    async def _transfer(
        self,
        src: StorageBackend,
        src_rel: str,
        dest: StorageBackend,
        dest_rel: str,
        virtual_src: str,
    ) -> None:
        """Cross-backend read -> write of one file."""
        stats = await src.stat(src_rel)
        if stats.is_directory:
            raise InvalidOperationError(
                f"Cannot move directories across backends, use recursive copy: {virtual_src}"
            )
        content = await src.read_binary(src_rel)
        await dest.write_binary(dest_rel, content)

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    def _width(self, concurrency: int | None) -> int:
        width = self.concurrency if concurrency is None else concurrency
        if width < 1:
            raise ValueError(f"concurrency must be >= 1, got {width}")
        return width

    def _partition(self, items: Iterable[tuple[str, T]]) -> _Partition[T]:
        """Group ``(path, payload)`` pairs by backend instance.

        Paths no mount serves are dropped.  Each kept item becomes
        ``(path as given, backend-relative path, payload)``.
        """
        groups: _Partition[T] = {}
        for original, payload in items:
            config = self._registry.find(original)
            if config is None:
                logger.debug("Batch skipping unmounted path %s", original)
                continue
            rel = config.relative(normalize_path(original))
            group = groups.setdefault(id(config.backend), (config, []))
            group[1].append((original, rel, payload))
        return groups

    async def read_binary_batch(
        self, paths: Iterable[str], *, concurrency: int | None = None
    ) -> dict[str, bytes]:
        """Read many files, keyed by the paths as given.

        Unmounted, missing and non-file paths are left out of the result.
        """
        width = self._width(concurrency)
        results: dict[str, bytes] = {}

        for config, items in self._partition((p, None) for p in paths).values():
            backend = config.backend
            if config.batch_read:
                rels = [rel for _, rel, _ in items]
                found = await backend.read_binary_batch(rels)  # type: ignore[attr-defined]
                for original, rel, _ in items:
                    if rel in found:
                        results[original] = found[rel]
                continue

            for chunk in _chunked(items, width):
                contents = await asyncio.gather(
                    *(self._read_lenient(backend, rel) for _, rel, _ in chunk)
                )
                for (original, _, _), content in zip(chunk, contents, strict=True):
                    if content is not None:
                        results[original] = content

        return results

    async def _read_lenient(self, backend: StorageBackend, rel: str) -> bytes | None:
        try:
            return await backend.read_binary(rel)
        except (PathNotFoundError, InvalidOperationError):
            logger.debug("Batch read skipping %s", rel)
            return None

    async def write_binary_batch(
        self,
        entries: Iterable[BatchEntry],
        *,
        create_parents: bool = True,
        silent: bool = False,
        on_progress: ProgressCallback | None = None,
        concurrency: int | None = None,
    ) -> None:
        """Write many files, one backend partition at a time.

        ``on_progress(completed, total)`` counts across all partitions;
        *total* covers only entries that resolve to a mount.  The first
        backend error aborts the remaining work.
        """
        width = self._width(concurrency)
        groups = self._partition((e.path, e.content) for e in entries)
        total = sum(len(items) for _, items in groups.values())
        if total == 0:
            if on_progress is not None:
                on_progress(0, 0)
            return

        completed = 0
        for config, items in groups.values():
            backend = config.backend
            if config.batch_write:
                forward = None
                if on_progress is not None:
                    forward = _offset_progress(on_progress, completed, total)
                await backend.write_binary_batch(  # type: ignore[attr-defined]
                    [BatchEntry(path=rel, content=content) for _, rel, content in items],
                    concurrency=width,
                    on_progress=forward,
                )
                completed += len(items)
                self._emit_created(items, silent)
                continue

            for chunk in _chunked(items, width):
                await asyncio.gather(
                    *(
                        self._write_one(backend, rel, content, create_parents)
                        for _, rel, content in chunk
                    )
                )
                completed += len(chunk)
                self._emit_created(chunk, silent)
                if on_progress is not None:
                    on_progress(completed, total)

    async def _write_one(
        self, backend: StorageBackend, rel: str, content: bytes, create_parents: bool
    ) -> None:
        if create_parents:
            parent = parent_path(rel)
            if parent != "/":
                await backend.mkdir(parent)
        await backend.write_binary(rel, content)

    def _emit_created(self, items: Sequence[tuple[str, str, bytes]], silent: bool) -> None:
        if not self._notifies(silent):
            return
        for original, _, _ in items:
            self._emit(EventType.FILE_CREATED, normalize_path(original))


def _chunked(items: list[T], size: int) -> Iterator[list[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _offset_progress(
    on_progress: ProgressCallback, offset: int, total: int
) -> ProgressCallback:
    """Translate one partition's progress into batch-wide progress."""

    def forward(done: int, _partition_total: int) -> None:
        on_progress(offset + done, total)

    return forward
