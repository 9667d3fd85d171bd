"""StorageBackend protocol — runtime-checkable interfaces.

Split into a core protocol and opt-in capability protocols so that
engines without a cheaper bulk path implement just the core.  The
``VFS`` resolves the capabilities once, when a backend is mounted,
and falls back to fanning out single-entry calls otherwise.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .types import BatchEntry, FileEntry, FileStats, ProgressCallback


@runtime_checkable
class StorageBackend(Protocol):
    """Core interface every backend must implement.

    Paths are backend-relative and may arrive un-normalized; backends
    normalize them.  Missing paths raise ``PathNotFoundError`` except in
    ``exists`` (returns False) and ``delete_file`` (no-op).
    """

    name: str
    """Engine identifier reported by ``VFS.get_backend_type``."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Prepare the engine.  No-op if not needed."""
        ...

    async def close(self) -> None:
        """Release engine resources."""
        ...

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    async def read_file(self, path: str) -> str: ...

    async def read_binary(self, path: str) -> bytes: ...

    async def write_file(self, path: str, content: str) -> None:
        """Write text, creating any missing ancestor directories."""
        ...

    async def write_binary(self, path: str, content: bytes) -> None:
        """Write bytes, creating any missing ancestor directories."""
        ...

    async def delete_file(self, path: str) -> None: ...

    async def exists(self, path: str) -> bool: ...

    async def stat(self, path: str) -> FileStats: ...

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    async def mkdir(self, path: str) -> object:
        """Create *path* and every missing ancestor.  Idempotent.

        The return value is backend-specific; ``DatabaseFileSystem``
        returns the directories it created, ``LocalDiskBackend`` None.
        """
        ...

    async def rmdir(self, path: str, *, recursive: bool = False) -> None: ...

    async def readdir(self, path: str) -> list[FileEntry]:
        """Direct children, directories first, then by name."""
        ...

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    async def rename(self, old_path: str, new_path: str) -> None:
        """Move a single file.  Directories raise ``InvalidOperationError``."""
        ...

    async def copy_file(self, src: str, dest: str) -> None: ...


@runtime_checkable
class SupportsBatchRead(Protocol):
    """Opt-in: read many files against one view of the store."""

    async def read_binary_batch(self, paths: Iterable[str]) -> dict[str, bytes]:
        """Map each input path to its content, omitting misses."""
        ...


@runtime_checkable
class SupportsBatchWrite(Protocol):
    """Opt-in: write many files with amortized transaction overhead."""

    async def write_binary_batch(
        self,
        entries: Sequence[BatchEntry],
        *,
        concurrency: int = 20,
        on_progress: ProgressCallback | None = None,
    ) -> None: ...
