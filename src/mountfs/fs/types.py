"""Value types: FileStats, FileEntry, BatchEntry, MountInfo."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    ProgressCallback = Callable[[int, int], None]
    """Receives ``(completed, total)`` after each committed chunk."""

BackendPreference = Literal["auto", "disk", "database"]
"""Which engine ``VFS.mount_auto`` should build."""


@dataclass(frozen=True, slots=True)
class FileStats:
    """File/directory metadata derived from a backend record."""

    size: int
    is_file: bool
    is_directory: bool
    mtime: datetime


@dataclass(frozen=True, slots=True)
class FileEntry:
    """A single directory listing entry."""

    name: str
    path: str
    is_directory: bool


@dataclass(frozen=True, slots=True)
class BatchEntry:
    """One ``path -> content`` pair for ``write_binary_batch``."""

    path: str
    content: bytes


@dataclass(frozen=True, slots=True)
class MountInfo:
    """Public view of a mount table row."""

    path: str
    backend: str


def sort_entries(entries: list[FileEntry]) -> list[FileEntry]:
    """Directories first, then by name."""
    return sorted(entries, key=lambda e: (not e.is_directory, e.name))
