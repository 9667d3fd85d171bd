"""Filesystem layer — storage backends, mounts, the VFS router."""

from mountfs.fs.database_fs import DatabaseFileSystem
from mountfs.fs.exceptions import (
    InvalidOperationError,
    MountFSError,
    MountNotFoundError,
    PathNotFoundError,
    StorageError,
)
from mountfs.fs.local_disk import LocalDiskBackend
from mountfs.fs.mounts import MountConfig, MountRegistry
from mountfs.fs.protocol import StorageBackend, SupportsBatchRead, SupportsBatchWrite
from mountfs.fs.selection import BackendSelector
from mountfs.fs.types import BackendPreference, BatchEntry, FileEntry, FileStats, MountInfo
from mountfs.fs.utils import normalize_path
from mountfs.fs.vfs import VFS

__all__ = [
    "VFS",
    "BackendPreference",
    "BackendSelector",
    "BatchEntry",
    "DatabaseFileSystem",
    "FileEntry",
    "FileStats",
    "InvalidOperationError",
    "LocalDiskBackend",
    "MountConfig",
    "MountFSError",
    "MountInfo",
    "MountNotFoundError",
    "MountRegistry",
    "PathNotFoundError",
    "StorageBackend",
    "StorageError",
    "SupportsBatchRead",
    "SupportsBatchWrite",
    "normalize_path",
]
