"""mountfs: a mount-based virtual filesystem over pluggable storage engines.

One async, path-addressed API for files on local disk and in a database.
"""

__version__ = "0.1.0"

from mountfs.events import EventBus, EventType, FileSystemEvent
from mountfs.fs.database_fs import DatabaseFileSystem
from mountfs.fs.exceptions import (
    InvalidOperationError,
    MountFSError,
    MountNotFoundError,
    PathNotFoundError,
    StorageError,
)
from mountfs.fs.local_disk import LocalDiskBackend
from mountfs.fs.protocol import StorageBackend, SupportsBatchRead, SupportsBatchWrite
from mountfs.fs.types import BatchEntry, FileEntry, FileStats, MountInfo
from mountfs.fs.vfs import VFS

__all__ = [
    "VFS",
    "BatchEntry",
    "DatabaseFileSystem",
    "EventBus",
    "EventType",
    "FileEntry",
    "FileStats",
    "FileSystemEvent",
    "InvalidOperationError",
    "LocalDiskBackend",
    "MountFSError",
    "MountInfo",
    "MountNotFoundError",
    "PathNotFoundError",
    "StorageBackend",
    "StorageError",
    "SupportsBatchRead",
    "SupportsBatchWrite",
    "__version__",
]
