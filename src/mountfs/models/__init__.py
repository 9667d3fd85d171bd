"""SQLModel tables backing the flat-store backend."""

from mountfs.models.records import (
    DirectoryRecord,
    DirectoryRecordBase,
    FileRecord,
    FileRecordBase,
)

__all__ = [
    "DirectoryRecord",
    "DirectoryRecordBase",
    "FileRecord",
    "FileRecordBase",
]
