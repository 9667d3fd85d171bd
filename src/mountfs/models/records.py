"""File and directory record models for the flat store.

Provides ``FileRecordBase`` and ``DirectoryRecordBase`` non-table base
classes.  Subclass with ``table=True`` and a custom ``__tablename__`` to
keep several independent stores in one database.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, LargeBinary
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(UTC)


class FileRecordBase(SQLModel):
    """One stored file, keyed by its canonical path."""

    path: str = Field(primary_key=True)
    content: bytes = Field(default=b"", sa_type=LargeBinary)
    is_binary: bool = Field(default=False)
    size: int = Field(default=0)
    mtime: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    ctime: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class FileRecord(FileRecordBase, table=True):
    """Default file table, ``mountfs_files``."""

    __tablename__ = "mountfs_files"


class DirectoryRecordBase(SQLModel):
    """One explicit directory marker, keyed by its canonical path."""

    path: str = Field(primary_key=True)
    ctime: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class DirectoryRecord(DirectoryRecordBase, table=True):
    """Default directory table, ``mountfs_directories``."""

    __tablename__ = "mountfs_directories"
