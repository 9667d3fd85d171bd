"""Shared fixtures for mountfs tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from mountfs.fs.database_fs import DatabaseFileSystem
from mountfs.fs.local_disk import LocalDiskBackend
from mountfs.fs.vfs import VFS

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine sharing one connection across sessions."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False, poolclass=StaticPool)
    yield eng
    await eng.dispose()


@pytest.fixture
async def db(async_engine: AsyncEngine) -> AsyncIterator[DatabaseFileSystem]:
    """Flat-store backend over the in-memory engine."""
    backend = DatabaseFileSystem(engine=async_engine)
    await backend.open()
    yield backend
    await backend.close()


@pytest.fixture
def disk(tmp_path) -> LocalDiskBackend:
    """LocalDiskBackend rooted at a temporary directory."""
    root = tmp_path / "disk"
    root.mkdir()
    return LocalDiskBackend(host_dir=root)


@pytest.fixture(params=["database", "disk"])
def backend(request, db, disk):
    """Each backend in turn, for contract tests."""
    return db if request.param == "database" else disk


@pytest.fixture
async def vfs(tmp_path) -> AsyncIterator[VFS]:
    """VFS with its auto-mount data directory under tmp_path."""
    async with VFS(data_dir=tmp_path / "data") as instance:
        yield instance
