"""DatabaseFileSystem — flat record store with emulated directories."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, nullcontext
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from sqlalchemy import delete, event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, select

from mountfs.models.records import DirectoryRecord, FileRecord, utcnow

from .dialect import get_dialect, upsert_rows
from .exceptions import InvalidOperationError, PathNotFoundError
from .types import FileEntry, FileStats, sort_entries
from .utils import (
    HIGH_SENTINEL,
    ancestor_chain,
    child_prefix,
    is_in_memory_url,
    normalize_path,
    parent_path,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Iterable, Iterator, Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine

    from mountfs.models.records import DirectoryRecordBase, FileRecordBase

    from .types import BatchEntry, ProgressCallback

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DATA_DIR = Path.home() / ".mountfs"

EPOCH = datetime.fromtimestamp(0, tz=UTC)

# Upper bound on bound parameters per IN (...) clause.
_IN_CHUNK = 500

# Columns rewritten when a file is overwritten; ``ctime`` is not among them.
_FILE_UPDATE_KEYS = ["content", "is_binary", "size", "mtime"]


def _chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class DatabaseFileSystem:
    """Database-backed file system over two path-keyed tables.

    Files and directories live in separate tables keyed by canonical path.
    There is no stored tree: a directory's children are found with a
    half-open range scan over the keys that start with ``path + "/"``.
    ``mkdir`` always records the whole ancestor chain, so every level of
    the hierarchy has its own directory row.

    Works with SQLite (via ``aiosqlite``) and PostgreSQL.  Each operation
    runs in its own session and transaction.

    Implements ``StorageBackend``, ``SupportsBatchRead``, and
    ``SupportsBatchWrite``.
    """

    name = "database"

    def __init__(
        self,
        url: str | None = None,
        *,
        engine: AsyncEngine | None = None,
        data_dir: str | Path | None = None,
        db_name: str = "mountfs",
        file_model: type[FileRecordBase] | None = None,
        directory_model: type[DirectoryRecordBase] | None = None,
    ) -> None:
        if url is not None and engine is not None:
            raise ValueError("Pass either url or engine, not both")

        self._file_model: type[FileRecordBase] = file_model or FileRecord
        self._directory_model: type[DirectoryRecordBase] = directory_model or DirectoryRecord

        self.data_dir = Path(data_dir) if data_dir else DEFAULT_DATA_DIR
        self.db_name = db_name
        self._url = url

        self._engine = engine
        self._owns_engine = engine is None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._init_lock = asyncio.Lock()
        # Held for a whole session when every session shares one connection
        self._shared_connection_lock: asyncio.Lock | None = None
        self.dialect = get_dialect(engine) if engine is not None else "sqlite"

    @property
    def url(self) -> str:
        """Database URL; defaults to ``{data_dir}/{db_name}.db`` on SQLite."""
        if self._url is not None:
            return self._url
        return f"sqlite+aiosqlite:///{self.data_dir / f'{self.db_name}.db'}"

    @property
    def engine(self) -> AsyncEngine | None:
        """The async engine, available after ``open()``."""
        return self._engine

    @property
    def file_model(self) -> type[FileRecordBase]:
        return self._file_model

    @property
    def directory_model(self) -> type[DirectoryRecordBase]:
        return self._directory_model

    # ------------------------------------------------------------------
    # Database Management
    # ------------------------------------------------------------------

    def _create_engine(self, url: str) -> AsyncEngine:
        if is_in_memory_url(url):
            # One shared connection, otherwise each session sees an empty DB
            return create_async_engine(url, echo=False, poolclass=StaticPool)

        parsed = make_url(url)
        if parsed.get_backend_name() != "sqlite":
            return create_async_engine(url, echo=False)

        Path(parsed.database or "").parent.mkdir(parents=True, exist_ok=True)
        engine = create_async_engine(url, echo=False)

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[union-attr]
            cursor.execute("PRAGMA journal_mode=WAL")
            result = cursor.fetchone()
            if result[0].lower() != "wal":
                logger.warning("WAL mode not active, got: %s", result[0])
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

        return engine

    async def _ensure_db(self) -> None:
        """Create the engine and tables on first use."""
        if self._session_factory is not None:
            return
        async with self._init_lock:
            if self._session_factory is not None:
                return

            if self._engine is None:
                self._engine = self._create_engine(self.url)
            self.dialect = get_dialect(self._engine)
            if isinstance(self._engine.sync_engine.pool, StaticPool):
                self._shared_connection_lock = asyncio.Lock()

            tables = [
                self._file_model.__table__,  # type: ignore[attr-defined]
                self._directory_model.__table__,  # type: ignore[attr-defined]
            ]
            async with self._engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all, tables=tables)

            self._session_factory = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            logger.debug("Flat store ready (%s, dialect=%s)", self.db_name, self.dialect)

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession]:
        """Yield a session whose work commits as one transaction.

        Sessions on a ``StaticPool`` engine (in-memory SQLite) run one at a
        time: they all share a single connection and its one transaction.
        """
        await self._ensure_db()
        lock = self._shared_connection_lock or nullcontext()
        async with lock, self._open_session() as session:
            yield session

    @asynccontextmanager
    async def _open_session(self) -> AsyncGenerator[AsyncSession]:
        assert self._session_factory is not None
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        await self._ensure_db()

    async def close(self) -> None:
        """Dispose the engine if this backend created it."""
        if self._engine is not None and self._owns_engine:
            await self._engine.dispose()
            self._engine = None
        self._session_factory = None
        self._shared_connection_lock = None

    # ------------------------------------------------------------------
    # Record helpers
    # ------------------------------------------------------------------

    async def _has(self, session: AsyncSession, model: type[SQLModel], path: str) -> bool:
        result = await session.execute(
            select(model.path).where(model.path == path)  # type: ignore[attr-defined]
        )
        return result.first() is not None

    async def _first_of(
        self, session: AsyncSession, model: type[SQLModel], paths: Sequence[str]
    ) -> str | None:
        """Return any of *paths* that has a row in *model*'s table."""
        for chunk in _chunked(paths, _IN_CHUNK):
            result = await session.execute(
                select(model.path).where(model.path.in_(chunk))  # type: ignore[attr-defined]
            )
            hit = result.scalars().first()
            if hit is not None:
                return hit
        return None

    async def _load_file(self, path: str) -> FileRecordBase:
        """Fetch a file record, telling directories apart from misses."""
        async with self._session() as session:
            record = await session.get(self._file_model, path)
            if record is None:
                if path == "/" or await self._has(session, self._directory_model, path):
                    raise InvalidOperationError(f"Is a directory: {path}")
                raise PathNotFoundError(f"No such file: {path}")
        return record

    async def _create_dirs(self, paths: Sequence[str]) -> list[str]:
        """Insert directory rows for *paths* that lack one.  Returns the new ones."""
        async with self._session() as session:
            clash = await self._first_of(session, self._file_model, paths)
            if clash is not None:
                raise InvalidOperationError(f"Not a directory: {clash}")

            existing: set[str] = set()
            for chunk in _chunked(paths, _IN_CHUNK):
                result = await session.execute(
                    select(self._directory_model.path).where(
                        self._directory_model.path.in_(chunk)  # type: ignore[attr-defined]
                    )
                )
                existing.update(result.scalars().all())

            missing = [p for p in paths if p not in existing]
            now = utcnow()
            # DO NOTHING on conflict: a concurrent mkdir may have won the race
            await upsert_rows(
                session,
                self.dialect,
                self._directory_model,
                [{"path": p, "ctime": now} for p in missing],
                conflict_keys=["path"],
                update_keys=[],
            )
        return missing

    async def _write(self, path: str, content: bytes, is_binary: bool) -> None:
        path = normalize_path(path)
        if path == "/":
            raise InvalidOperationError("Cannot write to the root directory")

        parent = parent_path(path)
        if parent != "/":
            await self.mkdir(parent)

        now = utcnow()
        async with self._session() as session:
            if await self._has(session, self._directory_model, path):
                raise InvalidOperationError(f"Is a directory: {path}")
            await upsert_rows(
                session,
                self.dialect,
                self._file_model,
                [
                    {
                        "path": path,
                        "content": content,
                        "is_binary": is_binary,
                        "size": len(content),
                        "mtime": now,
                        "ctime": now,
                    }
                ],
                conflict_keys=["path"],
                update_keys=_FILE_UPDATE_KEYS,
            )

    # ------------------------------------------------------------------
    # Core protocol: StorageBackend
    # ------------------------------------------------------------------

    async def read_file(self, path: str) -> str:
        data = await self.read_binary(path)
        return data.decode("utf-8", errors="replace")

    async def read_binary(self, path: str) -> bytes:
        path = normalize_path(path)
        async with self._session() as session:
            result = await session.execute(
                select(self._file_model.content).where(
                    self._file_model.path == path  # type: ignore[arg-type]
                )
            )
            row = result.first()
        if row is None:
            raise PathNotFoundError(f"No such file: {path}")
        return row[0]

    async def write_file(self, path: str, content: str) -> None:
        await self._write(path, content.encode("utf-8"), is_binary=False)

    async def write_binary(self, path: str, content: bytes) -> None:
        await self._write(path, bytes(content), is_binary=True)

    async def delete_file(self, path: str) -> None:
        path = normalize_path(path)
        async with self._session() as session:
            await session.execute(
                delete(self._file_model).where(
                    self._file_model.path == path  # type: ignore[arg-type]
                )
            )

    async def exists(self, path: str) -> bool:
        path = normalize_path(path)
        if path == "/":
            return True
        async with self._session() as session:
            if await self._has(session, self._file_model, path):
                return True
            return await self._has(session, self._directory_model, path)

    async def stat(self, path: str) -> FileStats:
        path = normalize_path(path)
        if path == "/":
            return FileStats(size=0, is_file=False, is_directory=True, mtime=EPOCH)

        fm = self._file_model
        async with self._session() as session:
            result = await session.execute(
                select(fm.size, fm.mtime).where(fm.path == path)  # type: ignore[arg-type]
            )
            file_row = result.first()
            dir_row = None
            if file_row is None:
                dm = self._directory_model
                result = await session.execute(
                    select(dm.ctime).where(dm.path == path)  # type: ignore[arg-type]
                )
                dir_row = result.first()

        if file_row is not None:
            return FileStats(
                size=file_row[0],
                is_file=True,
                is_directory=False,
                mtime=_as_utc(file_row[1]),
            )
        if dir_row is not None:
            return FileStats(size=0, is_file=False, is_directory=True, mtime=_as_utc(dir_row[0]))
        raise PathNotFoundError(f"No such file or directory: {path}")

    async def mkdir(self, path: str) -> list[str]:
        """Create *path* and its missing ancestors.  Returns the created paths."""
        chain = ancestor_chain(path)
        if not chain:
            return []
        return await self._create_dirs(chain)

    async def rmdir(self, path: str, *, recursive: bool = False) -> None:
        """Remove a directory record.

        Without *recursive* only the directory's own record goes; records
        below it are left in place.
        """
        path = normalize_path(path)
        if recursive:
            for entry in await self.readdir(path):
                if entry.is_directory:
                    await self.rmdir(entry.path, recursive=True)
                else:
                    await self.delete_file(entry.path)

        async with self._session() as session:
            await session.execute(
                delete(self._directory_model).where(
                    self._directory_model.path == path  # type: ignore[arg-type]
                )
            )

    async def readdir(self, path: str) -> list[FileEntry]:
        prefix = child_prefix(path)
        upper = prefix + HIGH_SENTINEL
        fm = self._file_model
        dm = self._directory_model

        async with self._session() as session:
            result = await session.execute(
                select(fm.path).where(fm.path >= prefix, fm.path < upper)  # type: ignore[operator]
            )
            file_paths = result.scalars().all()
            result = await session.execute(
                select(dm.path).where(dm.path >= prefix, dm.path < upper)  # type: ignore[operator]
            )
            dir_paths = result.scalars().all()

        entries: list[FileEntry] = []
        seen: set[str] = set()

        for file_path in file_paths:
            rest = file_path[len(prefix) :]
            if rest and "/" not in rest and rest not in seen:
                seen.add(rest)
                entries.append(FileEntry(name=rest, path=prefix + rest, is_directory=False))

        # Deeper directory rows name their top-level ancestor under prefix
        for dir_path in dir_paths:
            name = dir_path[len(prefix) :].split("/", 1)[0]
            if name and name not in seen:
                seen.add(name)
                entries.append(FileEntry(name=name, path=prefix + name, is_directory=True))

        return sort_entries(entries)

    async def rename(self, old_path: str, new_path: str) -> None:
        """Copy the record to *new_path*, then delete *old_path*.  Not atomic."""
        old_path = normalize_path(old_path)
        new_path = normalize_path(new_path)
        record = await self._load_file(old_path)
        if old_path == new_path:
            return
        await self._write(new_path, record.content, record.is_binary)
        await self.delete_file(old_path)

    async def copy_file(self, src: str, dest: str) -> None:
        src = normalize_path(src)
        dest = normalize_path(dest)
        record = await self._load_file(src)
        if src == dest:
            return
        await self._write(dest, record.content, record.is_binary)

    # ------------------------------------------------------------------
    # Capabilities: SupportsBatchRead / SupportsBatchWrite
    # ------------------------------------------------------------------

    async def read_binary_batch(self, paths: Iterable[str]) -> dict[str, bytes]:
        """Read many files in one session.  Missing paths are omitted."""
        keys = {p: normalize_path(p) for p in paths}
        unique = sorted(set(keys.values()))
        fm = self._file_model

        found: dict[str, bytes] = {}
        if unique:
            async with self._session() as session:
                for chunk in _chunked(unique, _IN_CHUNK):
                    result = await session.execute(
                        select(fm.path, fm.content).where(
                            fm.path.in_(chunk)  # type: ignore[attr-defined]
                        )
                    )
                    found.update({row[0]: row[1] for row in result})

        return {p: found[k] for p, k in keys.items() if k in found}

    async def write_binary_batch(
        self,
        entries: Sequence[BatchEntry],
        *,
        concurrency: int = 20,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Write *entries* in chunks of *concurrency*, one transaction per chunk.

        Every ancestor directory implied by the batch is created once up
        front.  ``on_progress(completed, total)`` runs after each chunk.
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")

        entries = list(entries)
        total = len(entries)
        if total == 0:
            if on_progress is not None:
                on_progress(0, 0)
            return

        dirs: set[str] = set()
        for entry in entries:
            path = normalize_path(entry.path)
            if path == "/":
                raise InvalidOperationError("Cannot write to the root directory")
            dirs.update(ancestor_chain(parent_path(path)))
        if dirs:
            await self._create_dirs(sorted(dirs))

        completed = 0
        for chunk in _chunked(entries, concurrency):
            now = utcnow()
            # Later entries for the same path win within a chunk
            rows: dict[str, dict[str, object]] = {}
            for entry in chunk:
                path = normalize_path(entry.path)
                content = bytes(entry.content)
                rows[path] = {
                    "path": path,
                    "content": content,
                    "is_binary": True,
                    "size": len(content),
                    "mtime": now,
                    "ctime": now,
                }

            async with self._session() as session:
                clash = await self._first_of(session, self._directory_model, list(rows))
                if clash is not None:
                    raise InvalidOperationError(f"Is a directory: {clash}")
                await upsert_rows(
                    session,
                    self.dialect,
                    self._file_model,
                    list(rows.values()),
                    conflict_keys=["path"],
                    update_keys=_FILE_UPDATE_KEYS,
                )

            completed += len(chunk)
            if on_progress is not None:
                on_progress(completed, total)
