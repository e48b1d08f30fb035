"""SQLite catalog engine and sessions."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, List

from sqlalchemy import event, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from filedex.errors import CatalogOpenError

log = logging.getLogger(__name__)

Base = declarative_base()


def _set_sqlite_pragmas(dbapi_conn, _record) -> None:
    """WAL so read-only commands can open the catalog while an update commits."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


class Catalog:
    """One catalog file: owns the engine and hands out sessions.

    Constructed per invocation; nothing here is module-global.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        # SQLAlchemy async needs sqlite+aiosqlite and path as URL
        self._engine: AsyncEngine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
        event.listen(self._engine.sync_engine, "connect", _set_sqlite_pragmas)
        self._sessionmaker = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

    async def init_db(self) -> None:
        """Create tables if they do not exist."""
        # register models with Base before create_all
        from filedex.catalog import models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session; commit on success, roll back on error."""
        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def table_names(self) -> List[str]:
        async with self._engine.connect() as conn:
            return await conn.run_sync(lambda sync_conn: sorted(inspect(sync_conn).get_table_names()))

    async def dispose(self) -> None:
        await self._engine.dispose()


async def open_catalog(config_dir: Path, db_filename: str = "files.db") -> Catalog:
    """Create config_dir if needed, open the catalog and bootstrap its schema.

    Raises CatalogOpenError on any failure; callers treat it as fatal.
    """
    try:
        config_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CatalogOpenError(f"Failed to create config dir {config_dir}: {e}") from e
    db_path = config_dir / db_filename
    catalog = Catalog(db_path)
    try:
        await catalog.init_db()
    except (SQLAlchemyError, OSError) as e:
        await catalog.dispose()
        raise CatalogOpenError(f"Failed to open catalog {db_path}: {e}") from e
    log.debug("Opened catalog %s", db_path)
    return catalog
