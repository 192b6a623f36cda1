"""
Storage handle for the local SQLite store.

A :class:`Storage` wraps one async engine and its session factory. It is
constructed explicitly and passed to each repository, so tests can point the
repositories at a throwaway database.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import convert_to_async_url
from .errors import StorageUnavailable
from .schema import SchemaManager


class Storage:
    """An open store: engine, session factory and schema manager."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        self.schema = SchemaManager(engine)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_maker() as session:
            yield session

    async def dispose(self) -> None:
        await self.engine.dispose()


async def open_storage(database_url: str, echo: bool = False, migrate: bool = True) -> Storage:
    """
    Open the store, check that it answers, and bring its schema up to date.

    Args:
        database_url: sqlite connection string (converted to aiosqlite)
        echo: If True, log all SQL statements
        migrate: bring the schema up to date before returning

    Raises:
        StorageUnavailable: if the engine cannot be created or the database
            cannot be opened.
    """
    try:
        async_url = convert_to_async_url(database_url)
        engine = create_async_engine(async_url, echo=echo)
    except (ValueError, SQLAlchemyError, ImportError) as e:
        raise StorageUnavailable(f"cannot create storage engine for {database_url}: {e}") from e

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        await engine.dispose()
        raise StorageUnavailable(f"cannot open database {database_url}: {e}") from e

    storage = Storage(engine)
    if migrate:
        await storage.schema.ensure_schema()
    logger.info(f"Opened store {database_url}")
    return storage


__all__ = ["Storage", "open_storage"]
