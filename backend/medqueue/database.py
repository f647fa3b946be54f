"""
Data store handle: an async SQLAlchemy engine plus its session factory.

The store is constructed explicitly (see DataStore.from_url) and handed to the
services that need it, so tests can swap in an in-memory database or a fake.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator
from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores FOREIGN KEY clauses unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DataStore:
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        if engine.dialect.name == "sqlite":
            event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self.sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> "DataStore":
        kwargs = {"echo": echo}
        # In-memory SQLite lives on a single connection
        if url.startswith("sqlite") and (url.endswith("://") or ":memory:" in url):
            kwargs["poolclass"] = StaticPool
        return cls(create_async_engine(url, **kwargs))

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Unit of work: commits when the block exits cleanly, rolls back otherwise."""
        async with self.sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self):
        # Register every table on Base.metadata before creating
        import medqueue.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()


def get_store(request: Request) -> DataStore:
    return request.app.state.store
