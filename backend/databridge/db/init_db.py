"""
Database Initialization

Owns the async engine and session factory for the document store.
A Database instance is created by the application context at startup
and disposed at shutdown; nothing here is module-global.
"""
import asyncio
import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    """
    WAL mode and a busy timeout for SQLite.

    Concurrent webhook and verify requests write to the same file.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


class Database:
    """
    Async engine plus session factory.

    Usage:
        database = Database("sqlite+aiosqlite:///./databridge.db")
        await database.initialize()
        async with database.session() as session:
            ...
        await database.dispose()
    """

    def __init__(self, url: str):
        self.url = url
        is_sqlite = url.startswith("sqlite")

        engine_options = {"echo": False, "pool_pre_ping": True}
        if is_sqlite:
            engine_options["connect_args"] = {"timeout": 30, "check_same_thread": False}
        else:
            engine_options["pool_recycle"] = 3600

        self.engine = create_async_engine(url, **engine_options)
        if is_sqlite:
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_pragmas)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

    async def initialize(self) -> None:
        """Create all tables if they do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Document store ready at {self.engine.url.render_as_string(hide_password=True)}")

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Document store connections closed")


def main():
    """CLI entry point for creating the tables."""
    from ..config import settings

    logging.basicConfig(level=logging.INFO)

    async def _run():
        database = Database(settings.database_url)
        try:
            await database.initialize()
        finally:
            await database.dispose()

    asyncio.run(_run())


if __name__ == "__main__":
    main()
