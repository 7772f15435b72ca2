"""Async engine and session factory for the transaction store."""

from typing import Optional

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from supplier_scoring.core.config import Settings, settings as default_settings


def build_engine(config: Optional[Settings] = None) -> AsyncEngine:
    """Create an async engine for the configured store (e.g. ``sqlite+aiosqlite://``)."""
    config = config or default_settings
    url = make_url(config.database_url)

    if url.get_backend_name() != "sqlite":
        return create_async_engine(
            url,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=3600,
            echo=False,
        )

    engine = create_async_engine(url, echo=False)

    # Enable foreign key enforcement for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded attributes after commit so results can be read outside them."""
    return async_sessionmaker(engine, autoflush=False, expire_on_commit=False)
