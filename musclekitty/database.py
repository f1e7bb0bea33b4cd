"""Async SQLAlchemy engine, session factory, and FastAPI dependency.

Import this module (and ``db_models``) before calling ``create_tables()``
so that all ORM models are registered with ``Base.metadata``.
"""

from collections.abc import AsyncGenerator
from pathlib import Path

from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from musclekitty.config import settings

engine = create_async_engine(settings.database_url, echo=False)
AsyncSessionLocal: async_sessionmaker[AsyncSession] = async_sessionmaker(
    engine, expire_on_commit=False
)


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""

    pass


def ensure_sqlite_directory(url: URL) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


async def create_tables(bind: AsyncEngine | None = None) -> None:
    """Create the SQLite directory and all tables that do not yet exist.

    Must be called after all ORM models have been imported so that
    ``Base.metadata`` contains every table definition.

    Args:
        bind: Engine to create the tables on; defaults to the app engine.
    """
    target = bind or engine
    ensure_sqlite_directory(target.url)
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a scoped async database session.

    Usage::

        async def my_endpoint(db: AsyncSession = Depends(get_db)) -> ...:
    """
    async with AsyncSessionLocal() as session:
        yield session
