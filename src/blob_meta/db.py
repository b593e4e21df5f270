"""Database engine construction and schema initialization."""

from __future__ import annotations

import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from blob_meta.config import Settings
from blob_meta.models import Base

logger = logging.getLogger(__name__)


def create_engine(settings: Settings) -> AsyncEngine:
    """Create an async engine for the configured database."""
    engine = create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
    )
    if engine.dialect.name == "sqlite":
        use_immediate_transactions(engine)
    return engine


def use_immediate_transactions(engine: AsyncEngine) -> None:
    """Make every SQLite transaction start with ``BEGIN IMMEDIATE``.

    pysqlite defers ``BEGIN`` until the first write, so reads earlier in a
    transaction run outside it. Taking the write lock up front keeps
    check-then-write operations (strict ``add_owner``, cascade delete)
    atomic and lets concurrent writers wait on the busy timeout instead of
    failing with a lock upgrade deadlock.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create the blobs and owners tables and their indexes.

    Safe to run against an already initialized database.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema ready on %s", engine.url.render_as_string(hide_password=True))


async def drop_db(engine: AsyncEngine) -> None:
    """Drop all blob-meta tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("Schema dropped on %s", engine.url.render_as_string(hide_password=True))
