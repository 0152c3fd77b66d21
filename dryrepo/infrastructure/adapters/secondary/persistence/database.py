import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from dryrepo.configuration.config import Settings, get_settings
from dryrepo.infrastructure.adapters.secondary.persistence.named_queries import (
    NamedQueryRegistry,
)
from dryrepo.infrastructure.adapters.secondary.persistence.sql_store import SqlAlchemyStore

logger = logging.getLogger(__name__)


def create_engine(settings: Settings | None = None, **engine_options: Any) -> AsyncEngine:
    """
    Create the async engine described by the settings.

    Pooling options are left to SQLAlchemy's per-dialect defaults; pass
    them through ``engine_options`` when needed.
    """
    settings = settings or get_settings()
    engine = create_async_engine(settings.database_url, echo=settings.sql_echo, **engine_options)
    logger.info(f"Created database engine for {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def initialize_database(engine: AsyncEngine, base: type[DeclarativeBase]) -> None:
    """
    Initialize database schema.

    Creates all tables mapped by ``base``.
    """
    logger.info("Initializing database schema...")
    async with engine.begin() as conn:
        await conn.run_sync(base.metadata.create_all)
    logger.info("Database schema initialized")


async def open_store(
    session_factory: async_sessionmaker[AsyncSession],
    named_queries: NamedQueryRegistry | None = None,
) -> AsyncGenerator[SqlAlchemyStore, None]:
    """
    Provide a store bound to a fresh session.

    The caller is responsible for committing changes when needed; the
    session is closed when the generator is finalized.
    """
    session = session_factory()
    try:
        yield SqlAlchemyStore(session, named_queries=named_queries)
    finally:
        await session.close()
