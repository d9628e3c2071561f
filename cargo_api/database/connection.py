"""
Async engine and unit-of-work sessions for the cargo database.

One engine and one session factory are created lazily per process. Each API
request runs inside ``get_session``: the block commits when it finishes and
rolls back when it raises, so an order change and the history entry written
for it always land together.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from cargo_api.core.config import Settings, get_settings
from cargo_api.core.logging import get_logger

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _convert_database_url_to_async(url: str) -> str:
    """Rewrite ``postgresql://`` URLs to use the asyncpg driver."""
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


def _engine_options(settings: Settings, url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.debug}

    if settings.is_test:
        # connections must not outlive a test
        options["poolclass"] = NullPool
    elif url.startswith("postgresql+asyncpg://"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={
                "server_settings": {"application_name": settings.app_name},
                "command_timeout": 60,
                "timeout": 10,
            },
        )
    return options


def create_engine() -> AsyncEngine:
    """Build an engine for ``settings.database_url``."""
    settings = get_settings()
    url = _convert_database_url_to_async(settings.database_url)
    engine = create_async_engine(url, **_engine_options(settings, url))

    logger.info(
        "Database engine created",
        dialect=engine.dialect.name,
        pool_size=settings.db_pool_size if engine.dialect.name == "postgresql" else None,
        environment=settings.environment,
    )
    return engine


def get_engine() -> AsyncEngine:
    """
    Return the process-wide engine, creating it on first use.

    Raises:
        RuntimeError: If the engine cannot be built from the settings
    """
    global _engine

    if _engine is not None:
        return _engine

    try:
        _engine = create_engine()
    except (SQLAlchemyError, ValueError) as e:
        logger.error(
            "Database engine could not be created",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise RuntimeError(f"Database engine initialization failed: {e}") from e
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Session scoped to one unit of work: commit on exit, rollback on error."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.warning(
                "Unit of work rolled back",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding the request's unit-of-work session."""
    async with get_session() as session:
        yield session


async def check_database_health(max_retries: int = 3, retry_delay: float = 1.0) -> bool:
    """
    Run ``SELECT 1``, retrying connection failures with exponential backoff.

    Returns:
        True once a query succeeds, False when every attempt failed
    """
    for attempt in range(1, max_retries + 1):
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (OperationalError, DBAPIError) as e:
            logger.warning(
                "Database not reachable",
                attempt=attempt,
                max_retries=max_retries,
                error=str(e),
            )
            if attempt < max_retries:
                await asyncio.sleep(retry_delay * 2 ** (attempt - 1))
        except (SQLAlchemyError, RuntimeError, OSError) as e:
            logger.error(
                "Database health check aborted",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        else:
            return True

    logger.error("Database unreachable after retries", max_retries=max_retries)
    return False


async def close_database_connections() -> None:
    """Dispose of the engine; the next ``get_engine`` call builds a new one."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None
