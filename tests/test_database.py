"""
Tests for database connection helpers.
"""

import pytest
from sqlalchemy import text

from cargo_api.database import connection
from cargo_api.database.connection import (
    _convert_database_url_to_async,
    check_database_health,
    close_database_connections,
    get_session,
)


@pytest.fixture(autouse=True)
async def reset_engine():
    yield
    await close_database_connections()


class TestUrlConversion:
    def test_plain_postgres_url(self):
        assert (
            _convert_database_url_to_async("postgresql://u:p@db:5432/cargo")
            == "postgresql+asyncpg://u:p@db:5432/cargo"
        )

    @pytest.mark.parametrize(
        "url",
        ["postgresql+asyncpg://u:p@db/cargo", "sqlite+aiosqlite://"],
    )
    def test_async_urls_untouched(self, url):
        assert _convert_database_url_to_async(url) == url


class TestSessions:
    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await check_database_health(max_retries=1)

    @pytest.mark.asyncio
    async def test_session_reraises_after_rollback(self):
        with pytest.raises(ValueError):
            async with get_session() as session:
                await session.execute(text("SELECT 1"))
                raise ValueError("boom")

    @pytest.mark.asyncio
    async def test_close_resets_engine(self):
        async with get_session() as session:
            await session.execute(text("SELECT 1"))

        await close_database_connections()

        assert connection._engine is None
        assert connection._session_factory is None
