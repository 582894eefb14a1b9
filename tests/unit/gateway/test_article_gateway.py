"""Tests for PostgresArticleSource."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from issue_index.domain.errors import StorageError
from issue_index.gateway.article_gateway import PostgresArticleSource
from tests.fixtures.cluster_data import RUN_AT


@pytest.fixture
def mock_pool():
    pool = MagicMock()
    conn = AsyncMock()
    cm = AsyncMock()
    cm.__aenter__.return_value = conn
    cm.__aexit__.return_value = False
    pool.acquire.return_value = cm
    return pool, conn


class TestPostgresArticleSource:
    async def test_fetch_latest_batch(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.return_value = {"id": 7, "collected_at": RUN_AT}
        conn.fetch.return_value = [
            {"article_index": 0, "title": "New open model tops benchmarks"},
            {"article_index": 1, "title": "Regulators draft AI act guidance"},
        ]

        batch = await PostgresArticleSource(pool).fetch_latest_batch()

        assert batch.collected_at == RUN_AT
        assert batch.size == 2
        assert batch.articles[1].title == "Regulators draft AI act guidance"
        assert conn.fetch.call_args[0][1] == 7
        assert "ORDER BY article_index" in conn.fetch.call_args[0][0]

    async def test_no_batch_returns_none(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.return_value = None

        assert await PostgresArticleSource(pool).fetch_latest_batch() is None
        conn.fetch.assert_not_awaited()

    async def test_driver_error_becomes_storage_error(self, mock_pool):
        pool, conn = mock_pool
        conn.fetchrow.side_effect = OSError("network unreachable")

        with pytest.raises(StorageError):
            await PostgresArticleSource(pool).fetch_latest_batch()
