"""Article source gateway — reads the collector's latest headline batch."""

import asyncpg
import structlog

from issue_index.domain.models import Article, ArticleBatch
from issue_index.gateway.postgres_gateway import storage_errors

logger = structlog.get_logger()


class PostgresArticleSource:
    """Implements ArticleSourcePort over the collector-owned batch tables."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def fetch_latest_batch(self) -> ArticleBatch | None:
        batch_query = """
            SELECT id, collected_at
            FROM news_article_batches
            ORDER BY collected_at DESC
            LIMIT 1
        """
        articles_query = """
            SELECT article_index, title
            FROM news_batch_articles
            WHERE batch_id = $1
            ORDER BY article_index
        """
        with storage_errors("fetch latest article batch"):
            async with self._pool.acquire() as conn:
                batch = await conn.fetchrow(batch_query)
                if batch is None:
                    logger.warning("No article batch found")
                    return None
                rows = await conn.fetch(articles_query, batch["id"])

        return ArticleBatch(
            collected_at=batch["collected_at"],
            articles=[Article(index=row["article_index"], title=row["title"]) for row in rows],
        )
