"""Build the oracle request from the latest article batch and the registry."""

from __future__ import annotations

from datetime import datetime, timedelta

import structlog

from issue_index.config import Settings
from issue_index.domain.errors import ArticleBatchError
from issue_index.domain.models import ArticleBatch, OracleInput, PreviousCluster
from issue_index.port.article_source_port import ArticleSourcePort
from issue_index.port.cluster_registry_port import ClusterRegistryPort

logger = structlog.get_logger()


def check_batch(batch: ArticleBatch | None) -> ArticleBatch:
    """Ensure the batch is non-empty and indexed exactly ``0..n-1``.

    Raises:
        ArticleBatchError: If the batch is missing, empty or has gaps.
    """
    if batch is None or not batch.articles:
        raise ArticleBatchError("No articles available in the latest batch")

    for expected, article in enumerate(batch.articles):
        if article.index != expected:
            raise ArticleBatchError(
                f"Article indices are not contiguous: expected {expected}, got {article.index}"
            )
    return batch


class BuildInputUsecase:
    """Assembles the oracle input for one run. Has no side effects."""

    def __init__(
        self,
        article_source: ArticleSourcePort,
        registry: ClusterRegistryPort,
        settings: Settings,
    ) -> None:
        self._articles = article_source
        self._registry = registry
        self._expected_batch_size = settings.expected_batch_size
        self._dormant_window = timedelta(days=settings.dormant_window_days)

    async def execute(self, now: datetime) -> tuple[ArticleBatch, OracleInput]:
        batch = check_batch(await self._articles.fetch_latest_batch())

        if self._expected_batch_size is not None and batch.size != self._expected_batch_size:
            logger.warning(
                "Unexpected batch size",
                expected=self._expected_batch_size,
                actual=batch.size,
            )

        active = await self._registry.fetch_active_clusters()
        recently_inactive = await self._registry.fetch_inactive_clusters_since(
            now - self._dormant_window
        )

        previous = [PreviousCluster.from_cluster(c) for c in active]
        previous.extend(PreviousCluster.from_cluster(c) for c in recently_inactive)

        logger.info(
            "Built oracle input",
            articles=batch.size,
            active_clusters=len(active),
            inactive_clusters=len(recently_inactive),
            batch_collected_at=batch.collected_at.isoformat(),
        )
        return batch, OracleInput(new_articles=list(batch.articles), previous_clusters=previous)
