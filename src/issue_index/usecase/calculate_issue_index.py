"""Compute and persist the issue index for one run."""

from __future__ import annotations

from datetime import datetime, timedelta

import structlog

from issue_index.config import ScoringWeights, Settings
from issue_index.domain.models import IssueIndexRecord
from issue_index.domain.scoring import compute_issue_index
from issue_index.port.cluster_registry_port import ClusterRegistryPort

logger = structlog.get_logger()


class CalculateIssueIndexUsecase:
    """Reads the post-reconciliation registry and stores the run's index."""

    def __init__(
        self,
        registry: ClusterRegistryPort,
        settings: Settings,
        weights: ScoringWeights,
    ) -> None:
        self._registry = registry
        self._dormant_window = timedelta(days=settings.dormant_window_days)
        self._weights = weights

    async def execute(self, collected_at: datetime, total_articles: int = 0) -> IssueIndexRecord:
        active = await self._registry.fetch_active_clusters()
        recently_inactive = await self._registry.fetch_inactive_clusters_since(
            collected_at - self._dormant_window
        )

        record = compute_issue_index(
            active,
            recently_inactive,
            collected_at,
            total_articles=total_articles,
            decay_rate=self._weights.decay_rate,
            active_weight=self._weights.active_weight,
            inactive_weight=self._weights.inactive_weight,
        )
        await self._registry.save_issue_index(record)

        logger.info(
            "Issue index calculated",
            overall_index=record.overall_index,
            active_average=record.active_average,
            inactive_average=record.inactive_average,
            active_count=record.active_count,
            inactive_count=record.inactive_count,
        )
        return record
