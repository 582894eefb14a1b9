"""Per-job issue index: the issue index restricted to clusters whose tags
overlap a job category's tag profile."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta

import structlog

from issue_index.config import ScoringWeights, Settings
from issue_index.domain.models import (
    ClusterSnapshot,
    ClusterStatus,
    JobClusterMatch,
    JobIssueIndexRecord,
)
from issue_index.domain.scoring import apply_decay, cluster_score, days_between
from issue_index.domain.tags import JOB_TAG_MAPPING
from issue_index.port.cluster_registry_port import ClusterRegistryPort

logger = structlog.get_logger()


def match_cluster(
    snapshot: ClusterSnapshot,
    job_tags: Sequence[str],
    collected_at: datetime,
    decay_rate: float,
) -> JobClusterMatch | None:
    """Match one snapshot against a job profile; None when no tag overlaps."""
    if not snapshot.tags:
        return None

    profile = set(job_tags)
    matched = [tag for tag in snapshot.tags if tag in profile]
    if not matched:
        return None

    ratio = len(matched) / len(snapshot.tags)
    weighted = snapshot.cluster_score * ratio
    if snapshot.status == ClusterStatus.INACTIVE:
        days = days_between(snapshot.collected_at, collected_at)
        weighted = apply_decay(weighted, days, decay_rate)

    return JobClusterMatch(
        cluster_id=snapshot.cluster_id,
        cluster_score=snapshot.cluster_score,
        status=snapshot.status,
        collected_at=snapshot.collected_at,
        matched_tags=matched,
        match_ratio=ratio,
        weighted_score=weighted,
        article_indices=list(snapshot.article_indices),
    )


def compute_job_issue_index(
    job_category: str,
    job_tags: Sequence[str],
    candidates: Sequence[ClusterSnapshot],
    collected_at: datetime,
    decay_rate: float = 0.1,
    active_weight: float = 1.0,
    inactive_weight: float = 0.5,
) -> JobIssueIndexRecord:
    matches = [
        m
        for m in (match_cluster(s, job_tags, collected_at, decay_rate) for s in candidates)
        if m is not None
    ]
    active = [m.weighted_score for m in matches if m.status == ClusterStatus.ACTIVE]
    inactive = [m.weighted_score for m in matches if m.status == ClusterStatus.INACTIVE]

    active_avg = sum(active) / len(active) if active else 0.0
    inactive_avg = sum(inactive) / len(inactive) if inactive else 0.0

    unique_articles: set[int] = set()
    for m in matches:
        unique_articles.update(m.article_indices)

    return JobIssueIndexRecord(
        job_category=job_category,
        collected_at=collected_at,
        issue_index=round(active_avg * active_weight + inactive_avg * inactive_weight, 1),
        active_clusters_count=len(active),
        inactive_clusters_count=len(inactive),
        total_articles_count=len(unique_articles),
        cluster_matches=matches,
    )


class CalculateJobIssueIndexUsecase:
    """Computes and stores the issue index of every job category for one run.

    Active candidates are the run's active snapshots. Recently inactive
    clusters contribute their last score, decayed from when they went dormant.
    """

    def __init__(
        self,
        registry: ClusterRegistryPort,
        settings: Settings,
        weights: ScoringWeights,
    ) -> None:
        self._registry = registry
        self._dormant_window = timedelta(days=settings.dormant_window_days)
        self._weights = weights

    async def _candidates(self, collected_at: datetime) -> list[ClusterSnapshot]:
        snapshots = await self._registry.fetch_snapshots(collected_at)
        candidates = [s for s in snapshots if s.status == ClusterStatus.ACTIVE]

        dormant = await self._registry.fetch_inactive_clusters_since(
            collected_at - self._dormant_window
        )
        candidates.extend(
            ClusterSnapshot(
                collected_at=cluster.updated_at,
                cluster_id=cluster.cluster_id,
                topic_name=cluster.topic_name,
                tags=list(cluster.tags),
                appearance_count=cluster.appearance_count,
                article_count=0,
                article_indices=[],
                status=ClusterStatus.INACTIVE,
                cluster_score=cluster_score(cluster.appearance_count),
            )
            for cluster in dormant
        )
        return candidates

    async def execute(self, collected_at: datetime) -> list[JobIssueIndexRecord]:
        candidates = await self._candidates(collected_at)

        records = [
            compute_job_issue_index(
                job_category,
                job_tags,
                candidates,
                collected_at,
                decay_rate=self._weights.decay_rate,
                active_weight=self._weights.job_active_weight,
                inactive_weight=self._weights.job_inactive_weight,
            )
            for job_category, job_tags in JOB_TAG_MAPPING.items()
        ]
        await self._registry.save_job_issue_indexes(records)

        logger.info(
            "Job issue indexes calculated",
            jobs=len(records),
            candidates=len(candidates),
            top_job=max(records, key=lambda r: r.issue_index).job_category if records else None,
        )
        return records
