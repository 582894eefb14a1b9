"""Reconcile validated oracle clusters into the persistent registry."""

from __future__ import annotations

from datetime import datetime

import structlog

from issue_index.domain.models import (
    Cluster,
    ClusterSnapshot,
    ClusterStatus,
    HistoryEntry,
    OracleCluster,
    ReconciliationSummary,
)
from issue_index.domain.scoring import cluster_score
from issue_index.port.cluster_registry_port import ClusterRegistryPort

logger = structlog.get_logger()


def active_snapshot(cluster: OracleCluster, collected_at: datetime) -> ClusterSnapshot:
    return ClusterSnapshot(
        collected_at=collected_at,
        cluster_id=cluster.cluster_id,
        topic_name=cluster.topic_name,
        tags=list(cluster.tags),
        appearance_count=cluster.appearance_count,
        article_count=cluster.article_count,
        article_indices=list(cluster.article_indices),
        status=ClusterStatus.ACTIVE,
        cluster_score=cluster_score(cluster.appearance_count),
    )


def inactive_snapshot(cluster: Cluster, collected_at: datetime) -> ClusterSnapshot:
    return ClusterSnapshot(
        collected_at=collected_at,
        cluster_id=cluster.cluster_id,
        topic_name=cluster.topic_name,
        tags=list(cluster.tags),
        appearance_count=cluster.appearance_count,
        article_count=0,
        article_indices=[],
        status=ClusterStatus.INACTIVE,
        cluster_score=0.0,
    )


class ReconcileClustersUsecase:
    """Applies one run's clusters to the registry in a single transaction.

    After commit, the set of active clusters equals the set of cluster ids in
    the run, and every cluster touched by the run has exactly one snapshot
    stamped with ``collected_at``.
    """

    def __init__(self, registry: ClusterRegistryPort) -> None:
        self._registry = registry

    async def execute(
        self, clusters: list[OracleCluster], collected_at: datetime
    ) -> ReconciliationSummary:
        summary = ReconciliationSummary()
        output_ids = {c.cluster_id for c in clusters}

        async with self._registry.transaction() as tx:
            existing = {c.cluster_id: c for c in await tx.fetch_all_clusters()}

            for oracle_cluster in clusters:
                entry = HistoryEntry(
                    collected_at=collected_at,
                    article_indices=list(oracle_cluster.article_indices),
                    article_count=oracle_cluster.article_count,
                )
                current = existing.get(oracle_cluster.cluster_id)

                if current is None:
                    await tx.insert_cluster(
                        Cluster(
                            cluster_id=oracle_cluster.cluster_id,
                            topic_name=oracle_cluster.topic_name,
                            tags=list(oracle_cluster.tags),
                            appearance_count=oracle_cluster.appearance_count,
                            status=ClusterStatus.ACTIVE,
                            created_at=collected_at,
                            updated_at=collected_at,
                            history=[entry],
                        )
                    )
                    summary.created += 1
                    continue

                if current.status == ClusterStatus.INACTIVE:
                    logger.info(
                        "Inactive cluster reappeared",
                        cluster_id=current.cluster_id,
                        dormant_since=current.updated_at.isoformat(),
                    )
                await tx.update_cluster(
                    Cluster(
                        cluster_id=current.cluster_id,
                        topic_name=oracle_cluster.topic_name,
                        tags=list(oracle_cluster.tags),
                        appearance_count=oracle_cluster.appearance_count,
                        status=ClusterStatus.ACTIVE,
                        created_at=current.created_at,
                        updated_at=collected_at,
                        history=[*current.history, entry],
                    ),
                    entry,
                )
                summary.updated += 1

            snapshots: list[ClusterSnapshot] = []
            for cluster in existing.values():
                if cluster.is_active and cluster.cluster_id not in output_ids:
                    await tx.set_status(cluster.cluster_id, ClusterStatus.INACTIVE, collected_at)
                    snapshots.append(inactive_snapshot(cluster, collected_at))
                    summary.deactivated += 1

            snapshots.extend(active_snapshot(c, collected_at) for c in clusters)
            await tx.insert_snapshots(snapshots)
            summary.snapshots_written = len(snapshots)

        logger.info(
            "Clusters reconciled",
            created=summary.created,
            updated=summary.updated,
            deactivated=summary.deactivated,
            snapshots=summary.snapshots_written,
        )
        return summary
