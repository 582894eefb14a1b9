"""Read accessors for stored issue indexes and snapshots."""

from __future__ import annotations

from datetime import datetime

from issue_index.domain.models import ClusterSnapshot, IssueIndexRecord
from issue_index.port.cluster_registry_port import ClusterRegistryPort


class IssueIndexQueryUsecase:
    """Read-only queries over persisted pipeline results."""

    def __init__(self, registry: ClusterRegistryPort) -> None:
        self._registry = registry

    async def latest(self) -> IssueIndexRecord | None:
        return await self._registry.fetch_latest_issue_index()

    async def at(self, collected_at: datetime) -> IssueIndexRecord | None:
        return await self._registry.fetch_issue_index_at(collected_at)

    async def between(self, start: datetime, end: datetime) -> list[IssueIndexRecord]:
        """Records with ``start <= collected_at <= end``, newest first."""
        if start > end:
            raise ValueError("start must not be after end")
        return await self._registry.fetch_issue_index_between(start, end)

    async def snapshots_at(self, collected_at: datetime) -> list[ClusterSnapshot]:
        """Snapshots of one run ordered by score, highest first."""
        snapshots = await self._registry.fetch_snapshots(collected_at)
        return sorted(snapshots, key=lambda s: s.cluster_score, reverse=True)
