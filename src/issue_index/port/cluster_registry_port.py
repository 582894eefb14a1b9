"""Cluster registry port — abstract interface for cluster persistence."""

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol

from issue_index.domain.models import (
    Cluster,
    ClusterSnapshot,
    ClusterStatus,
    HistoryEntry,
    IssueIndexRecord,
    JobIssueIndexRecord,
)


class ClusterRegistryTransaction(Protocol):
    """Registry operations bound to one open transaction."""

    async def fetch_all_clusters(self) -> list[Cluster]: ...

    async def insert_cluster(self, cluster: Cluster) -> None: ...

    async def update_cluster(self, cluster: Cluster, entry: HistoryEntry) -> None: ...

    async def set_status(
        self, cluster_id: str, status: ClusterStatus, updated_at: datetime
    ) -> None: ...

    async def insert_snapshots(self, snapshots: list[ClusterSnapshot]) -> None: ...


class ClusterRegistryPort(Protocol):
    """Protocol for the persistent cluster registry and its derived records."""

    def transaction(self) -> AbstractAsyncContextManager[ClusterRegistryTransaction]: ...

    def run_lock(self) -> AbstractAsyncContextManager[bool]: ...

    async def fetch_active_clusters(self) -> list[Cluster]: ...

    async def fetch_inactive_clusters_since(self, since: datetime) -> list[Cluster]: ...

    async def fetch_snapshots(self, collected_at: datetime) -> list[ClusterSnapshot]: ...

    async def save_issue_index(self, record: IssueIndexRecord) -> None: ...

    async def save_job_issue_indexes(self, records: list[JobIssueIndexRecord]) -> None: ...

    async def fetch_latest_issue_index(self) -> IssueIndexRecord | None: ...

    async def fetch_issue_index_at(self, collected_at: datetime) -> IssueIndexRecord | None: ...

    async def fetch_issue_index_between(
        self, start: datetime, end: datetime
    ) -> list[IssueIndexRecord]: ...
