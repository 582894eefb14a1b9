"""PostgreSQL gateway — implements ClusterRegistryPort with asyncpg."""

from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any

import asyncpg
import orjson
import structlog

from issue_index.domain.errors import StorageError
from issue_index.domain.models import (
    Cluster,
    ClusterSnapshot,
    ClusterStatus,
    HistoryEntry,
    IssueIndexRecord,
    JobIssueIndexRecord,
)

logger = structlog.get_logger()

# Session-level advisory lock guarding against overlapping pipeline runs.
RUN_LOCK_ID = 7_302_114_851

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, TimeoutError)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate driver errors raised inside the block into StorageError."""
    try:
        yield
    except _DB_ERRORS as e:
        logger.error("Storage operation failed", operation=operation, error=str(e))
        raise StorageError(f"{operation} failed: {e}") from e


def _dump_json(value: Any) -> str:
    return orjson.dumps(value).decode()


def _decimal(value: float, places: int) -> Decimal:
    return Decimal(str(round(value, places)))


def _load_json(value: Any) -> Any:
    if isinstance(value, str | bytes):
        return orjson.loads(value)
    return value


def row_to_cluster(row: Any) -> Cluster:
    return Cluster(
        cluster_id=row["cluster_id"],
        topic_name=row["topic_name"],
        tags=list(_load_json(row["tags"])),
        appearance_count=row["appearance_count"],
        status=ClusterStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def row_to_snapshot(row: Any) -> ClusterSnapshot:
    return ClusterSnapshot(
        collected_at=row["collected_at"],
        cluster_id=row["cluster_id"],
        topic_name=row["topic_name"],
        tags=list(_load_json(row["tags"])),
        appearance_count=row["appearance_count"],
        article_count=row["article_count"],
        article_indices=list(_load_json(row["article_indices"])),
        status=ClusterStatus(row["status"]),
        cluster_score=float(row["cluster_score"]),
    )


def row_to_issue_index(row: Any) -> IssueIndexRecord:
    return IssueIndexRecord(
        collected_at=row["collected_at"],
        overall_index=float(row["overall_index"]),
        active_average=float(row["active_average"]),
        inactive_average=float(row["inactive_average"]),
        active_count=row["active_clusters_count"],
        inactive_count=row["inactive_clusters_count"],
        total_articles_analyzed=row["total_articles_analyzed"],
    )


_CLUSTER_COLUMNS = (
    "cluster_id, topic_name, tags, appearance_count, status, created_at, updated_at"
)
_SNAPSHOT_COLUMNS = (
    "collected_at, cluster_id, topic_name, tags, appearance_count, "
    "article_count, article_indices, status, cluster_score"
)
_ISSUE_INDEX_COLUMNS = (
    "collected_at, overall_index, active_average, inactive_average, "
    "active_clusters_count, inactive_clusters_count, total_articles_analyzed"
)


class PostgresClusterTransaction:
    """Registry writes bound to one connection inside an open transaction."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def fetch_all_clusters(self) -> list[Cluster]:
        query = f"SELECT {_CLUSTER_COLUMNS} FROM clusters FOR UPDATE"
        rows = await self._conn.fetch(query)
        return [row_to_cluster(row) for row in rows]

    async def _insert_history(self, cluster_id: str, entry: HistoryEntry) -> None:
        query = """
            INSERT INTO cluster_history (cluster_id, collected_at, article_indices, article_count)
            VALUES ($1, $2, $3::jsonb, $4)
        """
        await self._conn.execute(
            query,
            cluster_id,
            entry.collected_at,
            _dump_json(entry.article_indices),
            entry.article_count,
        )

    async def insert_cluster(self, cluster: Cluster) -> None:
        query = """
            INSERT INTO clusters
                (cluster_id, topic_name, tags, appearance_count, status, created_at, updated_at)
            VALUES ($1, $2, $3::jsonb, $4, $5, $6, $7)
        """
        await self._conn.execute(
            query,
            cluster.cluster_id,
            cluster.topic_name,
            _dump_json(cluster.tags),
            cluster.appearance_count,
            cluster.status.value,
            cluster.created_at,
            cluster.updated_at,
        )
        for entry in cluster.history:
            await self._insert_history(cluster.cluster_id, entry)

    async def update_cluster(self, cluster: Cluster, entry: HistoryEntry) -> None:
        query = """
            UPDATE clusters
            SET topic_name = $2,
                tags = $3::jsonb,
                appearance_count = $4,
                status = $5,
                updated_at = $6
            WHERE cluster_id = $1
        """
        await self._conn.execute(
            query,
            cluster.cluster_id,
            cluster.topic_name,
            _dump_json(cluster.tags),
            cluster.appearance_count,
            cluster.status.value,
            cluster.updated_at,
        )
        await self._insert_history(cluster.cluster_id, entry)

    async def set_status(
        self, cluster_id: str, status: ClusterStatus, updated_at: datetime
    ) -> None:
        query = "UPDATE clusters SET status = $2, updated_at = $3 WHERE cluster_id = $1"
        await self._conn.execute(query, cluster_id, status.value, updated_at)

    async def insert_snapshots(self, snapshots: list[ClusterSnapshot]) -> None:
        if not snapshots:
            return
        query = f"""
            INSERT INTO cluster_snapshots ({_SNAPSHOT_COLUMNS})
            VALUES ($1, $2, $3, $4::jsonb, $5, $6, $7::jsonb, $8, $9)
        """
        await self._conn.executemany(
            query,
            [
                (
                    s.collected_at,
                    s.cluster_id,
                    s.topic_name,
                    _dump_json(s.tags),
                    s.appearance_count,
                    s.article_count,
                    _dump_json(s.article_indices),
                    s.status.value,
                    _decimal(s.cluster_score, 2),
                )
                for s in snapshots
            ],
        )


class PostgresGateway:
    """asyncpg-backed cluster registry."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresClusterTransaction]:
        """Yield a registry transaction; commit on exit, roll back on error."""
        with storage_errors("reconciliation transaction"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    yield PostgresClusterTransaction(conn)

    @asynccontextmanager
    async def run_lock(self) -> AsyncIterator[bool]:
        """Hold the pipeline advisory lock for the duration of the block.

        Yields False without blocking when another session holds it. The lock
        is session scoped, so the connection is held until the block exits.
        """
        async with self._pool.acquire() as conn:
            with storage_errors("acquire run lock"):
                acquired = bool(
                    await conn.fetchval("SELECT pg_try_advisory_lock($1)", RUN_LOCK_ID)
                )
            try:
                yield acquired
            finally:
                if acquired:
                    with storage_errors("release run lock"):
                        await conn.fetchval("SELECT pg_advisory_unlock($1)", RUN_LOCK_ID)

    async def fetch_active_clusters(self) -> list[Cluster]:
        query = f"""
            SELECT {_CLUSTER_COLUMNS}
            FROM clusters
            WHERE status = 'active'
            ORDER BY updated_at DESC, cluster_id
        """
        with storage_errors("fetch active clusters"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query)
        return [row_to_cluster(row) for row in rows]

    async def fetch_inactive_clusters_since(self, since: datetime) -> list[Cluster]:
        query = f"""
            SELECT {_CLUSTER_COLUMNS}
            FROM clusters
            WHERE status = 'inactive' AND updated_at >= $1
            ORDER BY updated_at DESC, cluster_id
        """
        with storage_errors("fetch inactive clusters"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, since)
        return [row_to_cluster(row) for row in rows]

    async def fetch_snapshots(self, collected_at: datetime) -> list[ClusterSnapshot]:
        query = f"""
            SELECT {_SNAPSHOT_COLUMNS}
            FROM cluster_snapshots
            WHERE collected_at = $1
            ORDER BY cluster_score DESC, cluster_id
        """
        with storage_errors("fetch snapshots"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, collected_at)
        return [row_to_snapshot(row) for row in rows]

    async def save_issue_index(self, record: IssueIndexRecord) -> None:
        query = f"""
            INSERT INTO issue_index ({_ISSUE_INDEX_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (collected_at) DO UPDATE SET
                overall_index = EXCLUDED.overall_index,
                active_average = EXCLUDED.active_average,
                inactive_average = EXCLUDED.inactive_average,
                active_clusters_count = EXCLUDED.active_clusters_count,
                inactive_clusters_count = EXCLUDED.inactive_clusters_count,
                total_articles_analyzed = EXCLUDED.total_articles_analyzed,
                created_at = NOW()
        """
        with storage_errors("save issue index"):
            async with self._pool.acquire() as conn:
                await conn.execute(
                    query,
                    record.collected_at,
                    _decimal(record.overall_index, 1),
                    _decimal(record.active_average, 1),
                    _decimal(record.inactive_average, 1),
                    record.active_count,
                    record.inactive_count,
                    record.total_articles_analyzed,
                )

    async def save_job_issue_indexes(self, records: list[JobIssueIndexRecord]) -> None:
        index_query = """
            INSERT INTO job_issue_index (
                job_category, collected_at, issue_index,
                active_clusters_count, inactive_clusters_count, total_articles_count
            ) VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (job_category, collected_at) DO UPDATE SET
                issue_index = EXCLUDED.issue_index,
                active_clusters_count = EXCLUDED.active_clusters_count,
                inactive_clusters_count = EXCLUDED.inactive_clusters_count,
                total_articles_count = EXCLUDED.total_articles_count,
                created_at = NOW()
        """
        delete_mapping = """
            DELETE FROM job_cluster_mapping WHERE job_category = $1 AND collected_at = $2
        """
        insert_mapping = """
            INSERT INTO job_cluster_mapping
                (job_category, collected_at, cluster_id, match_ratio, weighted_score)
            VALUES ($1, $2, $3, $4, $5)
        """
        with storage_errors("save job issue indexes"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    for record in records:
                        await conn.execute(
                            index_query,
                            record.job_category,
                            record.collected_at,
                            _decimal(record.issue_index, 1),
                            record.active_clusters_count,
                            record.inactive_clusters_count,
                            record.total_articles_count,
                        )
                        await conn.execute(delete_mapping, record.job_category, record.collected_at)
                        if record.cluster_matches:
                            await conn.executemany(
                                insert_mapping,
                                [
                                    (
                                        record.job_category,
                                        record.collected_at,
                                        m.cluster_id,
                                        _decimal(m.match_ratio, 4),
                                        _decimal(m.weighted_score, 2),
                                    )
                                    for m in record.cluster_matches
                                ],
                            )

    async def fetch_latest_issue_index(self) -> IssueIndexRecord | None:
        query = f"""
            SELECT {_ISSUE_INDEX_COLUMNS}
            FROM issue_index
            ORDER BY collected_at DESC
            LIMIT 1
        """
        with storage_errors("fetch latest issue index"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query)
        return row_to_issue_index(row) if row else None

    async def fetch_issue_index_at(self, collected_at: datetime) -> IssueIndexRecord | None:
        query = f"SELECT {_ISSUE_INDEX_COLUMNS} FROM issue_index WHERE collected_at = $1"
        with storage_errors("fetch issue index"):
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(query, collected_at)
        return row_to_issue_index(row) if row else None

    async def fetch_issue_index_between(
        self, start: datetime, end: datetime
    ) -> list[IssueIndexRecord]:
        query = f"""
            SELECT {_ISSUE_INDEX_COLUMNS}
            FROM issue_index
            WHERE collected_at BETWEEN $1 AND $2
            ORDER BY collected_at DESC
        """
        with storage_errors("fetch issue index range"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, start, end)
        return [row_to_issue_index(row) for row in rows]

    async def apply_schema(self, ddl: str) -> None:
        with storage_errors("apply schema"):
            async with self._pool.acquire() as conn:
                await conn.execute(ddl)
