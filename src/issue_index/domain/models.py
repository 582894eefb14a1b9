"""Domain models for the news issue-index pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ClusterStatus(str, Enum):
    """Lifecycle state of a cluster."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class PipelineStage(str, Enum):
    """Stages of a single pipeline run."""

    PREPROCESSING = "preprocessing"
    CLASSIFYING = "classifying"
    SAVING = "saving"
    INDEX_CALCULATING = "index_calculating"
    DONE = "done"
    FAILED = "failed"


class PipelineStatus(str, Enum):
    """Terminal outcome of a pipeline run."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class Article:
    """A headline with its 0-based ordinal inside the batch."""

    index: int
    title: str


@dataclass
class ArticleBatch:
    """The latest collected batch of articles."""

    collected_at: datetime
    articles: list[Article] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.articles)

    @property
    def max_index(self) -> int:
        return self.size - 1


@dataclass
class HistoryEntry:
    """One appearance of a cluster in a run."""

    collected_at: datetime
    article_indices: list[int]
    article_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "collected_at": self.collected_at.isoformat(),
            "article_indices": list(self.article_indices),
            "article_count": self.article_count,
        }


@dataclass
class Cluster:
    """A persistent topical grouping tracked across runs."""

    cluster_id: str
    topic_name: str
    tags: list[str]
    appearance_count: int
    status: ClusterStatus
    created_at: datetime
    updated_at: datetime
    history: list[HistoryEntry] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == ClusterStatus.ACTIVE


@dataclass(frozen=True)
class PreviousCluster:
    """Registry cluster as shown to the oracle."""

    cluster_id: str
    topic_name: str
    tags: list[str]
    appearance_count: int
    status: ClusterStatus

    @classmethod
    def from_cluster(cls, cluster: Cluster) -> PreviousCluster:
        return cls(
            cluster_id=cluster.cluster_id,
            topic_name=cluster.topic_name,
            tags=list(cluster.tags),
            appearance_count=cluster.appearance_count,
            status=cluster.status,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "cluster_id": self.cluster_id,
            "topic_name": self.topic_name,
            "tags": list(self.tags),
            "appearance_count": self.appearance_count,
            "status": self.status.value,
        }


@dataclass
class OracleInput:
    """Request body sent to the classification oracle."""

    new_articles: list[Article] = field(default_factory=list)
    previous_clusters: list[PreviousCluster] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "new_articles": [{"index": a.index, "title": a.title} for a in self.new_articles],
            "previous_clusters": [c.to_dict() for c in self.previous_clusters],
        }


@dataclass
class OracleCluster:
    """A validated cluster proposed by the oracle for the current run."""

    cluster_id: str
    topic_name: str
    tags: list[str]
    article_indices: list[int]
    article_count: int
    appearance_count: int


@dataclass
class ClassificationResult:
    """Sanitized and validated oracle output for one run."""

    clusters: list[OracleCluster]
    raw_response: str
    processed_at: datetime
    warnings: list[str] = field(default_factory=list)

    @property
    def total_articles(self) -> int:
        return sum(c.article_count for c in self.clusters)


@dataclass
class ClusterSnapshot:
    """Immutable per-run record of a cluster's state."""

    collected_at: datetime
    cluster_id: str
    topic_name: str
    tags: list[str]
    appearance_count: int
    article_count: int
    article_indices: list[int]
    status: ClusterStatus
    cluster_score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "collected_at": self.collected_at.isoformat(),
            "cluster_id": self.cluster_id,
            "topic_name": self.topic_name,
            "tags": list(self.tags),
            "appearance_count": self.appearance_count,
            "article_count": self.article_count,
            "article_indices": list(self.article_indices),
            "status": self.status.value,
            "cluster_score": round(self.cluster_score, 2),
        }


@dataclass
class IssueIndexRecord:
    """Aggregate issue index for one run."""

    collected_at: datetime
    overall_index: float
    active_average: float = 0.0
    inactive_average: float = 0.0
    active_count: int = 0
    inactive_count: int = 0
    total_articles_analyzed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "collected_at": self.collected_at.isoformat(),
            "overall_index": self.overall_index,
            "active_average": self.active_average,
            "inactive_average": self.inactive_average,
            "active_count": self.active_count,
            "inactive_count": self.inactive_count,
            "total_articles_analyzed": self.total_articles_analyzed,
        }


@dataclass
class JobClusterMatch:
    """A snapshot matched against the tag profile of a job category."""

    cluster_id: str
    cluster_score: float
    status: ClusterStatus
    collected_at: datetime
    matched_tags: list[str]
    match_ratio: float
    weighted_score: float
    article_indices: list[int] = field(default_factory=list)


@dataclass
class JobIssueIndexRecord:
    """Issue index restricted to the clusters relevant to one job category."""

    job_category: str
    collected_at: datetime
    issue_index: float
    active_clusters_count: int = 0
    inactive_clusters_count: int = 0
    total_articles_count: int = 0
    cluster_matches: list[JobClusterMatch] = field(default_factory=list)


@dataclass
class ReconciliationSummary:
    """Counts of registry mutations made by one reconciliation."""

    created: int = 0
    updated: int = 0
    deactivated: int = 0
    snapshots_written: int = 0

    @property
    def active(self) -> int:
        return self.created + self.updated


@dataclass
class ValidationReport:
    """Outcome of validating sanitized oracle output."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class PipelineResult:
    """Result returned to the caller of a pipeline run."""

    status: PipelineStatus
    message: str
    executed_at: datetime
    duration_ms: int
    attempts: int = 1
    clusters_created: int = 0
    clusters_updated: int = 0
    clusters_deactivated: int = 0
    issue_index: float | None = None
    stage: PipelineStage = PipelineStage.DONE
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == PipelineStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "status": self.status.value,
            "message": self.message,
            "executed_at": self.executed_at.isoformat(),
            "duration_ms": self.duration_ms,
            "attempts": self.attempts,
            "clusters_created": self.clusters_created,
            "clusters_updated": self.clusters_updated,
            "clusters_deactivated": self.clusters_deactivated,
            "issue_index": self.issue_index,
            "stage": self.stage.value,
        }
        if self.error is not None:
            result["error"] = self.error
        return result
