"""Structural validation of sanitized oracle output."""

from __future__ import annotations

from collections.abc import Collection
from typing import Any

from issue_index.domain.models import OracleCluster, ValidationReport
from issue_index.domain.tags import TAGS_PER_CLUSTER, unknown_tags


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _is_positive_integer(value: Any) -> bool:
    return _is_number(value) and float(value).is_integer() and value >= 1


def validate_clusters(
    clusters: list[dict[str, Any]],
    expected_article_count: int,
    tag_vocabulary: Collection[str] | None = None,
) -> ValidationReport:
    """Check oracle clusters for fatal errors and coverage warnings.

    Args:
        clusters: Sanitized cluster objects.
        expected_article_count: Number of articles in the batch.
        tag_vocabulary: When given, tags outside it produce a warning.
    """
    report = ValidationReport()
    errors = report.errors

    if not clusters:
        errors.append("Cluster array is empty")

    total_articles = 0
    used_indices: set[float] = set()
    seen_ids: set[str] = set()

    for position, cluster in enumerate(clusters):
        cluster_id = cluster.get("cluster_id")
        label = cluster_id if isinstance(cluster_id, str) and cluster_id else position

        if not isinstance(cluster_id, str) or not cluster_id:
            errors.append(f"[Cluster {position}] Missing or invalid cluster_id")
        elif cluster_id in seen_ids:
            errors.append(f"[Cluster {position}] Duplicate cluster_id: {cluster_id}")
        else:
            seen_ids.add(cluster_id)

        topic_name = cluster.get("topic_name")
        if not isinstance(topic_name, str) or not topic_name:
            errors.append(f"[Cluster {position}] Missing or invalid topic_name")

        tags = cluster.get("tags")
        if (
            not isinstance(tags, list)
            or len(tags) != TAGS_PER_CLUSTER
            or any(not isinstance(tag, str) for tag in tags)
        ):
            got = len(tags) if isinstance(tags, list) else None
            errors.append(
                f"[Cluster {label}] Tags must be exactly {TAGS_PER_CLUSTER} strings, got {got}"
            )
        elif tag_vocabulary is not None:
            unknown = unknown_tags(tags, tag_vocabulary)
            if unknown:
                report.warnings.append(
                    f"[Cluster {label}] Tags outside the standard vocabulary: {', '.join(unknown)}"
                )

        indices = cluster.get("article_indices")
        if not isinstance(indices, list) or any(not _is_number(i) for i in indices):
            errors.append(f"[Cluster {label}] article_indices must be an array of numbers")
            indices = indices if isinstance(indices, list) else []

        article_count = cluster.get("article_count")
        if not _is_number(article_count) or article_count != len(indices):
            errors.append(
                f"[Cluster {label}] article_count ({article_count}) does not match "
                f"article_indices length ({len(indices)})"
            )

        if not _is_positive_integer(cluster.get("appearance_count")):
            errors.append(f"[Cluster {label}] appearance_count must be a positive number")

        for index in indices:
            if not _is_number(index):
                continue
            if index in used_indices:
                errors.append(f"[Cluster {label}] Duplicate article index: {index}")
            used_indices.add(index)

        total_articles += len(indices)

    if clusters and total_articles != expected_article_count:
        diff = expected_article_count - total_articles
        report.warnings.append(
            f"{diff} articles not classified ({total_articles}/{expected_article_count})"
        )

    return report


def to_oracle_clusters(clusters: list[dict[str, Any]]) -> list[OracleCluster]:
    """Convert validated cluster objects to typed domain clusters."""
    return [
        OracleCluster(
            cluster_id=cluster["cluster_id"],
            topic_name=cluster["topic_name"],
            tags=list(cluster["tags"]),
            article_indices=[int(i) for i in cluster["article_indices"]],
            article_count=int(cluster["article_count"]),
            appearance_count=int(cluster["appearance_count"]),
        )
        for cluster in clusters
    ]
