"""Repair oracle output before validation.

The oracle occasionally assigns an article to two clusters or invents indices
past the end of the batch. Those entries are dropped here, in input order, so
that the first cluster claiming an index keeps it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger()


@dataclass
class SanitizeStats:
    duplicates_removed: int = 0
    out_of_range_removed: int = 0
    invalid_removed: int = 0
    empty_clusters_removed: int = 0

    @property
    def total_removed(self) -> int:
        return self.duplicates_removed + self.out_of_range_removed + self.invalid_removed


@dataclass
class SanitizeResult:
    clusters: list[dict[str, Any]] = field(default_factory=list)
    stats: SanitizeStats = field(default_factory=SanitizeStats)


def _as_ordinal(value: Any) -> int | None:
    """Normalise a numeric entry to an int ordinal, or None if it cannot be one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float)


def sanitize_clusters(clusters: list[dict[str, Any]], max_index: int) -> SanitizeResult:
    """Drop duplicate and out-of-range article indices.

    Entries that are not numbers, and clusters whose ``article_indices`` is not
    a list, pass through unchanged for the validator to reject.
    """
    result = SanitizeResult()
    stats = result.stats
    claimed: set[int] = set()

    for cluster in clusters:
        indices = cluster.get("article_indices")
        if not isinstance(indices, list):
            result.clusters.append(dict(cluster))
            continue

        kept: list[Any] = []
        for entry in indices:
            if not _is_number(entry):
                kept.append(entry)
                continue

            ordinal = _as_ordinal(entry)
            if ordinal is None:
                stats.invalid_removed += 1
                continue
            if ordinal < 0 or ordinal > max_index:
                stats.out_of_range_removed += 1
                continue
            if ordinal in claimed:
                stats.duplicates_removed += 1
                continue

            claimed.add(ordinal)
            kept.append(ordinal)

        if not kept:
            stats.empty_clusters_removed += 1
            logger.debug(
                "Dropping cluster without articles",
                cluster_id=cluster.get("cluster_id"),
            )
            continue

        sanitized = dict(cluster)
        sanitized["article_indices"] = kept
        sanitized["article_count"] = len(kept)
        result.clusters.append(sanitized)

    if stats.total_removed or stats.empty_clusters_removed:
        logger.info(
            "Sanitized oracle output",
            duplicates_removed=stats.duplicates_removed,
            out_of_range_removed=stats.out_of_range_removed,
            invalid_removed=stats.invalid_removed,
            empty_clusters_removed=stats.empty_clusters_removed,
            clusters_remaining=len(result.clusters),
        )

    return result
