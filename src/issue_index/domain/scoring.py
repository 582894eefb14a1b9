"""Pure scoring functions for cluster scores and the issue index.

A cluster's score grows logarithmically with its appearance count, from 20 for
a first appearance to 100 at 720 appearances (30 days of hourly runs). Scores of
clusters that dropped out of the latest run decay exponentially with the number
of days since they were last seen.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime

from issue_index.domain.models import Cluster, IssueIndexRecord

BASE_SCORE = 20.0
SCORE_RANGE = 80.0
SATURATION_APPEARANCES = 720
DEFAULT_DECAY_RATE = 0.1
DEFAULT_ACTIVE_WEIGHT = 0.7
DEFAULT_INACTIVE_WEIGHT = 0.3

_SECONDS_PER_DAY = 86_400.0


def cluster_score(appearance_count: int) -> float:
    """Return the score for a cluster seen ``appearance_count`` times.

    Not clamped: counts above 720 score above 100.
    """
    if appearance_count <= 0:
        return BASE_SCORE
    return BASE_SCORE + SCORE_RANGE * math.log(appearance_count) / math.log(
        SATURATION_APPEARANCES
    )


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days from ``start`` to ``end``, floored at zero."""
    delta = (end - start).total_seconds() / _SECONDS_PER_DAY
    return max(0.0, delta)


def apply_decay(score: float, days: float, decay_rate: float = DEFAULT_DECAY_RATE) -> float:
    return score * math.exp(-decay_rate * days)


def overall_index(
    active_average: float,
    inactive_average: float,
    active_weight: float = DEFAULT_ACTIVE_WEIGHT,
    inactive_weight: float = DEFAULT_INACTIVE_WEIGHT,
) -> float:
    return active_weight * active_average + inactive_weight * inactive_average


def _mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def compute_issue_index(
    active: Sequence[Cluster],
    recently_inactive: Sequence[Cluster],
    collected_at: datetime,
    total_articles: int = 0,
    decay_rate: float = DEFAULT_DECAY_RATE,
    active_weight: float = DEFAULT_ACTIVE_WEIGHT,
    inactive_weight: float = DEFAULT_INACTIVE_WEIGHT,
) -> IssueIndexRecord:
    """Reduce the cluster population to one issue index record.

    Inactive clusters decay from ``updated_at``, the moment they were last
    touched by a reconciliation. An empty group contributes an average of 0.
    """
    active_scores = [cluster_score(c.appearance_count) for c in active]
    inactive_scores = [
        apply_decay(
            cluster_score(c.appearance_count),
            days_between(c.updated_at, collected_at),
            decay_rate,
        )
        for c in recently_inactive
    ]

    active_average = _mean(active_scores)
    inactive_average = _mean(inactive_scores)

    return IssueIndexRecord(
        collected_at=collected_at,
        overall_index=round(
            overall_index(active_average, inactive_average, active_weight, inactive_weight), 1
        ),
        active_average=round(active_average, 1),
        inactive_average=round(inactive_average, 1),
        active_count=len(active_scores),
        inactive_count=len(inactive_scores),
        total_articles_analyzed=total_articles,
    )
