"""Tests for cluster scores, decay and the issue index formula."""

import math
from datetime import timedelta

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from issue_index.domain.models import ClusterStatus
from issue_index.domain.scoring import (
    apply_decay,
    cluster_score,
    compute_issue_index,
    days_between,
    overall_index,
)
from tests.fixtures.cluster_data import RUN_AT, make_cluster


class TestClusterScore:
    def test_first_appearance_scores_base(self):
        assert cluster_score(1) == 20.0

    def test_non_positive_counts_score_base(self):
        assert cluster_score(0) == 20.0
        assert cluster_score(-5) == 20.0

    def test_sixty_appearances(self):
        assert cluster_score(60) == pytest.approx(69.78, abs=0.01)

    def test_saturates_at_720(self):
        assert cluster_score(720) == pytest.approx(100.0)

    def test_not_clamped_above_saturation(self):
        assert cluster_score(1440) > 100.0
        assert cluster_score(1440) == pytest.approx(20 + 80 * math.log(1440) / math.log(720))

    @given(
        a=st.integers(min_value=1, max_value=100_000),
        b=st.integers(min_value=1, max_value=100_000),
    )
    @settings(max_examples=200)
    def test_monotonic_in_appearance_count(self, a, b):
        low, high = sorted((a, b))
        assert cluster_score(low) <= cluster_score(high)


class TestDecay:
    def test_days_between_is_fractional(self):
        assert days_between(RUN_AT - timedelta(hours=36), RUN_AT) == pytest.approx(1.5)

    def test_days_between_floors_at_zero(self):
        assert days_between(RUN_AT, RUN_AT - timedelta(days=2)) == 0.0

    def test_ten_days_of_decay(self):
        assert apply_decay(70.0, 10) == pytest.approx(25.75, abs=0.01)

    def test_no_decay_at_zero_days(self):
        assert apply_decay(55.0, 0) == 55.0

    @given(
        score=st.floats(min_value=0, max_value=200, allow_nan=False),
        d1=st.floats(min_value=0, max_value=365, allow_nan=False),
        d2=st.floats(min_value=0, max_value=365, allow_nan=False),
    )
    def test_decay_never_increases_score(self, score, d1, d2):
        short, long = sorted((d1, d2))
        assert apply_decay(score, long) <= apply_decay(score, short) <= score


class TestOverallIndex:
    def test_weights(self):
        assert overall_index(63.26, 25.75) == pytest.approx(0.7 * 63.26 + 0.3 * 25.75)

    def test_custom_weights(self):
        assert overall_index(50.0, 10.0, active_weight=0.5, inactive_weight=0.5) == 30.0


class TestComputeIssueIndex:
    def test_end_to_end_example(self):
        active = [
            make_cluster("c1", appearance_count=1),
            make_cluster("c2", appearance_count=60),
            make_cluster("c3", appearance_count=720),
        ]
        # 61 appearances scores ~70
        dormant = [
            make_cluster(
                "c4",
                appearance_count=61,
                status=ClusterStatus.INACTIVE,
                updated_at=RUN_AT - timedelta(days=10),
            )
        ]

        record = compute_issue_index(active, dormant, RUN_AT, total_articles=1000)

        assert record.overall_index == 52.0
        assert record.active_average == 63.3
        assert record.inactive_average == 25.7
        assert record.active_count == 3
        assert record.inactive_count == 1
        assert record.total_articles_analyzed == 1000
        assert record.collected_at == RUN_AT

    def test_empty_registry_is_zero(self):
        record = compute_issue_index([], [], RUN_AT)

        assert record.overall_index == 0.0
        assert record.active_count == 0
        assert record.inactive_count == 0

    def test_only_inactive_clusters(self):
        dormant = [
            make_cluster("c1", appearance_count=1, status=ClusterStatus.INACTIVE, updated_at=RUN_AT)
        ]

        record = compute_issue_index([], dormant, RUN_AT)

        assert record.overall_index == 6.0
        assert record.active_average == 0.0
        assert record.inactive_average == 20.0

    def test_decay_uses_updated_at(self):
        fresh = make_cluster("c1", status=ClusterStatus.INACTIVE, updated_at=RUN_AT)
        stale = make_cluster(
            "c1", status=ClusterStatus.INACTIVE, updated_at=RUN_AT - timedelta(days=20)
        )

        assert (
            compute_issue_index([], [stale], RUN_AT).inactive_average
            < compute_issue_index([], [fresh], RUN_AT).inactive_average
        )
