"""Tests for ReconcileClustersUsecase."""

from datetime import timedelta

import pytest

from issue_index.domain.errors import StorageError
from issue_index.domain.models import ClusterStatus, OracleCluster
from issue_index.domain.scoring import cluster_score
from issue_index.usecase.reconcile_clusters import ReconcileClustersUsecase
from tests.fixtures.cluster_data import LLM_TAGS, POLICY_TAGS, RUN_AT, make_cluster


def oracle_cluster(cluster_id, indices, appearance_count=1, tags=None):
    return OracleCluster(
        cluster_id=cluster_id,
        topic_name=f"Topic {cluster_id}",
        tags=list(tags or LLM_TAGS),
        article_indices=list(indices),
        article_count=len(indices),
        appearance_count=appearance_count,
    )


@pytest.fixture
def usecase(registry):
    return ReconcileClustersUsecase(registry)


class TestReconcileClustersUsecase:
    async def test_first_run_creates_clusters(self, usecase, registry):
        summary = await usecase.execute(
            [oracle_cluster("c1", [0, 1]), oracle_cluster("c2", [2])], RUN_AT
        )

        assert summary.created == 2
        assert summary.updated == 0
        assert summary.deactivated == 0
        assert summary.snapshots_written == 2
        assert registry.active_ids() == {"c1", "c2"}
        c1 = registry.clusters["c1"]
        assert c1.created_at == RUN_AT
        assert [h.article_indices for h in c1.history] == [[0, 1]]

    async def test_existing_cluster_updated_with_history(self, usecase, registry):
        registry.seed(make_cluster("c1", appearance_count=4))

        summary = await usecase.execute(
            [oracle_cluster("c1", [5, 6], appearance_count=5, tags=POLICY_TAGS)], RUN_AT
        )

        assert summary.updated == 1
        c1 = registry.clusters["c1"]
        assert c1.appearance_count == 5
        assert c1.tags == POLICY_TAGS
        assert c1.updated_at == RUN_AT
        assert len(c1.history) == 2
        assert c1.history[-1].article_indices == [5, 6]

    async def test_missing_active_clusters_deactivated(self, usecase, registry):
        registry.seed(make_cluster("A", appearance_count=3), make_cluster("B"))

        summary = await usecase.execute([oracle_cluster("A", [0])], RUN_AT)

        assert summary.deactivated == 1
        assert registry.active_ids() == {"A"}
        b = registry.clusters["B"]
        assert b.status == ClusterStatus.INACTIVE
        assert b.updated_at == RUN_AT

        snapshots = {s.cluster_id: s for s in registry.snapshots_for(RUN_AT)}
        inactive = snapshots["B"]
        assert inactive.status == ClusterStatus.INACTIVE
        assert inactive.article_count == 0
        assert inactive.article_indices == []
        assert inactive.cluster_score == 0.0
        assert inactive.tags == LLM_TAGS

    async def test_active_snapshot_scores(self, usecase, registry):
        await usecase.execute([oracle_cluster("c1", [0], appearance_count=60)], RUN_AT)

        (snapshot,) = registry.snapshots_for(RUN_AT)
        assert snapshot.status == ClusterStatus.ACTIVE
        assert snapshot.cluster_score == pytest.approx(cluster_score(60))
        assert snapshot.article_indices == [0]

    async def test_already_inactive_clusters_untouched(self, usecase, registry):
        dormant_at = RUN_AT - timedelta(days=3)
        registry.seed(make_cluster("old", status=ClusterStatus.INACTIVE, updated_at=dormant_at))

        summary = await usecase.execute([oracle_cluster("c1", [0])], RUN_AT)

        assert summary.deactivated == 0
        assert registry.clusters["old"].updated_at == dormant_at
        assert {s.cluster_id for s in registry.snapshots_for(RUN_AT)} == {"c1"}

    async def test_inactive_cluster_reappears(self, usecase, registry):
        registry.seed(
            make_cluster(
                "back",
                appearance_count=8,
                status=ClusterStatus.INACTIVE,
                updated_at=RUN_AT - timedelta(days=2),
            )
        )

        summary = await usecase.execute([oracle_cluster("back", [3], appearance_count=9)], RUN_AT)

        assert summary.updated == 1
        assert summary.created == 0
        back = registry.clusters["back"]
        assert back.status == ClusterStatus.ACTIVE
        assert back.appearance_count == 9
        assert len(back.history) == 2

    async def test_active_set_equals_output_set(self, usecase, registry):
        registry.seed(
            make_cluster("A"),
            make_cluster("B"),
            make_cluster("C", status=ClusterStatus.INACTIVE),
        )

        await usecase.execute([oracle_cluster("B", [0]), oracle_cluster("D", [1])], RUN_AT)

        assert registry.active_ids() == {"B", "D"}
        snapshot_ids = [s.cluster_id for s in registry.snapshots_for(RUN_AT)]
        assert sorted(snapshot_ids) == ["A", "B", "D"]

    async def test_storage_failure_rolls_back(self, usecase, registry):
        registry.seed(make_cluster("A"))
        registry.fail_snapshot_insert = True

        with pytest.raises(StorageError):
            await usecase.execute([oracle_cluster("B", [0])], RUN_AT)

        assert set(registry.clusters) == {"A"}
        assert registry.active_ids() == {"A"}
        assert registry.snapshots == []
