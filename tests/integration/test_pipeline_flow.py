"""Integration tests for consecutive pipeline runs: usecases → fake registry."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from issue_index.domain.models import ClusterStatus
from issue_index.usecase.build_input import BuildInputUsecase
from issue_index.usecase.calculate_issue_index import CalculateIssueIndexUsecase
from issue_index.usecase.calculate_job_issue_index import CalculateJobIssueIndexUsecase
from issue_index.usecase.classify_articles import ClassifyUsecase
from issue_index.usecase.query_issue_index import IssueIndexQueryUsecase
from issue_index.usecase.reconcile_clusters import ReconcileClustersUsecase
from issue_index.usecase.run_pipeline import RunPipelineUsecase
from tests.fakes.fake_classifier import FakeClassifier, oracle_answer
from tests.fixtures.cluster_data import RUN_AT, VISION_TAGS, cluster_dict

FIRST = RUN_AT
SECOND = RUN_AT + timedelta(hours=1)
THIRD = RUN_AT + timedelta(hours=2)


class ManualClock:
    def __init__(self) -> None:
        self.now = FIRST

    def __call__(self):
        return self.now


@pytest.fixture
def classifier():
    return FakeClassifier(
        oracle_answer(
            [
                cluster_dict("c1", [0, 1, 2, 3, 4]),
                cluster_dict("c2", [5, 6, 7, 8, 9], tags=VISION_TAGS),
            ]
        ),
        oracle_answer([cluster_dict("c1", list(range(10)), appearance_count=2)], fenced=False),
        oracle_answer(
            [
                cluster_dict("c1", [5, 6, 7, 8, 9], appearance_count=3),
                cluster_dict("c2", [0, 1, 2, 3, 4], appearance_count=2, tags=VISION_TAGS),
            ]
        ),
    )


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def pipeline(article_source, registry, classifier, mock_settings, scoring_weights, clock):
    return RunPipelineUsecase(
        build_input=BuildInputUsecase(article_source, registry, mock_settings),
        classify=ClassifyUsecase(classifier, mock_settings, clock=clock),
        reconcile=ReconcileClustersUsecase(registry),
        calculate=CalculateIssueIndexUsecase(registry, mock_settings, scoring_weights),
        registry=registry,
        settings=mock_settings,
        job_index=CalculateJobIssueIndexUsecase(registry, mock_settings, scoring_weights),
        sleep=AsyncMock(),
        clock=clock,
    )


class TestPipelineFlow:
    async def test_cluster_lifecycle_across_runs(self, pipeline, registry, classifier, clock):
        first = await pipeline.execute()
        assert first.succeeded
        assert (first.clusters_created, first.clusters_deactivated) == (2, 0)
        assert registry.active_ids() == {"c1", "c2"}

        clock.now = SECOND
        second = await pipeline.execute()
        assert second.succeeded
        assert (second.clusters_updated, second.clusters_deactivated) == (1, 1)
        assert registry.active_ids() == {"c1"}
        assert registry.clusters["c2"].status == ClusterStatus.INACTIVE
        assert registry.clusters["c2"].updated_at == SECOND

        previous = classifier.call_history[1].previous_clusters
        assert {c.cluster_id for c in previous} == {"c1", "c2"}

        clock.now = THIRD
        third = await pipeline.execute()
        assert third.succeeded
        assert (third.clusters_created, third.clusters_updated) == (0, 2)
        assert registry.active_ids() == {"c1", "c2"}
        assert len(registry.clusters["c1"].history) == 3
        assert len(registry.clusters["c2"].history) == 2

        statuses = {c.cluster_id: c.status for c in classifier.call_history[2].previous_clusters}
        assert statuses == {"c1": ClusterStatus.ACTIVE, "c2": ClusterStatus.INACTIVE}

    async def test_snapshots_and_index_per_run(self, pipeline, registry, clock):
        await pipeline.execute()
        clock.now = SECOND
        await pipeline.execute()

        snapshots = {s.cluster_id: s for s in registry.snapshots_for(SECOND)}
        assert snapshots["c2"].status == ClusterStatus.INACTIVE
        assert snapshots["c2"].cluster_score == 0.0
        assert snapshots["c2"].article_indices == []
        assert snapshots["c1"].article_count == 10
        assert len(registry.snapshots_for(FIRST)) == 2

        record = registry.issue_indexes[SECOND]
        assert record.active_count == 1
        assert record.inactive_count == 1
        assert record.active_average == pytest.approx(28.4, abs=0.1)
        assert record.inactive_average == 20.0
        assert record.overall_index == pytest.approx(25.9, abs=0.1)
        assert record.total_articles_analyzed == 10

    async def test_job_indexes_written_every_run(self, pipeline, registry, clock):
        await pipeline.execute()
        clock.now = SECOND
        await pipeline.execute()

        second_run = [r for r in registry.job_issue_indexes if r.collected_at == SECOND]
        assert len(second_run) == 13
        assert all(r.issue_index >= 0 for r in second_run)

    async def test_query_reads_latest_run(self, pipeline, registry, clock):
        await pipeline.execute()
        clock.now = SECOND
        await pipeline.execute()

        query = IssueIndexQueryUsecase(registry)
        latest = await query.latest()
        history = await query.between(FIRST, SECOND)

        assert latest.collected_at == SECOND
        assert [r.collected_at for r in history] == [SECOND, FIRST]
