"""Composition root — wires drivers, gateways, usecases and the scheduler."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from importlib.resources import files

import asyncpg
import httpx
import structlog

from issue_index.config import ScoringWeights, Settings
from issue_index.gateway.article_gateway import PostgresArticleSource
from issue_index.gateway.assistant_gateway import AssistantGateway
from issue_index.gateway.postgres_gateway import PostgresGateway
from issue_index.scheduler.pipeline_scheduler import PipelineScheduler
from issue_index.usecase.build_input import BuildInputUsecase
from issue_index.usecase.calculate_issue_index import CalculateIssueIndexUsecase
from issue_index.usecase.calculate_job_issue_index import CalculateJobIssueIndexUsecase
from issue_index.usecase.classify_articles import ClassifyUsecase
from issue_index.usecase.query_issue_index import IssueIndexQueryUsecase
from issue_index.usecase.reconcile_clusters import ReconcileClustersUsecase
from issue_index.usecase.run_pipeline import RunPipelineUsecase

logger = structlog.get_logger()


def load_schema() -> str:
    return files("issue_index").joinpath("schema.sql").read_text(encoding="utf-8")


@dataclass
class Container:
    """Fully wired application objects."""

    settings: Settings
    registry: PostgresGateway
    classifier: AssistantGateway
    run_pipeline: RunPipelineUsecase
    query: IssueIndexQueryUsecase
    scheduler: PipelineScheduler


def build_container(
    settings: Settings,
    weights: ScoringWeights,
    pool: asyncpg.Pool,
    http_client: httpx.AsyncClient,
) -> Container:
    # --- Gateway layer ---
    registry = PostgresGateway(pool)
    article_source = PostgresArticleSource(pool)
    classifier = AssistantGateway(http_client, settings)

    # --- Usecase layer ---
    job_index = (
        CalculateJobIssueIndexUsecase(registry, settings, weights)
        if settings.enable_job_index
        else None
    )
    run_pipeline = RunPipelineUsecase(
        build_input=BuildInputUsecase(article_source, registry, settings),
        classify=ClassifyUsecase(classifier, settings),
        reconcile=ReconcileClustersUsecase(registry),
        calculate=CalculateIssueIndexUsecase(registry, settings, weights),
        registry=registry,
        settings=settings,
        job_index=job_index,
    )

    return Container(
        settings=settings,
        registry=registry,
        classifier=classifier,
        run_pipeline=run_pipeline,
        query=IssueIndexQueryUsecase(registry),
        scheduler=PipelineScheduler(run_pipeline, settings),
    )


@asynccontextmanager
async def application(
    settings: Settings, weights: ScoringWeights | None = None
) -> AsyncIterator[Container]:
    """Open the driver layer, yield the wired container, close everything on exit."""
    logger.info(
        "Starting news-issue-index",
        schedule=settings.pipeline_schedule,
        scheduler_enabled=settings.enable_scheduler,
    )

    # --- Driver layer ---
    pool = await asyncpg.create_pool(
        dsn=settings.db_dsn,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(connect=5, read=settings.oracle_timeout, write=10, pool=5),
        limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
    )

    container = build_container(settings, weights or ScoringWeights(), pool, http_client)
    try:
        yield container
    finally:
        container.scheduler.stop()
        await http_client.aclose()
        await pool.close()
        logger.info("Shutdown complete")
