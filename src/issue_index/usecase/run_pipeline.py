"""Run pipeline usecase — orchestrates one end-to-end issue index run."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from uuid import uuid4

import structlog

from issue_index.config import Settings
from issue_index.domain.errors import PipelineError, RunInProgressError
from issue_index.domain.models import PipelineResult, PipelineStage, PipelineStatus
from issue_index.port.cluster_registry_port import ClusterRegistryPort
from issue_index.usecase.build_input import BuildInputUsecase
from issue_index.usecase.calculate_issue_index import CalculateIssueIndexUsecase
from issue_index.usecase.calculate_job_issue_index import CalculateJobIssueIndexUsecase
from issue_index.usecase.classify_articles import ClassifyUsecase
from issue_index.usecase.reconcile_clusters import ReconcileClustersUsecase
from issue_index.utils.logging import clear_context, set_processing_stage, set_run_id

logger = structlog.get_logger()

RUN_IN_PROGRESS_MESSAGE = "run already in progress"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RunPipelineUsecase:
    """Runs Preprocessing → Classifying → Saving → IndexCalculating.

    Transient failures restart the whole run after a fixed delay. Validation
    failures and overlapping runs fail immediately. ``execute`` never raises.
    """

    def __init__(
        self,
        build_input: BuildInputUsecase,
        classify: ClassifyUsecase,
        reconcile: ReconcileClustersUsecase,
        calculate: CalculateIssueIndexUsecase,
        registry: ClusterRegistryPort,
        settings: Settings,
        job_index: CalculateJobIssueIndexUsecase | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._build_input = build_input
        self._classify = classify
        self._reconcile = reconcile
        self._calculate = calculate
        self._job_index = job_index
        self._registry = registry
        self._max_retries = settings.pipeline_max_retries
        self._retry_delay = settings.pipeline_retry_delay_seconds
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self._stage = PipelineStage.PREPROCESSING

    def _enter_stage(self, stage: PipelineStage) -> None:
        self._stage = stage
        set_processing_stage(stage.value)
        logger.info("Pipeline stage started")

    async def execute(self) -> PipelineResult:
        executed_at = self._clock()
        started = time.monotonic()

        if self._lock.locked():
            logger.warning("Pipeline run skipped", reason=RUN_IN_PROGRESS_MESSAGE)
            return self._failure(
                executed_at, started, RunInProgressError(RUN_IN_PROGRESS_MESSAGE), attempts=0
            )

        async with self._lock:
            set_run_id(uuid4().hex)
            self._stage = PipelineStage.PREPROCESSING
            logger.info("Starting pipeline run", executed_at=executed_at.isoformat())
            try:
                async with self._registry.run_lock() as acquired:
                    if not acquired:
                        logger.warning("Pipeline run skipped", reason="registry lock held")
                        return self._failure(
                            executed_at,
                            started,
                            RunInProgressError(RUN_IN_PROGRESS_MESSAGE),
                            attempts=0,
                        )
                    return await self._run_with_retry(executed_at, started)
            except Exception as e:
                logger.exception("Could not acquire run lock", error=str(e))
                return self._failure(executed_at, started, e, attempts=0)
            finally:
                clear_context()

    async def _run_with_retry(self, executed_at: datetime, started: float) -> PipelineResult:
        max_attempts = self._max_retries + 1
        attempt = 1

        while True:
            try:
                return await self._run_once(executed_at, started, attempt)
            except PipelineError as e:
                if not e.retryable:
                    logger.error(
                        "Pipeline failed with non-retryable error",
                        attempt=attempt,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    return self._failure(executed_at, started, e, attempts=attempt)
                if attempt >= max_attempts:
                    logger.error(
                        "Pipeline failed after all retries",
                        attempts=attempt,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    return self._failure(executed_at, started, e, attempts=attempt)
                logger.warning(
                    "Pipeline attempt failed, retrying",
                    attempt=attempt,
                    max_attempts=max_attempts,
                    error_type=type(e).__name__,
                    error=str(e),
                    retry_delay_seconds=self._retry_delay,
                )
            except Exception as e:
                logger.exception("Pipeline failed with unexpected error", attempt=attempt)
                return self._failure(executed_at, started, e, attempts=attempt)

            await self._sleep(self._retry_delay)
            attempt += 1

    async def _run_once(
        self, executed_at: datetime, started: float, attempt: int
    ) -> PipelineResult:
        self._enter_stage(PipelineStage.PREPROCESSING)
        batch, oracle_input = await self._build_input.execute(self._clock())

        self._enter_stage(PipelineStage.CLASSIFYING)
        classification = await self._classify.execute(oracle_input, batch)
        collected_at = classification.processed_at

        self._enter_stage(PipelineStage.SAVING)
        summary = await self._reconcile.execute(classification.clusters, collected_at)

        self._enter_stage(PipelineStage.INDEX_CALCULATING)
        record = await self._calculate.execute(
            collected_at, total_articles=classification.total_articles
        )
        if self._job_index is not None:
            await self._job_index.execute(collected_at)

        self._enter_stage(PipelineStage.DONE)
        result = PipelineResult(
            status=PipelineStatus.SUCCESS,
            message="Pipeline completed successfully",
            executed_at=executed_at,
            duration_ms=self._elapsed_ms(started),
            attempts=attempt,
            clusters_created=summary.created,
            clusters_updated=summary.updated,
            clusters_deactivated=summary.deactivated,
            issue_index=record.overall_index,
            stage=PipelineStage.DONE,
        )
        logger.info(
            "Pipeline run completed",
            attempts=attempt,
            duration_ms=result.duration_ms,
            issue_index=record.overall_index,
            clusters_created=summary.created,
            clusters_updated=summary.updated,
            clusters_deactivated=summary.deactivated,
        )
        return result

    def _failure(
        self,
        executed_at: datetime,
        started: float,
        error: Exception,
        attempts: int,
    ) -> PipelineResult:
        message = str(error) or type(error).__name__
        failed_stage = self._stage if attempts else PipelineStage.PREPROCESSING
        if attempts:
            set_processing_stage(PipelineStage.FAILED.value)
            logger.error("Pipeline run failed", failed_stage=failed_stage.value, attempts=attempts)
        return PipelineResult(
            status=PipelineStatus.FAILURE,
            message=f"Pipeline failed: {message}",
            executed_at=executed_at,
            duration_ms=self._elapsed_ms(started),
            attempts=attempts,
            stage=failed_stage,
            error=message,
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
