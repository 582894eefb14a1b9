"""APScheduler-based pipeline scheduler."""

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from issue_index.config import Settings
from issue_index.domain.models import PipelineResult
from issue_index.usecase.run_pipeline import RunPipelineUsecase

logger = structlog.get_logger()

JOB_ID = "hourly_issue_index"


class PipelineScheduler:
    """Cron-based scheduled pipeline runner."""

    def __init__(
        self,
        run_pipeline_usecase: RunPipelineUsecase,
        settings: Settings,
    ) -> None:
        self._usecase = run_pipeline_usecase
        self._settings = settings
        self._scheduler = AsyncIOScheduler()

    async def _run_scheduled_pipeline(self) -> None:
        logger.info("Running scheduled pipeline")
        try:
            result = await self._usecase.execute()
        except Exception as e:
            logger.error("Scheduled pipeline failed", error=str(e))
            return

        if result.succeeded:
            logger.info(
                "Scheduled pipeline completed",
                issue_index=result.issue_index,
                duration_ms=result.duration_ms,
            )
        else:
            logger.error(
                "Scheduled pipeline failed",
                error=result.error,
                stage=result.stage.value,
                attempts=result.attempts,
            )

    async def trigger_now(self) -> PipelineResult:
        """Run the pipeline once, outside the schedule."""
        logger.info("Running on-demand pipeline")
        return await self._usecase.execute()

    def start(self) -> None:
        if not self._settings.enable_scheduler:
            logger.info("Scheduler disabled")
            return

        trigger = CronTrigger.from_crontab(self._settings.pipeline_schedule)
        self._scheduler.add_job(
            self._run_scheduled_pipeline,
            trigger,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info("Scheduler started", schedule=self._settings.pipeline_schedule)

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown()
            logger.info("Scheduler stopped")
