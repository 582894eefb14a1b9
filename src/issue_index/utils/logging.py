"""
Logging configuration for news-issue-index.

Provides structured logging with business context keys:
- alt.run.id: Pipeline run tracking
- alt.processing.stage: Processing stage tracking
- alt.ai.pipeline: AI pipeline identification
"""

import logging
import sys

import structlog
from structlog.typing import EventDict, WrappedLogger

PIPELINE_NAME = "news-issue-index"


def add_business_context(
    _logger: WrappedLogger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """
    Structlog processor that renames keys to the alt.* format.

    Transforms:
    - run_id -> alt.run.id
    - processing_stage -> alt.processing.stage

    Also adds alt.ai.pipeline = 'news-issue-index' for all logs.
    """
    if "run_id" in event_dict:
        event_dict["alt.run.id"] = event_dict.pop("run_id")
    if "processing_stage" in event_dict:
        event_dict["alt.processing.stage"] = event_dict.pop("processing_stage")

    event_dict["alt.ai.pipeline"] = PIPELINE_NAME

    return event_dict


def set_run_id(run_id: str | None) -> None:
    """Set the current run ID in the logging context."""
    if run_id is None:
        structlog.contextvars.unbind_contextvars("run_id")
    else:
        structlog.contextvars.bind_contextvars(run_id=run_id)


def set_processing_stage(stage: str | None) -> None:
    """Set the current processing stage in the logging context."""
    if stage is None:
        structlog.contextvars.unbind_contextvars("processing_stage")
    else:
        structlog.contextvars.bind_contextvars(processing_stage=stage)


def clear_context() -> None:
    """Clear all business context values."""
    set_run_id(None)
    set_processing_stage(None)


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Configure structured logging for the application."""
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_business_context,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    structlog.contextvars.bind_contextvars(service=PIPELINE_NAME)
