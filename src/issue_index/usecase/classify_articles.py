"""Classify step: oracle call, parse, sanitize, validate."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from issue_index.config import Settings
from issue_index.domain.errors import OracleResponseError, ValidationError
from issue_index.domain.models import ArticleBatch, ClassificationResult, OracleInput
from issue_index.domain.tags import STANDARD_TAGS
from issue_index.port.classifier_port import ClassifierPort
from issue_index.usecase.parse_output import ParseFailure, SchemaFailure, parse_oracle_response
from issue_index.usecase.sanitize_output import sanitize_clusters
from issue_index.usecase.validate_output import to_oracle_clusters, validate_clusters

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ClassifyUsecase:
    """Turns one oracle answer into validated clusters."""

    def __init__(
        self,
        classifier: ClassifierPort,
        settings: Settings,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._classifier = classifier
        self._vocabulary = STANDARD_TAGS if settings.enforce_tag_vocabulary else None
        self._clock = clock

    async def execute(
        self, oracle_input: OracleInput, batch: ArticleBatch
    ) -> ClassificationResult:
        raw = await self._classifier.classify(oracle_input)

        parsed = parse_oracle_response(raw)
        if isinstance(parsed, ParseFailure):
            logger.warning("Unparseable oracle response", reason=parsed.reason)
            raise OracleResponseError(parsed.reason)
        if isinstance(parsed, SchemaFailure):
            raise ValidationError([parsed.reason])

        sanitized = sanitize_clusters(parsed.clusters, max_index=batch.max_index)
        report = validate_clusters(
            sanitized.clusters,
            expected_article_count=batch.size,
            tag_vocabulary=self._vocabulary,
        )

        for warning in report.warnings:
            logger.warning("Oracle output warning", warning=warning)

        if not report.is_valid:
            logger.error("Oracle output failed validation", errors=report.errors)
            raise ValidationError(report.errors)

        clusters = to_oracle_clusters(sanitized.clusters)
        result = ClassificationResult(
            clusters=clusters,
            raw_response=raw,
            processed_at=self._clock(),
            warnings=list(report.warnings),
        )
        logger.info(
            "Classification completed",
            clusters=len(clusters),
            articles_classified=result.total_articles,
            articles_total=batch.size,
        )
        return result
