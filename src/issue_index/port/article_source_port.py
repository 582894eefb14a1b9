"""Article source port — abstract interface for the latest headline batch."""

from typing import Protocol

from issue_index.domain.models import ArticleBatch


class ArticleSourcePort(Protocol):
    """Protocol for reading collected article batches."""

    async def fetch_latest_batch(self) -> ArticleBatch | None: ...
