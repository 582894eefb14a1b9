"""Classifier port — abstract interface for the clustering oracle."""

from typing import Protocol

from issue_index.domain.models import OracleInput


class ClassifierPort(Protocol):
    """Protocol for the external classification oracle.

    ``classify`` returns the oracle's raw text answer. Transport failures,
    timeouts and non-completed runs raise ``ExternalServiceError``.
    """

    async def classify(self, oracle_input: OracleInput) -> str: ...

    async def health_check(self) -> bool: ...
