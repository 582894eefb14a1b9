"""Domain specific exceptions.

Every pipeline failure derives from ``PipelineError``. The ``retryable`` flag
drives the orchestrator's retry policy: transient failures (oracle, storage,
incomplete article batch) are retried, deterministic ones fail fast.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for pipeline failures."""

    retryable: bool = False


class ValidationError(PipelineError):
    """Raised when the oracle output is structurally invalid."""

    retryable = False

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Validation failed: {', '.join(self.errors)}")


class ExternalServiceError(PipelineError):
    """Raised when the classification oracle fails, times out or is cancelled."""

    retryable = True


class OracleResponseError(ExternalServiceError):
    """Raised when the oracle answered with text that holds no parseable JSON array."""


class StorageError(PipelineError):
    """Raised when a registry read or the reconciliation transaction fails."""

    retryable = True


class ArticleBatchError(PipelineError):
    """Raised when the latest article batch is empty or not contiguously indexed."""

    retryable = True


class RunInProgressError(PipelineError):
    """Raised when another pipeline run holds the run lock."""

    retryable = False
