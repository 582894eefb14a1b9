"""Assistants API gateway — implements ClassifierPort over the OpenAI REST API."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import orjson
import structlog

from issue_index.config import Settings
from issue_index.domain.errors import ExternalServiceError
from issue_index.domain.models import OracleInput

logger = structlog.get_logger()

PENDING_STATUSES = frozenset({"queued", "in_progress", "cancelling"})
PROGRESS_LOG_EVERY = 10


def _required(payload: dict[str, Any], key: str, path: str) -> Any:
    value = payload.get(key)
    if value is None:
        logger.error("Assistants API response missing field", path=path, field=key)
        raise ExternalServiceError(f"Assistants API response missing '{key}' ({path})")
    return value


class AssistantGateway:
    """Runs the preconfigured clustering assistant on one thread per request."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._base_url = settings.openai_base_url.rstrip("/")
        self._assistant_id = settings.assistant_id
        self._poll_interval = settings.oracle_poll_interval_seconds
        self._max_polls = settings.oracle_max_polls
        self._headers = {
            "Authorization": f"Bearer {settings.openai_api_key}",
            "OpenAI-Beta": "assistants=v2",
        }
        self._sleep = sleep

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(
                method,
                f"{self._base_url}{path}",
                json=json,
                params=params,
                headers=self._headers,
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Assistants API HTTP error",
                path=path,
                status_code=e.response.status_code,
            )
            raise ExternalServiceError(
                f"Assistants API returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            logger.error("Assistants API request timeout", path=path)
            raise ExternalServiceError("Assistants API request timed out") from e
        except httpx.HTTPError as e:
            logger.error("Assistants API request failed", path=path, error=str(e))
            raise ExternalServiceError(f"Assistants API request failed: {e}") from e
        except ValueError as e:
            logger.error("Assistants API returned invalid JSON", path=path, error=str(e))
            raise ExternalServiceError("Assistants API returned invalid JSON") from e

        if not isinstance(body, dict):
            logger.error("Assistants API returned unexpected body", path=path)
            raise ExternalServiceError("Assistants API returned a non-object body")
        return body

    async def classify(self, oracle_input: OracleInput) -> str:
        content = orjson.dumps(oracle_input.to_dict(), option=orjson.OPT_INDENT_2).decode()

        thread = await self._request("POST", "/threads", json={})
        thread_id = _required(thread, "id", "/threads")

        await self._request(
            "POST",
            f"/threads/{thread_id}/messages",
            json={"role": "user", "content": content},
        )
        run = await self._request(
            "POST",
            f"/threads/{thread_id}/runs",
            json={"assistant_id": self._assistant_id},
        )
        run_id = _required(run, "id", f"/threads/{thread_id}/runs")
        logger.info(
            "Assistant run created",
            thread_id=thread_id,
            assistant_run_id=run_id,
            articles=len(oracle_input.new_articles),
            previous_clusters=len(oracle_input.previous_clusters),
        )

        await self._wait_for_completion(thread_id, run_id, run)
        return await self._first_assistant_text(thread_id)

    async def _wait_for_completion(
        self, thread_id: str, run_id: str, run: dict[str, Any]
    ) -> None:
        path = f"/threads/{thread_id}/runs/{run_id}"
        status = _required(run, "status", path)

        for poll in range(1, self._max_polls + 1):
            if status == "completed":
                logger.info("Assistant run completed", assistant_run_id=run_id, polls=poll - 1)
                return
            if status not in PENDING_STATUSES:
                error = run.get("last_error") or {}
                logger.error(
                    "Assistant run did not complete",
                    assistant_run_id=run_id,
                    status=status,
                    error=error.get("message"),
                )
                raise ExternalServiceError(f"Assistant run ended with status: {status}")

            if poll % PROGRESS_LOG_EVERY == 0:
                logger.info("Waiting for assistant run", assistant_run_id=run_id, polls=poll)

            await self._sleep(self._poll_interval)
            run = await self._request("GET", path)
            status = _required(run, "status", path)

        if status == "completed":
            return
        raise ExternalServiceError(
            f"Assistant run did not complete after {self._max_polls} polls (status: {status})"
        )

    async def _first_assistant_text(self, thread_id: str) -> str:
        messages = await self._request(
            "GET",
            f"/threads/{thread_id}/messages",
            params={"order": "desc", "limit": 20},
        )
        for message in messages.get("data") or []:
            if message.get("role") != "assistant":
                continue
            for block in message.get("content") or []:
                if block.get("type") != "text":
                    continue
                value = (block.get("text") or {}).get("value")
                if isinstance(value, str):
                    return value
            break
        raise ExternalServiceError("Assistant returned no text response")

    async def health_check(self) -> bool:
        try:
            await self._request("GET", f"/assistants/{self._assistant_id}")
            return True
        except ExternalServiceError as e:
            logger.error("Assistant health check failed", error=str(e))
            return False
