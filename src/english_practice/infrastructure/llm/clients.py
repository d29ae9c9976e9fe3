"""HTTP clients for the exercise proxy and the DashScope chat-completions vendor."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Mapping
from typing import Any, cast

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator

from english_practice.application.llm import (
    ExerciseGateway,
    MalformedResponseError,
    RequestTimeoutError,
    TransportError,
    VendorCompletionClient,
)
from english_practice.domain.exercises import ExerciseRequest, RawModelPayload
from english_practice.infrastructure.llm.config import ExerciseClientConfig, VendorConfig
from english_practice.infrastructure.llm.errors import (
    MissingApiKeyError,
    ProviderRequestError,
    ProviderResponseError,
)

LOGGER = logging.getLogger(__name__)

GENERATE_PATH = "/api/generate"
CHAT_COMPLETIONS_PATH = "/chat/completions"


class ExerciseProxyClient(ExerciseGateway):
    """Request protocol: one deadline-bounded POST to the proxy per submission."""

    def __init__(
        self,
        config: ExerciseClientConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or ExerciseClientConfig()
        self._http_client = http_client or httpx.AsyncClient(base_url=self._config.base_url)
        self._owns_client = http_client is None

    async def aclose(self) -> None:
        """Close owned HTTP client."""
        if self._owns_client:
            await self._http_client.aclose()

    async def submit(self, request: ExerciseRequest) -> RawModelPayload:
        """Send the request and return the parsed JSON content of the first completion.

        The deadline cancels the in-flight request when it expires, so the
        connection is released instead of left running in the background.
        """
        body = request.to_proxy_body()
        started = time.monotonic()
        LOGGER.info(
            "event=exercise_submit_started kind=%s timeout_seconds=%s",
            request.kind.value,
            self._config.timeout_seconds,
        )
        try:
            async with asyncio.timeout(self._config.timeout_seconds):
                response = await self._http_client.post(
                    GENERATE_PATH,
                    json=body,
                    timeout=self._config.timeout_seconds,
                )
        except TimeoutError as exc:
            _log_submit_failure(request, started, exc)
            raise RequestTimeoutError(
                f"Exercise request timed out after {self._config.timeout_seconds:g} seconds."
            ) from exc
        except httpx.TimeoutException as exc:
            _log_submit_failure(request, started, exc)
            raise RequestTimeoutError("Exercise request timed out in transport.") from exc
        except httpx.HTTPError as exc:
            _log_submit_failure(request, started, exc)
            raise TransportError(f"Exercise request failed: {exc}") from exc

        if response.status_code >= 400:
            error = _build_transport_error(response)
            _log_submit_failure(request, started, error)
            raise error

        try:
            content = _read_completion_content(response)
        except ProviderResponseError as exc:
            _log_submit_failure(request, started, exc)
            raise MalformedResponseError(str(exc)) from exc

        try:
            payload = json.loads(_strip_markdown_json_fence(content))
        except ValueError as exc:
            _log_submit_failure(request, started, exc)
            raise MalformedResponseError("Completion content is not valid JSON.") from exc

        LOGGER.info(
            "event=exercise_submit_completed kind=%s status=%s latency_ms=%s",
            request.kind.value,
            response.status_code,
            _compute_latency_ms(started, time.monotonic()),
        )
        return cast(RawModelPayload, payload)


class DashScopeClient(VendorCompletionClient):
    """DashScope OpenAI-compatible chat-completions adapter used by the proxy."""

    def __init__(
        self,
        config: VendorConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._http_client = http_client or httpx.AsyncClient(base_url=config.base_url)
        self._owns_client = http_client is None

    @property
    def is_configured(self) -> bool:
        return bool(self._config.api_key)

    async def aclose(self) -> None:
        """Close owned HTTP client."""
        if self._owns_client:
            await self._http_client.aclose()

    async def complete(self, payload: Mapping[str, object]) -> dict[str, object]:
        """Execute one chat-completions call and return the raw envelope."""
        if not self._config.api_key:
            raise MissingApiKeyError("DashScope API key is not configured.")

        headers = {
            "Authorization": f"Bearer {self._config.api_key}",
            "content-type": "application/json",
        }
        response = await self._http_client.post(
            CHAT_COMPLETIONS_PATH,
            headers=headers,
            json=dict(payload),
            timeout=self._config.timeout_seconds,
        )
        if response.status_code >= 400:
            message, details = _extract_error_detail(response)
            summary = f"dashscope request failed with status={response.status_code}."
            if message:
                summary = f"{summary} detail={message}"
            raise ProviderRequestError(
                summary,
                status_code=response.status_code,
                details=details,
            )
        return _read_json_object(response)


class _CompletionMessage(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def require_content(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("completion content is empty")
        return value


class _CompletionChoice(BaseModel):
    message: _CompletionMessage


class _CompletionEnvelope(BaseModel):
    """Fields of a chat-completions envelope the request protocol reads."""

    choices: list[_CompletionChoice] = Field(min_length=1)


def _build_transport_error(response: httpx.Response) -> TransportError:
    message, details = _extract_error_detail(response)
    summary = f"Exercise service responded with status={response.status_code}."
    if message:
        summary = f"{summary} error={message}"
    return TransportError(summary, status_code=response.status_code, details=details)


def _log_submit_failure(request: ExerciseRequest, started: float, error: Exception) -> None:
    LOGGER.warning(
        "event=exercise_submit_failed kind=%s latency_ms=%s error_type=%s",
        request.kind.value,
        _compute_latency_ms(started, time.monotonic()),
        error.__class__.__name__,
    )


def _extract_error_detail(response: httpx.Response) -> tuple[str | None, object]:
    """Return a short error message and the decoded error body, if any."""
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return (_shorten(text), text) if text else (None, None)

    if isinstance(payload, dict):
        return _read_error_message(payload), payload
    return None, payload


def _read_error_message(payload: dict[str, Any]) -> str | None:
    # Proxy bodies carry a string "error"; vendor bodies nest {"message", "code"}.
    error = payload.get("error")
    candidates = [error]
    if isinstance(error, dict):
        candidates = [error.get("message"), error.get("code")]
    candidates.append(payload.get("message"))

    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return _shorten(candidate.strip())
    return None


def _shorten(value: str, *, max_length: int = 300) -> str:
    return value if len(value) <= max_length else f"{value[:max_length]}..."


def _read_completion_content(response: httpx.Response) -> str:
    try:
        envelope = _CompletionEnvelope.model_validate_json(response.content)
    except ValidationError as exc:
        raise ProviderResponseError(
            f"Completion envelope is invalid: {exc.error_count()} error(s)."
        ) from exc
    return envelope.choices[0].message.content


def _read_json_object(response: httpx.Response) -> dict[str, object]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise ProviderResponseError("Response body is not valid JSON.") from exc

    if not isinstance(payload, dict):
        raise ProviderResponseError("Response root must be a JSON object.")
    return payload


def _strip_markdown_json_fence(value: str) -> str:
    stripped = value.strip()
    if not stripped.startswith("```"):
        return stripped

    lines = stripped.splitlines()
    if len(lines) < 3:
        return stripped

    first_line = lines[0].strip().lower()
    last_line = lines[-1].strip()
    if last_line != "```":
        return stripped
    if first_line != "```" and not first_line.startswith("```json"):
        return stripped

    return "\n".join(lines[1:-1]).strip()


def _compute_latency_ms(started: float, now: float) -> int:
    return max(0, int((now - started) * 1000))
