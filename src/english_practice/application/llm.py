"""Application-level contracts for exercise generation over an LLM proxy."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from english_practice.domain.exercises import ExerciseRequest, RawModelPayload


class ExerciseGenerationError(RuntimeError):
    """Base error for a failed exercise submission."""


class RequestTimeoutError(ExerciseGenerationError):
    """Raised when the request deadline expires before a response arrives."""


class TransportError(ExerciseGenerationError):
    """Raised on network failures and non-success HTTP responses."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: object = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class MalformedResponseError(ExerciseGenerationError):
    """Raised when the completion envelope or its content cannot be parsed."""


class EmptyResultError(ExerciseGenerationError):
    """Raised when a parsed payload yields no usable exercise."""


class ExerciseGateway(Protocol):
    """Port for the timeout-guarded request protocol."""

    async def submit(self, request: ExerciseRequest) -> RawModelPayload:
        """Send one request and return the parsed model payload."""
        ...


class VendorCompletionClient(Protocol):
    """Port for the chat-completions vendor behind the proxy."""

    @property
    def is_configured(self) -> bool:
        """Return whether vendor credentials are available."""
        ...

    async def complete(self, payload: Mapping[str, object]) -> dict[str, object]:
        """Send a chat-completions payload and return the raw envelope."""
        ...
