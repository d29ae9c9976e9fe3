"""Exceptions for LLM infrastructure components."""

from __future__ import annotations


class LLMInfrastructureError(RuntimeError):
    """Base error for LLM infrastructure failures."""


class LLMConfigurationError(LLMInfrastructureError):
    """Raised when client or proxy configuration is invalid."""


class MissingApiKeyError(LLMInfrastructureError):
    """Raised when the vendor API key is not configured."""


class ProviderRequestError(LLMInfrastructureError):
    """Raised when the vendor answers with an HTTP error status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        details: object = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class ProviderResponseError(LLMInfrastructureError):
    """Raised when vendor response shape cannot be parsed safely."""
