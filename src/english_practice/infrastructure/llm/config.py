"""Explicit configuration objects for the proxy, its vendor, and the request client."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from english_practice.domain.exercises import ExerciseKind
from english_practice.infrastructure.llm.errors import LLMConfigurationError

DASHSCOPE_API_KEY_ENV_VAR = "DASHSCOPE_API_KEY"
DASHSCOPE_BASE_URL_ENV_VAR = "ENGLISH_PRACTICE_DASHSCOPE_BASE_URL"
MULTIPLE_CHOICE_MODEL_ENV_VAR = "ENGLISH_PRACTICE_MULTIPLE_CHOICE_MODEL"
GAP_FILL_MODEL_ENV_VAR = "ENGLISH_PRACTICE_GAP_FILL_MODEL"
PROXY_URL_ENV_VAR = "ENGLISH_PRACTICE_PROXY_URL"
HOST_ENV_VAR = "ENGLISH_PRACTICE_HOST"
PORT_ENV_VAR = "ENGLISH_PRACTICE_PORT"

DEFAULT_DASHSCOPE_BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"
DEFAULT_MULTIPLE_CHOICE_MODEL = "qwen-plus"
DEFAULT_GAP_FILL_MODEL = "qwen-turbo"
DEFAULT_PROXY_URL = "http://127.0.0.1:8000"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000
DEFAULT_TIMEOUT_SECONDS = 100.0


def _default_models() -> dict[ExerciseKind, str]:
    return {
        ExerciseKind.MULTIPLE_CHOICE: DEFAULT_MULTIPLE_CHOICE_MODEL,
        ExerciseKind.GAP_FILL: DEFAULT_GAP_FILL_MODEL,
    }


@dataclass(frozen=True)
class VendorConfig:
    """Upstream chat-completions settings held by the proxy only."""

    api_key: str | None
    base_url: str = DEFAULT_DASHSCOPE_BASE_URL
    models: Mapping[ExerciseKind, str] = field(default_factory=_default_models)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        _validate_timeout(self.timeout_seconds)
        for kind in ExerciseKind:
            model = self.models.get(kind)
            if not model:
                raise LLMConfigurationError(f"Missing model for exercise kind: {kind.value}")

    def model_for(self, kind: ExerciseKind) -> str:
        return self.models[kind]


@dataclass(frozen=True)
class ExerciseClientConfig:
    """Settings for the timeout-guarded request protocol."""

    base_url: str = DEFAULT_PROXY_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        _validate_timeout(self.timeout_seconds)


@dataclass(frozen=True)
class ServerConfig:
    """Bind address for the proxy server."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


def default_vendor_config() -> VendorConfig:
    """Build vendor config from environment with built-in fallbacks."""
    api_key = os.environ.get(DASHSCOPE_API_KEY_ENV_VAR, "").strip()
    return VendorConfig(
        api_key=api_key or None,
        base_url=_resolve_env(
            env_var=DASHSCOPE_BASE_URL_ENV_VAR,
            fallback=DEFAULT_DASHSCOPE_BASE_URL,
        ),
        models={
            ExerciseKind.MULTIPLE_CHOICE: _resolve_env(
                env_var=MULTIPLE_CHOICE_MODEL_ENV_VAR,
                fallback=DEFAULT_MULTIPLE_CHOICE_MODEL,
            ),
            ExerciseKind.GAP_FILL: _resolve_env(
                env_var=GAP_FILL_MODEL_ENV_VAR,
                fallback=DEFAULT_GAP_FILL_MODEL,
            ),
        },
    )


def default_client_config() -> ExerciseClientConfig:
    return ExerciseClientConfig(
        base_url=_resolve_env(env_var=PROXY_URL_ENV_VAR, fallback=DEFAULT_PROXY_URL),
    )


def default_server_config() -> ServerConfig:
    raw_port = _resolve_env(env_var=PORT_ENV_VAR, fallback=str(DEFAULT_PORT))
    try:
        port = int(raw_port)
    except ValueError as exc:
        raise LLMConfigurationError(
            f"{PORT_ENV_VAR} must be an integer, got {raw_port!r}."
        ) from exc
    return ServerConfig(
        host=_resolve_env(env_var=HOST_ENV_VAR, fallback=DEFAULT_HOST),
        port=port,
    )


def _validate_timeout(timeout_seconds: float) -> None:
    if timeout_seconds <= 0:
        raise LLMConfigurationError("timeout_seconds must be > 0")


def _resolve_env(*, env_var: str, fallback: str) -> str:
    raw_value = os.environ.get(env_var, "")
    resolved = raw_value.strip()
    return resolved if resolved else fallback
