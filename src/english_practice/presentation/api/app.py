"""Stateless HTTP relay between exercise clients and the LLM vendor."""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

import httpx
from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from english_practice.application.llm import VendorCompletionClient
from english_practice.infrastructure.llm.clients import DashScopeClient
from english_practice.infrastructure.llm.config import VendorConfig, default_vendor_config
from english_practice.infrastructure.llm.errors import (
    LLMInfrastructureError,
    ProviderRequestError,
)
from english_practice.infrastructure.llm.prompts import PROMPTS_BY_KIND, build_exercise_payload
from english_practice.presentation.api.schemas import ErrorBody, GenerateExerciseBody

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["exercises"])


def create_app(
    config: VendorConfig | None = None,
    *,
    vendor_client: VendorCompletionClient | None = None,
) -> FastAPI:
    """Build the proxy app; the vendor key never leaves this process."""
    resolved_config = config or default_vendor_config()
    owned_client: DashScopeClient | None = None
    if vendor_client is None:
        owned_client = DashScopeClient(resolved_config)
        vendor_client = owned_client

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        if owned_client is not None:
            await owned_client.aclose()

    app = FastAPI(title="English Practice Proxy", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS", "POST"],
        allow_headers=["*"],
    )
    app.state.vendor_config = resolved_config
    app.state.vendor_client = vendor_client
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.include_router(router)
    return app


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    vendor_client: VendorCompletionClient = request.app.state.vendor_client
    return {"status": "ok", "vendor_configured": vendor_client.is_configured}


@router.options("/generate")
async def generate_preflight() -> Response:
    return Response(status_code=200)


@router.post("/generate")
async def generate_exercise(body: GenerateExerciseBody, request: Request) -> JSONResponse:
    """Forward one generation request and relay the vendor envelope unchanged."""
    config: VendorConfig = request.app.state.vendor_config
    vendor_client: VendorCompletionClient = request.app.state.vendor_client
    correlation_id = str(uuid4())

    try:
        exercise_request = body.to_request()
    except ValueError as exc:
        return _error_response(400, str(exc))

    model = config.model_for(exercise_request.kind)
    prompt = PROMPTS_BY_KIND[exercise_request.kind]
    payload = build_exercise_payload(exercise_request, model=model)
    started = time.monotonic()
    LOGGER.info(
        "event=proxy_generate_started correlation_id=%s kind=%s model=%s prompt_id=%s "
        "prompt_version=%s count=%s",
        correlation_id,
        exercise_request.kind.value,
        model,
        prompt.prompt_id,
        prompt.version,
        exercise_request.desired_count if exercise_request.desired_count is not None else "-",
    )

    try:
        envelope = await vendor_client.complete(payload)
    except ProviderRequestError as exc:
        _log_failure(correlation_id, started, exc, status_code=exc.status_code)
        return _error_response(500, str(exc), exc.details)
    except LLMInfrastructureError as exc:
        _log_failure(correlation_id, started, exc)
        return _error_response(500, str(exc))
    except httpx.HTTPError as exc:
        _log_failure(correlation_id, started, exc)
        return _error_response(500, f"Vendor request failed: {str(exc) or type(exc).__name__}")

    LOGGER.info(
        "event=proxy_generate_completed correlation_id=%s kind=%s model=%s latency_ms=%s",
        correlation_id,
        exercise_request.kind.value,
        model,
        _compute_latency_ms(started, time.monotonic()),
    )
    return JSONResponse(status_code=200, content=envelope)


async def _handle_validation_error(_: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    details = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": str(error.get("msg", ""))}
        for error in exc.errors()
    ]
    return _error_response(400, "Invalid request body.", details)


def _error_response(status_code: int, message: str, details: object = None) -> JSONResponse:
    body = ErrorBody(error=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _log_failure(
    correlation_id: str,
    started: float,
    error: Exception,
    *,
    status_code: int | None = None,
) -> None:
    LOGGER.warning(
        "event=proxy_generate_failed correlation_id=%s vendor_status=%s latency_ms=%s "
        "error_type=%s",
        correlation_id,
        status_code if status_code is not None else "-",
        _compute_latency_ms(started, time.monotonic()),
        error.__class__.__name__,
    )


def _compute_latency_ms(started: float, now: float) -> int:
    return max(0, int((now - started) * 1000))
