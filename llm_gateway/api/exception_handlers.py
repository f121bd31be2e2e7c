from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from llm_gateway.domain.completions import SUPPORTED_PROVIDERS
from llm_gateway.domain.exceptions import (
    ConfigurationError,
    ContentPolicyViolation,
    InvalidCompletionRequest,
    UpstreamError,
)

logger = logging.getLogger("llm_gateway.errors")


def _log_handled(request: Request, *, status_code: int, message: str, **extra: object) -> None:
    # Metadata only: prompts, completions and provider credentials never reach this log.
    logger.info(
        message,
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "http_method": request.method,
            "request_path": request.url.path,  # no query string
            "status_code": status_code,
            **extra,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register application exception handlers."""

    @app.exception_handler(ContentPolicyViolation)
    async def handle_content_policy_violation(
        request: Request,
        exc: ContentPolicyViolation,
    ) -> JSONResponse:
        category = exc.verdict.category.value
        request.state.category = category
        _log_handled(request, status_code=400, message="Content policy violation", category=category)
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Content Policy Violation",
                "message": exc.safe_message,
                "moderation": {"isSafe": False, "attackType": category, "category": category},
            },
        )

    @app.exception_handler(ConfigurationError)
    async def handle_configuration_error(
        request: Request,
        exc: ConfigurationError,
    ) -> JSONResponse:
        if exc.reason == "unknown":
            _log_handled(request, status_code=404, message="Unknown provider requested")
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Provider Not Found",
                    "message": f"Provider '{exc.provider_id}' is not supported",
                    "supportedProviders": list(SUPPORTED_PROVIDERS),
                },
            )

        _log_handled(
            request, status_code=503, message="Provider unavailable", provider=exc.provider_id
        )
        return JSONResponse(
            status_code=503,
            content={
                "error": "Provider Unavailable",
                "message": exc.message,
                "provider": exc.provider_id,
            },
        )

    @app.exception_handler(UpstreamError)
    async def handle_upstream_error(
        request: Request,
        exc: UpstreamError,
    ) -> JSONResponse:
        _log_handled(
            request,
            status_code=502,
            message="Upstream provider error",
            provider=exc.provider_id,
            error_kind=exc.kind.value,
            upstream_status=exc.status_code,
        )
        return JSONResponse(
            status_code=502,
            content={
                "success": False,
                "error": "Upstream Error",
                "message": exc.message,
                "provider": exc.provider_id,
                "kind": exc.kind.value,
            },
        )

    @app.exception_handler(InvalidCompletionRequest)
    async def handle_invalid_completion_request(
        request: Request,
        exc: InvalidCompletionRequest,
    ) -> JSONResponse:
        _log_handled(request, status_code=400, message="Invalid completion request")
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid Request", "message": exc.message},
        )
