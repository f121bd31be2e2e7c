from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.openapi.docs import get_redoc_html

from llm_gateway.api.exception_handlers import register_exception_handlers
from llm_gateway.api.schemas import HealthOut
from llm_gateway.completions.gateway import CompletionGateway
from llm_gateway.completions.router import router as models_router
from llm_gateway.completions.stream import StreamRelay
from llm_gateway.core.db import close_db, init_db
from llm_gateway.core.logging import setup_logging
from llm_gateway.core.metrics import PrometheusMetricsMiddleware, metrics_router
from llm_gateway.core.middleware.http_logging import HttpLoggingMiddleware
from llm_gateway.core.providers.registry import ProviderRegistry
from llm_gateway.core.settings import get_settings
from llm_gateway.feedback.router import router as feedback_router
from llm_gateway.moderation.policy import ModerationPolicy

setup_logging()

REDOC_JS_URL = "https://cdn.jsdelivr.net/npm/redoc@2.1.4/bundles/redoc.standalone.js"


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Defer settings/env access until application startup so tests can point
        # DATABASE_URL and provider keys at fixtures before anything is read.
        settings = get_settings()
        init_db(app=app, database_url=str(settings.database_url))

        registry = ProviderRegistry.from_settings(settings)
        policy = ModerationPolicy.from_settings(settings)
        app.state.provider_registry = registry
        app.state.moderation_policy = policy
        app.state.completion_gateway = CompletionGateway(registry=registry, policy=policy)
        app.state.stream_relay = StreamRelay(registry=registry, policy=policy)
        yield
        await close_db(app=app)

    app = FastAPI(
        title="Guarded LLM Gateway",
        description=(
            "Single HTTP front door for several LLM providers with content moderation on "
            "both sides of every call.\n\n"
            "Design principles:\n"
            "- Prompts are classified before any provider is contacted; rejected prompts "
            "never leave the gateway.\n"
            "- Unsafe completions are replaced by a fixed safe message (non-streaming only).\n"
            "- Classifier failures fail open and are counted, never surfaced to callers.\n"
            "- Logging and metrics carry route templates, provider ids and categories only, "
            "never prompt or completion text."
        ),
        lifespan=lifespan,
        docs_url="/swagger",  # Swagger UI ("Try it out")
        redoc_url=None,  # custom ReDoc page at /docs
        openapi_tags=[
            {
                "name": "health",
                "description": "Basic uptime check for load balancers and monitoring.",
            },
            {
                "name": "models",
                "description": (
                    "Provider catalog, moderated chat completions and streaming completions."
                ),
            },
            {
                "name": "feedback",
                "description": "User ratings of assistant messages.",
            },
            {
                "name": "monitoring",
                "description": "Prometheus-compatible metrics endpoint.",
            },
        ],
    )

    app.add_middleware(PrometheusMetricsMiddleware)
    app.add_middleware(HttpLoggingMiddleware)

    register_exception_handlers(app)

    @app.get("/docs", include_in_schema=False)
    async def redoc_docs():
        return get_redoc_html(
            openapi_url=app.openapi_url or "/openapi.json",
            title=f"{app.title} - ReDoc",
            redoc_js_url=REDOC_JS_URL,
        )

    @app.get(
        "/health",
        response_model=HealthOut,
        tags=["health"],
        summary="Health check",
        description=(
            "Lightweight endpoint to verify the gateway process is running.\n\n"
            "Provider availability reflects configured credentials only; no upstream call "
            "is made."
        ),
    )
    async def health(request: Request) -> HealthOut:
        registry: ProviderRegistry = request.app.state.provider_registry
        return HealthOut(
            status="ok",
            guardrails_enabled=request.app.state.moderation_policy.enabled,
            available_providers=[p for p in registry.supported if registry.is_available(p)],
        )

    app.include_router(metrics_router)
    app.include_router(models_router)
    app.include_router(feedback_router)
    return app


app = create_app()
