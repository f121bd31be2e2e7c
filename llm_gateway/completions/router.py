from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from llm_gateway.completions.catalog import list_models
from llm_gateway.completions.deps import get_completion_gateway, get_stream_relay
from llm_gateway.completions.gateway import CompletionGateway
from llm_gateway.completions.schemas import (
    ChatIn,
    ChatOut,
    ChatResponseOut,
    ModelInfoOut,
    ProviderModelsOut,
    ProvidersOut,
    ProviderStatusOut,
    ResponseModerationOut,
)
from llm_gateway.completions.stream import StreamRelay, encode_stream
from llm_gateway.core.providers.deps import get_provider_registry
from llm_gateway.core.providers.registry import ProviderRegistry, parse_provider_id
from llm_gateway.domain.completions import ProviderId

router = APIRouter(prefix="/api/models", tags=["models"])
logger = logging.getLogger("llm_gateway.completions")


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _models_out(provider_id: ProviderId) -> list[ModelInfoOut]:
    return [ModelInfoOut(**m) for m in list_models(provider_id)]


@router.get(
    "/providers",
    response_model=ProvidersOut,
    summary="List providers",
    description="Every supported provider with its availability and known models.",
)
async def get_providers(
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> ProvidersOut:
    providers = {
        p.value: ProviderStatusOut(available=registry.is_available(p), models=_models_out(p))
        for p in ProviderId
    }
    logger.info(
        "Provider status requested",
        extra={"provider": sorted(k for k, v in providers.items() if v.available)},
    )
    return ProvidersOut(providers=providers, timestamp=_now_iso())


@router.get(
    "/{provider}",
    response_model=ProviderModelsOut,
    summary="List models for a provider",
    responses={404: {"description": "Unknown provider"}, 503: {"description": "Not configured"}},
)
async def get_provider_models(
    provider: str,
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> ProviderModelsOut:
    provider_id = parse_provider_id(provider)
    # Raises ConfigurationError(reason="unconfigured") when there is no credential.
    registry.resolve(provider_id)
    return ProviderModelsOut(
        provider=provider_id.value,
        models=_models_out(provider_id),
        available=True,
        timestamp=_now_iso(),
    )


@router.post(
    "/chat",
    response_model=ChatOut,
    response_model_exclude_none=True,
    summary="Chat completion",
    description=(
        "Moderates the prompt, forwards it to the selected provider and moderates the "
        "completion.\n\n"
        "- A rejected prompt returns 400 and is never sent upstream.\n"
        "- An unsafe completion is replaced by a fixed safe message and flagged "
        "`moderated: true`."
    ),
    responses={
        400: {"description": "Content policy violation or invalid request"},
        404: {"description": "Unknown provider"},
        502: {"description": "Upstream provider error"},
        503: {"description": "Provider not configured"},
    },
)
async def chat(
    payload: ChatIn,
    request: Request,
    gateway: CompletionGateway = Depends(get_completion_gateway),
) -> ChatOut:
    provider_id = parse_provider_id(payload.provider)
    request.state.provider = provider_id.value
    completion_request = payload.to_completion_request(provider_id)

    outcome = await gateway.complete(completion_request)
    result = outcome.result
    request.state.moderated = result.moderated

    logger.info(
        "Chat completion request completed",
        extra={
            "provider": provider_id.value,
            "model": result.model,
            "moderated": result.moderated,
            "duration_ms": round(outcome.duration_ms, 2),
        },
    )

    moderation = None
    if result.moderated:
        verdict = outcome.response_verdict
        request.state.category = verdict.category.value
        moderation = ResponseModerationOut(
            is_safe=False, categories=[c.value for c in verdict.categories]
        )

    return ChatOut(
        provider=provider_id.value,
        model=result.model or completion_request.model_id,
        response=ChatResponseOut(
            content=result.content,
            usage=result.usage.as_dict() if result.usage else None,
            metadata=result.metadata,
            moderated=result.moderated,
        ),
        moderation=moderation,
        duration=int(outcome.duration_ms),
        timestamp=_now_iso(),
    )


@router.post(
    "/stream",
    summary="Streaming chat completion",
    description=(
        "Server-Sent Events stream of `{\"type\": \"content\"}` frames terminated by "
        "`data: [DONE]`. A rejected prompt yields one error frame followed by `[DONE]`; "
        "an upstream failure yields one error frame and the stream ends.\n\n"
        "Streamed completions are not moderated."
    ),
    response_class=StreamingResponse,
    responses={
        200: {"content": {"text/event-stream": {}}},
        404: {"description": "Unknown provider"},
        503: {"description": "Provider not configured"},
    },
)
async def stream(
    payload: ChatIn,
    request: Request,
    relay: StreamRelay = Depends(get_stream_relay),
) -> StreamingResponse:
    provider_id = parse_provider_id(payload.provider)
    request.state.provider = provider_id.value

    opened = await relay.open(payload.to_completion_request(provider_id))
    if opened.rejected:
        request.state.category = opened.verdict.category.value

    return StreamingResponse(
        encode_stream(opened.chunks),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )

