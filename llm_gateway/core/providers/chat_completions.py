"""Helpers for the OpenAI Chat Completions wire protocol (used by the OpenAI and Groq adapters)."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx

from llm_gateway.core.providers.base import (
    decode_event,
    iter_sse_events,
    post_json,
    protocol_error,
    stream_post,
)
from llm_gateway.domain.completions import (
    CompletionRequest,
    CompletionResult,
    ProviderId,
    TokenUsage,
)

STREAM_DONE_SENTINEL = "[DONE]"


def chat_completions_url(base_url: str) -> str:
    return f"{base_url.rstrip('/')}/chat/completions"


def bearer_headers(api_key: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


def build_chat_payload(
    request: CompletionRequest, *, model: str, stream: bool
) -> dict[str, Any]:
    params = request.parameters
    payload: dict[str, Any] = {
        "model": model,
        "messages": [{"role": t.role, "content": t.content} for t in request.messages()],
        "stream": stream,
    }
    optional = {
        "temperature": params.temperature,
        "max_tokens": params.max_tokens,
        "top_p": params.top_p,
        "frequency_penalty": params.frequency_penalty,
        "presence_penalty": params.presence_penalty,
    }
    payload.update({k: v for k, v in optional.items() if v is not None})
    if params.stop_sequences:
        payload["stop"] = list(params.stop_sequences)
    return payload


def parse_usage(raw: Any) -> TokenUsage | None:
    if not isinstance(raw, dict):
        return None
    return TokenUsage(
        prompt_tokens=raw.get("prompt_tokens"),
        completion_tokens=raw.get("completion_tokens"),
        total_tokens=raw.get("total_tokens"),
    )


def parse_chat_response(
    data: dict[str, Any], *, provider_id: ProviderId, model: str
) -> CompletionResult:
    try:
        choice = data["choices"][0]
        content = choice["message"].get("content") or ""
    except (KeyError, IndexError, TypeError, AttributeError) as exc:
        raise protocol_error(provider_id, "Completion response has no choices") from exc

    finish_reason = choice.get("finish_reason")
    response_model = data.get("model") or model
    return CompletionResult(
        content=str(content),
        model=response_model,
        finish_reason=finish_reason,
        usage=parse_usage(data.get("usage")),
        metadata={"model": response_model, "finish_reason": finish_reason, "id": data.get("id")},
    )


def delta_text(event: dict[str, Any]) -> str | None:
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    delta = choices[0].get("delta") if isinstance(choices[0], dict) else None
    if not isinstance(delta, dict):
        return None
    text = delta.get("content")
    return text if isinstance(text, str) and text else None


async def create_chat_completion(
    client: httpx.AsyncClient,
    *,
    provider_id: ProviderId,
    base_url: str,
    api_key: str,
    model: str,
    request: CompletionRequest,
) -> tuple[CompletionResult, dict[str, Any]]:
    """Run one non-streaming completion; returns the parsed result and the raw payload."""

    data = await post_json(
        client,
        chat_completions_url(base_url),
        provider_id=provider_id,
        operation=f"{provider_id.value} completion",
        headers=bearer_headers(api_key),
        payload=build_chat_payload(request, model=model, stream=False),
    )
    return parse_chat_response(data, provider_id=provider_id, model=model), data


async def stream_chat_completion(
    client: httpx.AsyncClient,
    *,
    provider_id: ProviderId,
    base_url: str,
    api_key: str,
    model: str,
    request: CompletionRequest,
) -> AsyncIterator[str]:
    async with stream_post(
        client,
        chat_completions_url(base_url),
        provider_id=provider_id,
        operation=f"{provider_id.value} streaming completion",
        headers=bearer_headers(api_key),
        payload=build_chat_payload(request, model=model, stream=True),
    ) as resp:
        async for _, data in iter_sse_events(resp):
            if data == STREAM_DONE_SENTINEL:
                return
            event = decode_event(provider_id, data)
            if "error" in event:
                err = event["error"]
                message = err.get("message") if isinstance(err, dict) else str(err)
                raise protocol_error(provider_id, message or "Upstream stream reported an error")
            text = delta_text(event)
            if text is not None:
                yield text
