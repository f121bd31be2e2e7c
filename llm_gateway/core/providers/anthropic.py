from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx

from llm_gateway.core.providers.base import (
    decode_event,
    iter_sse_events,
    open_client,
    post_json,
    protocol_error,
    require_api_key,
    stream_post,
)
from llm_gateway.core.settings import ProviderConfig
from llm_gateway.domain.completions import (
    CompletionRequest,
    CompletionResult,
    ProviderId,
    TokenUsage,
)
from llm_gateway.domain.exceptions import UpstreamError, UpstreamErrorKind

ANTHROPIC_VERSION = "2023-06-01"
# The Messages API requires max_tokens; used when the caller leaves it unset.
DEFAULT_MAX_TOKENS = 1024


def _headers(api_key: str) -> dict[str, str]:
    return {
        "x-api-key": api_key,
        "anthropic-version": ANTHROPIC_VERSION,
        "Content-Type": "application/json",
    }


def build_messages_payload(request: CompletionRequest, *, model: str, stream: bool) -> dict[str, Any]:
    """
    Translate a neutral request into a Messages API body.

    System turns are not messages in this API; they are joined into the top-level
    `system` field. Frequency/presence penalties have no Anthropic equivalent and
    are dropped.
    """

    params = request.parameters
    system_parts: list[str] = []
    messages: list[dict[str, str]] = []
    for turn in request.messages():
        if turn.role == "system":
            system_parts.append(turn.content)
        else:
            role = "assistant" if turn.role == "assistant" else "user"
            messages.append({"role": role, "content": turn.content})

    payload: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "max_tokens": params.max_tokens or DEFAULT_MAX_TOKENS,
    }
    if system_parts:
        payload["system"] = "\n\n".join(system_parts)
    if params.temperature is not None:
        payload["temperature"] = params.temperature
    if params.top_p is not None:
        payload["top_p"] = params.top_p
    if params.stop_sequences:
        payload["stop_sequences"] = list(params.stop_sequences)
    if stream:
        payload["stream"] = True
    return payload


def parse_messages_response(data: dict[str, Any], *, model: str) -> CompletionResult:
    blocks = data.get("content")
    if not isinstance(blocks, list):
        raise protocol_error(ProviderId.ANTHROPIC, "Messages response has no content blocks")
    text_blocks = [b for b in blocks if isinstance(b, dict) and b.get("type") == "text"]
    if any(not isinstance(b.get("text"), str) for b in text_blocks):
        raise protocol_error(ProviderId.ANTHROPIC, "Messages response has a malformed text block")
    text = "".join(b["text"] for b in text_blocks)

    usage = None
    raw_usage = data.get("usage")
    if isinstance(raw_usage, dict):
        input_tokens = raw_usage.get("input_tokens")
        output_tokens = raw_usage.get("output_tokens")
        total = (
            input_tokens + output_tokens
            if isinstance(input_tokens, int) and isinstance(output_tokens, int)
            else None
        )
        usage = TokenUsage(
            prompt_tokens=input_tokens, completion_tokens=output_tokens, total_tokens=total
        )

    stop_reason = data.get("stop_reason")
    response_model = data.get("model") or model
    return CompletionResult(
        content=text,
        model=response_model,
        finish_reason=stop_reason,
        usage=usage,
        metadata={"model": response_model, "stop_reason": stop_reason, "id": data.get("id")},
    )


class AnthropicAdapter:
    """Anthropic Messages API adapter (`x-api-key` auth, SSE streaming)."""

    provider_id = ProviderId.ANTHROPIC

    def __init__(
        self,
        *,
        config: ProviderConfig,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = require_api_key(provider_id=self.provider_id, config=config)
        self._config = config
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def _model(self, request: CompletionRequest) -> str:
        return request.model_id or self._config.model

    def _url(self) -> str:
        return f"{self._config.base_url.rstrip('/')}/v1/messages"

    async def generate_completion(self, request: CompletionRequest) -> CompletionResult:
        model = self._model(request)
        async with open_client(
            timeout_seconds=self._timeout_seconds, transport=self._transport
        ) as client:
            data = await post_json(
                client,
                self._url(),
                provider_id=self.provider_id,
                operation="anthropic completion",
                headers=_headers(self._api_key),
                payload=build_messages_payload(request, model=model, stream=False),
            )
        return parse_messages_response(data, model=model)

    async def stream_completion(self, request: CompletionRequest) -> AsyncIterator[str]:
        async with open_client(
            timeout_seconds=self._timeout_seconds, transport=self._transport
        ) as client:
            async with stream_post(
                client,
                self._url(),
                provider_id=self.provider_id,
                operation="anthropic streaming completion",
                headers=_headers(self._api_key),
                payload=build_messages_payload(request, model=self._model(request), stream=True),
            ) as resp:
                async for event_name, data in iter_sse_events(resp):
                    event = decode_event(self.provider_id, data)
                    kind = event.get("type") or event_name
                    if kind == "message_stop":
                        return
                    if kind == "error":
                        err = event.get("error")
                        message = err.get("message") if isinstance(err, dict) else err
                        raise UpstreamError(
                            message
                            if isinstance(message, str) and message
                            else "Anthropic stream reported an error",
                            provider_id=self.provider_id.value,
                            kind=UpstreamErrorKind.UPSTREAM_REJECTED,
                        )
                    if kind == "content_block_delta":
                        delta = event.get("delta")
                        if not isinstance(delta, dict):
                            raise protocol_error(
                                self.provider_id, "content_block_delta event has no delta object"
                            )
                        text = delta.get("text")
                        if isinstance(text, str) and text:
                            yield text
