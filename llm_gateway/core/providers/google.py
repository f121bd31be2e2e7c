from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx

from llm_gateway.core.providers.base import (
    open_client,
    post_json,
    protocol_error,
    require_api_key,
)
from llm_gateway.core.settings import ProviderConfig
from llm_gateway.domain.completions import (
    CompletionRequest,
    CompletionResult,
    ProviderId,
    TokenUsage,
)


def build_generate_content_payload(request: CompletionRequest) -> dict[str, Any]:
    # Frequency/presence penalties are not sent; not every Gemini model accepts them.
    params = request.parameters
    contents: list[dict[str, Any]] = []
    system_parts: list[dict[str, str]] = []
    for turn in request.messages():
        if turn.role == "system":
            system_parts.append({"text": turn.content})
            continue
        role = "model" if turn.role == "assistant" else "user"
        contents.append({"role": role, "parts": [{"text": turn.content}]})

    generation_config = {
        "temperature": params.temperature,
        "maxOutputTokens": params.max_tokens,
        "topP": params.top_p,
        "stopSequences": list(params.stop_sequences) or None,
    }

    payload: dict[str, Any] = {"contents": contents}
    config = {k: v for k, v in generation_config.items() if v is not None}
    if config:
        payload["generationConfig"] = config
    if system_parts:
        payload["systemInstruction"] = {"parts": system_parts}
    return payload


def parse_generate_content_response(data: dict[str, Any], *, model: str) -> CompletionResult:
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        feedback = data.get("promptFeedback")
        block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        detail = f" (blocked: {block_reason})" if block_reason else ""
        raise protocol_error(ProviderId.GOOGLE, f"No response generated{detail}")

    try:
        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(
            p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)
        )
        finish_reason = candidate.get("finishReason")
    except (KeyError, IndexError, TypeError, AttributeError) as exc:
        raise protocol_error(ProviderId.GOOGLE, "Malformed generateContent candidate") from exc

    usage = None
    meta = data.get("usageMetadata")
    if isinstance(meta, dict):
        usage = TokenUsage(
            prompt_tokens=meta.get("promptTokenCount"),
            completion_tokens=meta.get("candidatesTokenCount"),
            total_tokens=meta.get("totalTokenCount"),
        )

    response_model = data.get("modelVersion") or model
    return CompletionResult(
        content=text,
        model=response_model,
        finish_reason=finish_reason,
        usage=usage,
        metadata={"model": response_model, "finish_reason": finish_reason},
    )


class GoogleAIAdapter:
    """
    Google Generative Language (Gemini) adapter.

    Only the non-streaming `generateContent` call is used: `stream_completion`
    performs one round trip and yields the whole content as a single fragment.
    """

    provider_id = ProviderId.GOOGLE

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

    async def generate_completion(self, request: CompletionRequest) -> CompletionResult:
        model = self._model(request)
        url = f"{self._config.base_url.rstrip('/')}/v1beta/models/{model}:generateContent"
        async with open_client(
            timeout_seconds=self._timeout_seconds, transport=self._transport
        ) as client:
            data = await post_json(
                client,
                url,
                provider_id=self.provider_id,
                operation="google completion",
                # Header auth keeps the key out of URLs (and therefore out of access logs).
                headers={"x-goog-api-key": self._api_key, "Content-Type": "application/json"},
                payload=build_generate_content_payload(request),
            )
        return parse_generate_content_response(data, model=model)

    async def stream_completion(self, request: CompletionRequest) -> AsyncIterator[str]:
        result = await self.generate_completion(request)
        if result.content:
            yield result.content
