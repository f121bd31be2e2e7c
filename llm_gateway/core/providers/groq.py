from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import replace

import httpx

from llm_gateway.core.providers.base import open_client, require_api_key
from llm_gateway.core.providers.chat_completions import (
    create_chat_completion,
    stream_chat_completion,
)
from llm_gateway.core.settings import ProviderConfig
from llm_gateway.domain.completions import CompletionRequest, CompletionResult, ProviderId


class GroqAdapter:
    """
    Groq adapter.

    Groq speaks the OpenAI Chat Completions protocol under `/openai/v1`; the wire
    helpers are shared, while Groq's own response extension (`x_groq`, which
    carries the upstream request id) is surfaced in the result metadata.
    """

    provider_id = ProviderId.GROQ

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
        async with open_client(
            timeout_seconds=self._timeout_seconds, transport=self._transport
        ) as client:
            result, raw = await create_chat_completion(
                client,
                provider_id=self.provider_id,
                base_url=self._config.base_url,
                api_key=self._api_key,
                model=self._model(request),
                request=request,
            )

        x_groq = raw.get("x_groq")
        if isinstance(x_groq, dict) and x_groq.get("id"):
            result = replace(result, metadata={**result.metadata, "groq_request_id": x_groq["id"]})
        return result

    async def stream_completion(self, request: CompletionRequest) -> AsyncIterator[str]:
        async with open_client(
            timeout_seconds=self._timeout_seconds, transport=self._transport
        ) as client:
            fragments = stream_chat_completion(
                client,
                provider_id=self.provider_id,
                base_url=self._config.base_url,
                api_key=self._api_key,
                model=self._model(request),
                request=request,
            )
            async with aclosing(fragments):
                async for fragment in fragments:
                    yield fragment
