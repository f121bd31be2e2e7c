"""Test doubles for the completion pipeline."""

from __future__ import annotations

from collections.abc import AsyncIterator

from llm_gateway.core.providers.registry import ProviderRegistry
from llm_gateway.domain.completions import (
    CompletionRequest,
    CompletionResult,
    ProviderId,
    TokenUsage,
)
from llm_gateway.domain.exceptions import UpstreamError


class FakeAdapter:
    """Adapter double that records every invocation and never touches the network."""

    def __init__(
        self,
        *,
        provider_id: ProviderId = ProviderId.OPENAI,
        content: str = "The first neural networks date back to the 1950s.",
        fragments: tuple[str, ...] = ("The first ", "neural networks ", "date back."),
        error: UpstreamError | None = None,
        fail_after: int | None = None,
    ):
        self.provider_id = provider_id
        self.content = content
        self.fragments = fragments
        self.error = error
        # When set, the stream raises `error` after this many fragments.
        self.fail_after = fail_after
        self.generate_calls: list[CompletionRequest] = []
        self.stream_calls: list[CompletionRequest] = []
        self.stream_closed = False

    @property
    def calls(self) -> int:
        return len(self.generate_calls) + len(self.stream_calls)

    async def generate_completion(self, request: CompletionRequest) -> CompletionResult:
        self.generate_calls.append(request)
        if self.error is not None:
            raise self.error
        return CompletionResult(
            content=self.content,
            model=request.model_id or "fake-model",
            finish_reason="stop",
            usage=TokenUsage(prompt_tokens=5, completion_tokens=7, total_tokens=12),
            metadata={"model": request.model_id or "fake-model"},
        )

    async def stream_completion(self, request: CompletionRequest) -> AsyncIterator[str]:
        self.stream_calls.append(request)
        failing = self.error is not None and self.fail_after is not None
        try:
            for i, fragment in enumerate(self.fragments):
                if failing and i == self.fail_after:
                    raise self.error
                yield fragment
            if failing and self.fail_after >= len(self.fragments):
                raise self.error
        finally:
            self.stream_closed = True


def make_registry(*adapters: FakeAdapter) -> ProviderRegistry:
    return ProviderRegistry(adapters={a.provider_id: a for a in adapters})


def make_request(prompt: str, provider_id: ProviderId = ProviderId.OPENAI) -> CompletionRequest:
    return CompletionRequest(prompt=prompt, provider_id=provider_id)
