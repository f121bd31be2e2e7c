"""Streaming completion relay.

Input moderation runs once before the upstream stream is opened. Fragments are
relayed as they arrive; response moderation is not applied to streamed text.

Terminal markers: a normal end yields exactly one `done`; an input rejection
yields one `error` followed by `done`; an upstream failure yields one `error` and
the stream ends without `done`.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass

from llm_gateway.core.metrics import upstream_request_duration_seconds, upstream_requests_total
from llm_gateway.core.providers.registry import ProviderRegistry
from llm_gateway.domain.completions import CompletionRequest, StreamChunk, StreamChunkKind
from llm_gateway.domain.exceptions import UpstreamError
from llm_gateway.moderation.policy import ModerationPolicy
from llm_gateway.moderation.types import ModerationDirection, ModerationVerdict

logger = logging.getLogger("llm_gateway.completions")

CONTENT_POLICY_VIOLATION = "Content Policy Violation"
STREAM_ERROR = "Stream error"
SSE_DONE = "data: [DONE]\n\n"


@dataclass(frozen=True)
class OpenedStream:
    verdict: ModerationVerdict
    chunks: AsyncIterator[StreamChunk]

    @property
    def rejected(self) -> bool:
        return not self.verdict.is_safe


class StreamRelay:
    def __init__(self, *, registry: ProviderRegistry, policy: ModerationPolicy):
        self._registry = registry
        self._policy = policy

    async def open(self, request: CompletionRequest) -> OpenedStream:
        """
        Moderate the prompt and return the chunk iterator for this request.

        Provider resolution happens here, before any byte is streamed, so an
        unknown or unconfigured provider surfaces as a ConfigurationError to the
        caller instead of an in-band error chunk. A rejected prompt does not
        resolve a provider at all.
        """

        verdict = await self._policy.check_async(request.prompt, ModerationDirection.INPUT)
        if not verdict.is_safe:
            logger.warning(
                "Content moderation blocked stream request",
                extra={
                    "provider": request.provider_id.value,
                    "category": verdict.category.value,
                    "prompt_length": len(request.prompt),
                },
            )
            return OpenedStream(verdict=verdict, chunks=self._rejection(verdict))

        self._registry.resolve(request.provider_id)
        return OpenedStream(verdict=verdict, chunks=self._relay(request))

    async def _rejection(self, verdict: ModerationVerdict) -> AsyncIterator[StreamChunk]:
        yield StreamChunk.error(
            self._policy.safe_message(verdict, ModerationDirection.INPUT),
            error=CONTENT_POLICY_VIOLATION,
            moderation={
                "isSafe": False,
                "attackType": verdict.category.value,
                "category": verdict.category.value,
            },
        )
        yield StreamChunk.done()

    async def _relay(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        adapter = self._registry.resolve(request.provider_id)
        provider = request.provider_id.value
        started = time.perf_counter()
        fragments = 0
        try:
            async with aclosing(adapter.stream_completion(request)) as stream:
                async for fragment in stream:
                    if not fragment:
                        continue
                    fragments += 1
                    yield StreamChunk.content(fragment)
        except UpstreamError as exc:
            upstream_requests_total.labels(provider=provider, outcome=exc.kind.value).inc()
            logger.warning(
                "Streaming completion failed",
                extra={
                    "provider": provider,
                    "error_kind": exc.kind.value,
                    "upstream_status": exc.status_code,
                },
            )
            yield StreamChunk.error(exc.message, error=STREAM_ERROR)
            return
        except Exception:
            upstream_requests_total.labels(provider=provider, outcome="internal").inc()
            logger.exception("Streaming completion crashed", extra={"provider": provider})
            yield StreamChunk.error("Internal error while streaming", error=STREAM_ERROR)
            return

        upstream_requests_total.labels(provider=provider, outcome="ok").inc()
        upstream_request_duration_seconds.labels(provider=provider).observe(
            time.perf_counter() - started
        )
        logger.info(
            "Streaming completion finished after %d fragments", fragments, extra={"provider": provider}
        )
        yield StreamChunk.done()


def encode_sse(chunk: StreamChunk) -> str:
    """Render one chunk as a Server-Sent Events `data:` frame."""

    if chunk.kind is StreamChunkKind.DONE:
        return SSE_DONE
    if chunk.kind is StreamChunkKind.CONTENT:
        body = {"type": "content", "content": chunk.text}
    else:
        body = {"type": "error", **chunk.payload, "message": chunk.message}
    return f"data: {json.dumps(body, ensure_ascii=False)}\n\n"


async def encode_stream(chunks: AsyncIterator[StreamChunk]) -> AsyncIterator[str]:
    async with aclosing(chunks) as source:
        async for chunk in source:
            yield encode_sse(chunk)
