"""Non-streaming completion pipeline.

Order is fixed: input check, dispatch, response check. A rejected input never
reaches a provider; a failed dispatch is never moderated; an unsafe completion is
replaced by the resolved safe text with the original kept for audit.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace

from llm_gateway.core.metrics import upstream_request_duration_seconds, upstream_requests_total
from llm_gateway.core.providers.registry import ProviderRegistry
from llm_gateway.domain.completions import CompletionRequest, CompletionResult
from llm_gateway.domain.exceptions import ContentPolicyViolation, UpstreamError
from llm_gateway.moderation.policy import ModerationPolicy
from llm_gateway.moderation.types import ModerationDirection, ModerationVerdict

logger = logging.getLogger("llm_gateway.completions")


@dataclass(frozen=True)
class CompletionOutcome:
    result: CompletionResult
    input_verdict: ModerationVerdict
    response_verdict: ModerationVerdict
    duration_ms: float


class CompletionGateway:
    def __init__(self, *, registry: ProviderRegistry, policy: ModerationPolicy):
        self._registry = registry
        self._policy = policy

    async def check_input(self, request: CompletionRequest) -> ModerationVerdict:
        """Run the input classifier; raise ContentPolicyViolation when the prompt is rejected."""

        verdict = await self._policy.check_async(request.prompt, ModerationDirection.INPUT)
        if not verdict.is_safe:
            logger.warning(
                "Content moderation blocked request",
                extra={
                    "provider": request.provider_id.value,
                    "category": verdict.category.value,
                    "prompt_length": len(request.prompt),
                },
            )
            raise ContentPolicyViolation(
                verdict=verdict,
                safe_message=self._policy.safe_message(verdict, ModerationDirection.INPUT),
            )
        return verdict

    async def complete(self, request: CompletionRequest) -> CompletionOutcome:
        started = time.perf_counter()
        input_verdict = await self.check_input(request)

        adapter = self._registry.resolve(request.provider_id)
        provider = request.provider_id.value
        dispatched = time.perf_counter()
        try:
            result = await adapter.generate_completion(request)
        except UpstreamError as exc:
            upstream_requests_total.labels(provider=provider, outcome=exc.kind.value).inc()
            logger.warning(
                "Chat completion request failed",
                extra={
                    "provider": provider,
                    "model": request.model_id or None,
                    "error_kind": exc.kind.value,
                    "upstream_status": exc.status_code,
                },
            )
            raise
        upstream_requests_total.labels(provider=provider, outcome="ok").inc()
        upstream_request_duration_seconds.labels(provider=provider).observe(
            time.perf_counter() - dispatched
        )

        response_verdict = await self._policy.check_async(
            result.content, ModerationDirection.RESPONSE
        )
        if not response_verdict.is_safe:
            logger.warning(
                "Response moderation applied",
                extra={
                    "provider": provider,
                    "categories": [c.value for c in response_verdict.categories],
                    "response_length": len(result.content),
                },
            )
            result = replace(
                result,
                content=self._policy.safe_message(response_verdict, ModerationDirection.RESPONSE),
                original_content=result.content,
                moderated=True,
            )

        return CompletionOutcome(
            result=result,
            input_verdict=input_verdict,
            response_verdict=response_verdict,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
