from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from starlette.concurrency import run_in_threadpool

from llm_gateway.core.metrics import moderation_verdicts_total
from llm_gateway.core.settings import Settings
from llm_gateway.moderation.classifier import (
    KeywordInputClassifier,
    KeywordResponseClassifier,
    ModerationClassifier,
    fail_open_verdict,
)
from llm_gateway.moderation.guard_model import (
    GuardModelClient,
    PromptGuardClassifier,
    ResponseGuardClassifier,
)
from llm_gateway.moderation.resolver import SafeResponseResolver
from llm_gateway.moderation.types import ModerationDirection, ModerationVerdict

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger("llm_gateway.moderation")

GUARDRAILS_DISABLED_REASON = "Guardrails disabled"


class ModerationPolicy:
    """
    Applies the configured classifiers for each direction.

    With `enabled=False` every verdict is safe and no classifier runs; callers keep
    the same control flow either way.
    """

    def __init__(
        self,
        *,
        input_classifier: ModerationClassifier,
        response_classifier: ModerationClassifier,
        resolver: SafeResponseResolver,
        enabled: bool = True,
    ):
        self._classifiers = {
            ModerationDirection.INPUT: input_classifier,
            ModerationDirection.RESPONSE: response_classifier,
        }
        self._resolver = resolver
        self.enabled = enabled

    @classmethod
    def default(cls, *, enabled: bool = True) -> ModerationPolicy:
        return cls(
            input_classifier=KeywordInputClassifier(),
            response_classifier=KeywordResponseClassifier(),
            resolver=SafeResponseResolver(),
            enabled=enabled,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, *, transport: httpx.BaseTransport | None = None
    ) -> ModerationPolicy:
        """Pick the classifiers named by MODERATION_BACKEND; guard models need GUARD_API_KEY."""

        if settings.moderation_backend != "guard_model":
            return cls.default(enabled=settings.guardrails_enabled)
        if not settings.guard_api_key:
            logger.warning(
                "MODERATION_BACKEND=guard_model without GUARD_API_KEY; using keyword classifiers"
            )
            return cls.default(enabled=settings.guardrails_enabled)

        def client(model: str) -> GuardModelClient:
            return GuardModelClient(
                api_key=settings.guard_api_key,
                base_url=settings.guard_base_url,
                model=model,
                timeout_seconds=settings.guard_timeout_seconds,
                transport=transport,
            )

        logger.info(
            "Guard model moderation enabled (prompt=%s, response=%s)",
            settings.guard_prompt_model,
            settings.guard_response_model,
        )
        return cls(
            input_classifier=PromptGuardClassifier(client=client(settings.guard_prompt_model)),
            response_classifier=ResponseGuardClassifier(
                client=client(settings.guard_response_model)
            ),
            resolver=SafeResponseResolver(),
            enabled=settings.guardrails_enabled,
        )

    def is_blocking(self, direction: ModerationDirection) -> bool:
        return bool(getattr(self._classifiers[direction], "blocking", False))

    async def check_async(self, text: str, direction: ModerationDirection) -> ModerationVerdict:
        """`check` for async callers; classifiers that do blocking I/O run in the threadpool."""

        if self.enabled and self.is_blocking(direction):
            return await run_in_threadpool(self.check, text, direction)
        return self.check(text, direction)

    def check(self, text: str, direction: ModerationDirection) -> ModerationVerdict:
        if not self.enabled:
            return ModerationVerdict.safe(reason=GUARDRAILS_DISABLED_REASON)

        classifier = self._classifiers[direction]
        try:
            verdict = classifier.classify(text)
        except Exception as exc:  # noqa: BLE001 - third-party classifiers may raise; fail open
            verdict = fail_open_verdict(
                direction=direction,
                classifier=getattr(classifier, "name", type(classifier).__name__),
                exc=exc,
            )

        for category in verdict.categories or (verdict.category,):
            moderation_verdicts_total.labels(direction=direction.value, category=category.value).inc()

        length_field = (
            "prompt_length" if direction is ModerationDirection.INPUT else "response_length"
        )
        logger.info(
            "%s moderation result: %s",
            direction.value.capitalize(),
            "SAFE" if verdict.is_safe else "UNSAFE",
            extra={
                "direction": direction.value,
                "category": verdict.category.value,
                "categories": [c.value for c in verdict.categories],
                length_field: len(text) if isinstance(text, str) else None,
            },
        )
        return verdict

    def safe_message(self, verdict: ModerationVerdict, direction: ModerationDirection) -> str:
        return self._resolver.resolve(verdict, direction)
