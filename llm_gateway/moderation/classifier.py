"""Moderation classifiers.

Any object with `classify(text) -> ModerationVerdict` is a classifier; the keyword
matchers here are the default implementations and `guard_model.py` holds the
remote variants. Classification is synchronous.

Policy: an indeterminate verdict is a safe verdict (fail-open). A classifier
failure must not deny a legitimate request, so failures are logged, counted and
converted into `is_safe=True` with the cause recorded in `reason`.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from llm_gateway.core.metrics import moderation_failures_total
from llm_gateway.domain.exceptions import ModerationFailure
from llm_gateway.moderation.triggers import (
    INPUT_REASONS,
    INPUT_TRIGGERS,
    RESPONSE_REASON,
    RESPONSE_TRIGGERS,
)
from llm_gateway.moderation.types import ModerationCategory, ModerationDirection, ModerationVerdict

logger = logging.getLogger("llm_gateway.moderation")

TriggerTable = tuple[tuple[ModerationCategory, tuple[str, ...]], ...]


@runtime_checkable
class ModerationClassifier(Protocol):
    def classify(self, text: str) -> ModerationVerdict: ...


def fail_open_verdict(
    *, direction: ModerationDirection, classifier: str, exc: BaseException
) -> ModerationVerdict:
    """Log and count a classifier failure, and return the fail-open (safe) verdict."""

    logger.warning(
        "Moderation classifier failed; treating verdict as safe",
        extra={"direction": direction.value, "error_kind": type(exc).__name__},
        exc_info=exc,
    )
    moderation_failures_total.labels(direction=direction.value).inc()
    return ModerationVerdict.safe(
        reason=f"Moderation failed open: {exc}",
        raw_evidence={"classifier": classifier, "failure": type(exc).__name__},
    )


def _normalize(text: Any) -> str:
    if not isinstance(text, str):
        raise ModerationFailure(f"expected text, got {type(text).__name__}")
    return text.lower()


def _first_match(lowered: str, phrases: tuple[str, ...]) -> str | None:
    for phrase in phrases:
        if phrase in lowered:
            return phrase
    return None


class KeywordInputClassifier:
    """
    Prompt classifier: prompt injection, jailbreak, harmful requests.

    Categories are checked in declaration order and the first match wins, so an
    input verdict always carries exactly one category.
    """

    name = "keyword-input"
    direction = ModerationDirection.INPUT

    def __init__(self, *, triggers: TriggerTable = INPUT_TRIGGERS):
        self._triggers = triggers

    def classify(self, text: str) -> ModerationVerdict:
        try:
            lowered = _normalize(text)
            for category, phrases in self._triggers:
                matched = _first_match(lowered, phrases)
                if matched is not None:
                    return ModerationVerdict.unsafe(
                        categories=(category,),
                        reason=INPUT_REASONS.get(category, "Unsafe input detected"),
                        raw_evidence={"classifier": self.name, "matched": {category.value: matched}},
                    )
            return ModerationVerdict.safe(raw_evidence={"classifier": self.name})
        except Exception as exc:  # noqa: BLE001 - fail-open policy
            return fail_open_verdict(direction=self.direction, classifier=self.name, exc=exc)


class KeywordResponseClassifier:
    """
    Completion classifier: harmful instructions, illegal activity, violence, self-harm.

    Every category is scanned and each match is accumulated once, so audits see the
    full picture; the resolver picks one message by precedence.
    """

    name = "keyword-response"
    direction = ModerationDirection.RESPONSE

    def __init__(self, *, triggers: TriggerTable = RESPONSE_TRIGGERS):
        self._triggers = triggers

    def classify(self, text: str) -> ModerationVerdict:
        try:
            lowered = _normalize(text)
            flagged: list[ModerationCategory] = []
            matched: dict[str, str] = {}
            for category, phrases in self._triggers:
                phrase = _first_match(lowered, phrases)
                if phrase is not None:
                    flagged.append(category)
                    matched[category.value] = phrase
            if not flagged:
                return ModerationVerdict.safe(raw_evidence={"classifier": self.name})
            return ModerationVerdict.unsafe(
                categories=tuple(flagged),
                reason=RESPONSE_REASON,
                raw_evidence={"classifier": self.name, "matched": matched},
            )
        except Exception as exc:  # noqa: BLE001 - fail-open policy
            return fail_open_verdict(direction=self.direction, classifier=self.name, exc=exc)
