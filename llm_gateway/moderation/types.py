from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ModerationCategory(str, Enum):
    NONE = "none"
    # input
    PROMPT_INJECTION = "prompt_injection"
    JAILBREAK = "jailbreak"
    HARMFUL_CONTENT = "harmful_content"
    # response
    HARMFUL_INSTRUCTIONS = "harmful_instructions"
    ILLEGAL_ACTIVITIES = "illegal_activities"
    VIOLENCE = "violence"
    SELF_HARM = "self_harm"
    UNSPECIFIED = "unspecified"


class ModerationDirection(str, Enum):
    INPUT = "input"
    RESPONSE = "response"


@dataclass(frozen=True)
class ModerationVerdict:
    """
    Output of a moderation classifier.

    `category` is the single headline category; `categories` lists every flagged
    category (one for input verdicts, possibly several for response verdicts).
    A safe verdict never carries a category.
    """

    is_safe: bool
    category: ModerationCategory = ModerationCategory.NONE
    categories: tuple[ModerationCategory, ...] = ()
    reason: str = ""
    raw_evidence: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.is_safe:
            if self.category is not ModerationCategory.NONE or self.categories:
                raise ValueError("A safe verdict cannot carry a moderation category")
            return
        if self.category is ModerationCategory.NONE:
            raise ValueError("An unsafe verdict must carry a moderation category")
        if ModerationCategory.NONE in self.categories:
            raise ValueError("'none' is not a flaggable category")
        if not self.categories:
            object.__setattr__(self, "categories", (self.category,))

    @classmethod
    def safe(cls, *, reason: str = "", raw_evidence: dict[str, Any] | None = None) -> ModerationVerdict:
        return cls(is_safe=True, reason=reason, raw_evidence=dict(raw_evidence or {}))

    @classmethod
    def unsafe(
        cls,
        *,
        categories: tuple[ModerationCategory, ...],
        reason: str,
        raw_evidence: dict[str, Any] | None = None,
    ) -> ModerationVerdict:
        if not categories:
            raise ValueError("An unsafe verdict needs at least one category")
        return cls(
            is_safe=False,
            category=categories[0],
            categories=categories,
            reason=reason,
            raw_evidence=dict(raw_evidence or {}),
        )
