from __future__ import annotations

from llm_gateway.moderation.types import ModerationCategory, ModerationDirection, ModerationVerdict

GENERIC_POLICY_MESSAGE = (
    "I cannot respond to this request as it may violate content policies. Please ask something else."
)

SAFE_RESPONSES: dict[ModerationCategory, str] = {
    ModerationCategory.PROMPT_INJECTION: (
        "I cannot respond to prompt injection attempts. Please ensure your request is appropriate "
        "and does not attempt to override my operating instructions."
    ),
    ModerationCategory.JAILBREAK: (
        "I cannot respond to jailbreak attempts. I am designed to be helpful, harmless, and honest "
        "within my ethical guidelines."
    ),
    ModerationCategory.HARMFUL_CONTENT: (
        "I cannot provide information on potentially harmful activities. Please ask something that "
        "doesn't involve illegal or harmful actions."
    ),
    ModerationCategory.HARMFUL_INSTRUCTIONS: (
        "I cannot provide harmful instructions or guidance on potentially dangerous activities. "
        "Please ask something else."
    ),
    ModerationCategory.ILLEGAL_ACTIVITIES: (
        "I cannot provide information on illegal activities. I'm designed to be helpful while "
        "following legal and ethical guidelines."
    ),
    ModerationCategory.VIOLENCE: (
        "I cannot provide information that promotes or facilitates violence. Please ask something else."
    ),
    ModerationCategory.SELF_HARM: (
        "I cannot provide information that might encourage self-harm. If you're feeling distressed, "
        "please reach out to a mental health professional or a crisis helpline."
    ),
}

_INPUT_CATEGORIES = (
    ModerationCategory.PROMPT_INJECTION,
    ModerationCategory.JAILBREAK,
    ModerationCategory.HARMFUL_CONTENT,
)

# Highest first. Anything outside this list falls through to the generic message.
RESPONSE_PRECEDENCE = (
    ModerationCategory.HARMFUL_INSTRUCTIONS,
    ModerationCategory.ILLEGAL_ACTIVITIES,
    ModerationCategory.VIOLENCE,
    ModerationCategory.SELF_HARM,
)


class SafeResponseResolver:
    """Map a rejected verdict to the fixed user-facing substitute text. Pure and total."""

    def resolve(self, verdict: ModerationVerdict, direction: ModerationDirection) -> str:
        if direction is ModerationDirection.INPUT:
            if verdict.category in _INPUT_CATEGORIES:
                return SAFE_RESPONSES[verdict.category]
            return GENERIC_POLICY_MESSAGE

        flagged = set(verdict.categories) or {verdict.category}
        for category in RESPONSE_PRECEDENCE:
            if category in flagged:
                return SAFE_RESPONSES[category]
        return GENERIC_POLICY_MESSAGE

