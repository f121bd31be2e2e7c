"""Provider-neutral completion types shared by adapters, the gateway and the API layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from llm_gateway.domain.exceptions import InvalidCompletionRequest


class ProviderId(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GROQ = "groq"
    GOOGLE = "google"


SUPPORTED_PROVIDERS: tuple[str, ...] = tuple(p.value for p in ProviderId)


@dataclass(frozen=True)
class CompletionParameters:
    """Sampling parameters. `None` means "let the provider apply its default"."""

    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    stop_sequences: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConversationTurn:
    role: str  # "user" | "assistant" | "system"
    content: str


@dataclass(frozen=True)
class CompletionRequest:
    prompt: str
    provider_id: ProviderId
    # Empty means "use the adapter's configured default model".
    model_id: str = ""
    parameters: CompletionParameters = field(default_factory=CompletionParameters)
    conversation_history: tuple[ConversationTurn, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.prompt, str) or not self.prompt.strip():
            raise InvalidCompletionRequest("prompt must be non-empty text")
        if not isinstance(self.provider_id, ProviderId):
            raise InvalidCompletionRequest(f"unsupported provider: {self.provider_id!r}")

    def messages(self) -> list[ConversationTurn]:
        """History followed by the current prompt as the final user turn."""

        return [*self.conversation_history, ConversationTurn(role="user", content=self.prompt)]


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    def as_dict(self) -> dict[str, int | None]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class CompletionResult:
    content: str
    model: str
    finish_reason: str | None = None
    usage: TokenUsage | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    moderated: bool = False
    # Only set when `content` was substituted by the moderation pipeline (kept for audit).
    original_content: str | None = None


class StreamChunkKind(str, Enum):
    CONTENT = "content"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class StreamChunk:
    kind: StreamChunkKind
    text: str = ""
    message: str = ""
    # Extra structured detail for error markers (e.g. moderation verdict).
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def content(cls, text: str) -> StreamChunk:
        return cls(kind=StreamChunkKind.CONTENT, text=text)

    @classmethod
    def done(cls) -> StreamChunk:
        return cls(kind=StreamChunkKind.DONE)

    @classmethod
    def error(cls, message: str, **payload: Any) -> StreamChunk:
        return cls(kind=StreamChunkKind.ERROR, message=message, payload=payload)

    @property
    def is_terminal(self) -> bool:
        return self.kind is not StreamChunkKind.CONTENT
