from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from llm_gateway.domain.completions import (
    CompletionParameters,
    CompletionRequest,
    ConversationTurn,
    ProviderId,
)

MAX_PROMPT_LENGTH = 32000


class ChatParameters(BaseModel):
    temperature: float | None = Field(default=None, ge=0, le=2, examples=[0.7])
    max_tokens: int | None = Field(default=None, ge=1, examples=[1024])
    top_p: float | None = Field(default=None, ge=0, le=1)
    frequency_penalty: float | None = Field(default=None, ge=-2, le=2)
    presence_penalty: float | None = Field(default=None, ge=-2, le=2)
    stop: str | list[str] | None = Field(
        default=None, description="One stop sequence or a list of them."
    )

    def to_domain(self) -> CompletionParameters:
        if self.stop is None:
            stop: tuple[str, ...] = ()
        elif isinstance(self.stop, str):
            stop = (self.stop,)
        else:
            stop = tuple(self.stop)
        return CompletionParameters(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            top_p=self.top_p,
            frequency_penalty=self.frequency_penalty,
            presence_penalty=self.presence_penalty,
            stop_sequences=stop,
        )


class ConversationTurnIn(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str = Field(max_length=MAX_PROMPT_LENGTH)


class ChatIn(BaseModel):
    prompt: str = Field(
        min_length=1,
        max_length=MAX_PROMPT_LENGTH,
        description="The user message to complete. Never logged.",
        examples=["Explain the difference between TCP and UDP."],
    )
    provider: str = Field(
        description="Provider id: openai, anthropic, groq or google.", examples=["openai"]
    )
    model: str | None = Field(
        default=None,
        max_length=255,
        description="Model id. Omit to use the provider's configured default.",
        examples=["gpt-4o-mini"],
    )
    parameters: ChatParameters = Field(default_factory=ChatParameters)
    conversation_history: list[ConversationTurnIn] = Field(default_factory=list, max_length=200)

    def to_completion_request(self, provider_id: ProviderId) -> CompletionRequest:
        return CompletionRequest(
            prompt=self.prompt,
            provider_id=provider_id,
            model_id=(self.model or "").strip(),
            parameters=self.parameters.to_domain(),
            conversation_history=tuple(
                ConversationTurn(role=t.role, content=t.content) for t in self.conversation_history
            ),
        )


class ChatResponseOut(BaseModel):
    content: str
    usage: dict[str, int | None] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    moderated: bool = False


class ResponseModerationOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_safe: bool = Field(alias="isSafe")
    categories: list[str]


class ChatOut(BaseModel):
    success: bool = True
    provider: str
    model: str
    response: ChatResponseOut
    # Present only when the completion was substituted.
    moderation: ResponseModerationOut | None = None
    duration: int = Field(description="Gateway processing time in milliseconds.")
    timestamp: str


class ModelInfoOut(BaseModel):
    id: str
    name: str
    description: str


class ProviderStatusOut(BaseModel):
    available: bool
    models: list[ModelInfoOut]


class ProvidersOut(BaseModel):
    providers: dict[str, ProviderStatusOut]
    timestamp: str


class ProviderModelsOut(BaseModel):
    provider: str
    models: list[ModelInfoOut]
    available: bool
    timestamp: str
