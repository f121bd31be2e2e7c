from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class ProviderConfig:
    """Resolved configuration for one provider, as consumed by the provider registry."""

    available: bool
    api_key: str | None
    base_url: str
    model: str


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/gateway.sqlite3",
        validation_alias=AliasChoices("DATABASE_URL", "database_url"),
        description="SQLAlchemy async DB URL used for message feedback.",
    )

    # Moderation pipeline
    guardrails_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("GUARDRAILS_ENABLED", "guardrails_enabled"),
        description="When false, every moderation verdict is forced to safe without classifying.",
    )
    moderation_backend: Literal["keyword", "guard_model"] = Field(
        default="keyword",
        validation_alias=AliasChoices("MODERATION_BACKEND", "moderation_backend"),
        description="keyword: in-process trigger lists. guard_model: hosted Llama Guard models.",
    )
    guard_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GUARD_API_KEY", "guard_api_key"),
    )
    guard_base_url: str = Field(
        default="https://api.openai.com/v1",
        validation_alias=AliasChoices("GUARD_BASE_URL", "guard_base_url"),
        description="OpenAI-compatible endpoint serving the guard models.",
    )
    guard_prompt_model: str = Field(
        default="meta-llama/Llama-Prompt-Guard-2-86M",
        validation_alias=AliasChoices("GUARD_PROMPT_MODEL", "guard_prompt_model"),
    )
    guard_response_model: str = Field(
        default="meta-llama/Llama-Guard-3-8B",
        validation_alias=AliasChoices("GUARD_RESPONSE_MODEL", "guard_response_model"),
    )
    guard_timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        validation_alias=AliasChoices("GUARD_TIMEOUT_SECONDS", "guard_timeout_seconds"),
    )

    upstream_timeout_seconds: float = Field(
        default=60.0,
        ge=1.0,
        validation_alias=AliasChoices("UPSTREAM_TIMEOUT_SECONDS", "upstream_timeout_seconds"),
        description="Per-call timeout applied by every provider adapter (seconds).",
    )

    # OpenAI
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        validation_alias=AliasChoices("OPENAI_BASE_URL", "openai_base_url"),
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("OPENAI_MODEL", "openai_model"),
    )

    # Anthropic
    anthropic_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ANTHROPIC_API_KEY", "anthropic_api_key"),
    )
    anthropic_base_url: str = Field(
        default="https://api.anthropic.com",
        validation_alias=AliasChoices("ANTHROPIC_BASE_URL", "anthropic_base_url"),
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        validation_alias=AliasChoices("ANTHROPIC_MODEL", "anthropic_model"),
    )

    # Groq (OpenAI-compatible wire protocol)
    groq_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GROQ_API_KEY", "groq_api_key"),
    )
    groq_base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        validation_alias=AliasChoices("GROQ_BASE_URL", "groq_base_url"),
    )
    groq_model: str = Field(
        default="llama-3.1-8b-instant",
        validation_alias=AliasChoices("GROQ_MODEL", "groq_model"),
    )

    # Google AI (Gemini)
    google_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_API_KEY", "GEMINI_API_KEY", "google_api_key"),
    )
    google_base_url: str = Field(
        default="https://generativelanguage.googleapis.com",
        validation_alias=AliasChoices("GOOGLE_BASE_URL", "google_base_url"),
    )
    google_model: str = Field(
        default="gemini-2.5-flash",
        validation_alias=AliasChoices("GOOGLE_MODEL", "google_model"),
    )

    def get_provider_config(self, provider_id: str) -> ProviderConfig | None:
        """
        Return the resolved config for `provider_id`, or None if the id is not a known provider.

        Read-only view: callers never mutate settings through this.
        """

        prefix = str(provider_id).strip().lower()
        if prefix not in {"openai", "anthropic", "groq", "google"}:
            return None
        api_key = getattr(self, f"{prefix}_api_key") or None
        return ProviderConfig(
            available=bool(api_key),
            api_key=api_key,
            base_url=getattr(self, f"{prefix}_base_url"),
            model=getattr(self, f"{prefix}_model"),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
