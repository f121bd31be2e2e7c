from __future__ import annotations

from pydantic import BaseModel, Field


class HealthOut(BaseModel):
    """Health check response."""

    status: str = Field(
        description="Service status indicator. `ok` means the gateway process is up and responding.",
        examples=["ok"],
    )
    guardrails_enabled: bool = Field(
        description="Whether prompts and completions are being moderated.",
        examples=[True],
    )
    available_providers: list[str] = Field(
        description="Providers with a configured credential. No upstream call is made to check them.",
        examples=[["openai", "groq"]],
    )
