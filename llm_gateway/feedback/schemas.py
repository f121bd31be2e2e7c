from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

FeedbackRating = Literal["positive", "negative"]

MAX_FEEDBACK_MESSAGE_LENGTH = 20000


class FeedbackIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime = Field(
        description="When the user submitted the rating (ISO 8601 date-time).",
        examples=["2025-01-01T12:34:56Z"],
    )
    message_id: str = Field(
        alias="messageId",
        min_length=1,
        max_length=255,
        description="Client-side id of the rated assistant message.",
        examples=["msg-1735734896000"],
    )
    feedback: FeedbackRating = Field(examples=["positive"])
    message: str | None = Field(
        default=None,
        max_length=MAX_FEEDBACK_MESSAGE_LENGTH,
        description="Text of the rated message, stored for later review.",
    )


class FeedbackSavedOut(BaseModel):
    success: bool = True
    message: str = "Feedback saved successfully"


class FeedbackSummaryOut(BaseModel):
    positive: int = Field(ge=0)
    negative: int = Field(ge=0)
    total: int = Field(ge=0)
