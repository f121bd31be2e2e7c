from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from llm_gateway.feedback.models import MessageFeedback


async def save_feedback(
    *,
    session: AsyncSession,
    message_id: str,
    rating: str,
    submitted_at: datetime,
    message: str | None,
) -> MessageFeedback:
    # Naive timestamps from clients are taken as UTC.
    if submitted_at.tzinfo is None:
        submitted_at = submitted_at.replace(tzinfo=UTC)

    row = MessageFeedback(
        message_id=message_id,
        rating=rating,
        message=message,
        submitted_at=submitted_at,
    )
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return row


async def count_feedback_by_rating(*, session: AsyncSession) -> dict[str, int]:
    stmt = select(MessageFeedback.rating, func.count()).group_by(MessageFeedback.rating)
    rows = (await session.execute(stmt)).all()
    counts = {"positive": 0, "negative": 0}
    for rating, count in rows:
        counts[rating] = int(count)
    return counts
