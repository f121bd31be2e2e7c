from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from llm_gateway.core.db import get_session
from llm_gateway.feedback.schemas import FeedbackIn, FeedbackSavedOut, FeedbackSummaryOut
from llm_gateway.feedback.service import count_feedback_by_rating, save_feedback

router = APIRouter(prefix="/api/feedback", tags=["feedback"])
logger = logging.getLogger("llm_gateway.feedback")


def _validation_error_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if any(e.get("type") == "missing" for e in errors):
        return "Missing required fields"
    if any(e.get("loc", ())[:1] == ("feedback",) for e in errors):
        return "Invalid feedback type"
    return "Invalid feedback payload"


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


@router.post(
    "",
    response_model=FeedbackSavedOut,
    summary="Rate an assistant message",
    description=(
        "Stores a positive or negative rating for one assistant message.\n\n"
        "Body: `{timestamp, messageId, feedback, message?}`. Invalid input returns 400 "
        "`{error}`."
    ),
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": FeedbackIn.model_json_schema()}},
        }
    },
    responses={400: {"description": "Missing fields or invalid rating"}},
)
async def create_feedback(
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    # Validated by hand so malformed input maps to the flat 400 `{error}` body
    # instead of FastAPI's 422 detail list.
    try:
        raw = await request.json()
    except ValueError:
        return _bad_request("Request body must be JSON")
    try:
        payload = FeedbackIn.model_validate(raw)
    except ValidationError as exc:
        return _bad_request(_validation_error_message(exc))

    row = await save_feedback(
        session=session,
        message_id=payload.message_id,
        rating=payload.feedback,
        submitted_at=payload.timestamp,
        message=payload.message,
    )
    logger.info("Feedback saved", extra={"rating": row.rating})
    return FeedbackSavedOut()


@router.get(
    "/summary",
    response_model=FeedbackSummaryOut,
    summary="Feedback counts",
    description="Number of stored ratings per value.",
)
async def feedback_summary(session: AsyncSession = Depends(get_session)) -> FeedbackSummaryOut:
    counts = await count_feedback_by_rating(session=session)
    return FeedbackSummaryOut(
        positive=counts["positive"],
        negative=counts["negative"],
        total=counts["positive"] + counts["negative"],
    )
