# skolapp/routers/attempts.py
"""
Quiz attempt endpoints.

POST /v1/attempts                       - Start an attempt (retention mode resolved here)
POST /v1/attempts/{attempt_id}/answers  - Record an answer (rate limited)
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from skolapp.database import get_db
from skolapp.schemas.consents import AnswerRequest, AnswerResponse, AttemptCreateRequest, AttemptResponse
from skolapp.services.attempt_service import create_attempt, record_answer
from skolapp.services.rate_limit import RateLimiter, get_answer_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/attempts", tags=["attempts"])


def _client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


@router.post("", response_model=AttemptResponse)
def start_attempt(
    body: AttemptCreateRequest,
    db: Session = Depends(get_db),
) -> AttemptResponse:
    """
    Start a quiz attempt.

    Guests and students without valid guardian consent get `short`
    retention; the mode never changes after this call.
    """
    try:
        attempt = create_attempt(db, body.quiz_id, student_id=body.student_id, student_alias=body.student_alias)
    except ValueError:
        raise HTTPException(status_code=404, detail="Quizet kunde inte hittas")

    return AttemptResponse(
        id=str(attempt.id),
        quiz_id=str(attempt.quiz_id),
        student_id=str(attempt.student_id) if attempt.student_id else None,
        data_mode=attempt.data_mode,
        created_at=attempt.created_at,
    )


@router.post("/{attempt_id}/answers", response_model=AnswerResponse)
def submit_answer(
    attempt_id: uuid.UUID,
    body: AnswerRequest,
    request: Request,
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_answer_rate_limiter),
) -> AnswerResponse:
    """
    Record an answer for the attempt.

    Limited per user (or per IP for guests) to keep a misbehaving client
    from flooding the answer table.
    """
    identifier = f"user:{body.user_id}" if body.user_id else f"ip:{_client_ip(request)}"
    if not limiter.hit(identifier):
        raise HTTPException(status_code=429, detail="Du svarar för snabbt. Vänta ett ögonblick.")

    try:
        answer = record_answer(db, attempt_id, body.question_id, body.answer, is_correct=body.is_correct)
    except ValueError:
        raise HTTPException(status_code=404, detail="Försöket kunde inte hittas")

    return AnswerResponse(id=str(answer.id), submitted_at=answer.submitted_at)
