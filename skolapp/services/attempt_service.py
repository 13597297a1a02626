# skolapp/services/attempt_service.py
"""
Quiz attempt creation and answer recording.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from skolapp.models import Answer, Attempt, DataMode, Quiz, utcnow
from skolapp.services.retention.data_mode import resolve_data_mode

logger = logging.getLogger(__name__)


def create_attempt(
    db: Session,
    quiz_id: uuid.UUID,
    student_id: Optional[uuid.UUID] = None,
    student_alias: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Attempt:
    """
    Start a quiz attempt.

    The retention mode is resolved against the quiz's organization at this
    instant and persisted on the row; quizzes without an organization are
    always short. Raises ValueError for an unknown quiz.
    """
    now = now or utcnow()

    quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
    if not quiz:
        raise ValueError(f"Quiz '{quiz_id}' not found")

    if quiz.org_id is None:
        # No organization can hold a guardian consent for this quiz
        data_mode = DataMode.SHORT
    else:
        data_mode = resolve_data_mode(db, student_id, org_id=quiz.org_id, now=now)

    attempt = Attempt(
        quiz_id=quiz.id,
        student_id=student_id,
        student_alias=student_alias,
        data_mode=data_mode.value,
        created_at=now,
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)

    logger.debug(f"Created attempt {attempt.id} on quiz {quiz.id} (data_mode={data_mode.value})")
    return attempt


def record_answer(
    db: Session,
    attempt_id: uuid.UUID,
    question_id: str,
    answer: Any,
    is_correct: Optional[bool] = None,
) -> Answer:
    """Store an answer under an attempt. Raises ValueError for an unknown attempt."""
    attempt = db.query(Attempt).filter(Attempt.id == attempt_id).first()
    if not attempt:
        raise ValueError(f"Attempt '{attempt_id}' not found")

    row = Answer(
        attempt_id=attempt.id,
        question_id=question_id,
        answer=answer,
        is_correct=is_correct,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
