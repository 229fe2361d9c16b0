from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from quizhub.db.session import get_db
from quizhub.core.security import Identity, get_current_identity
from quizhub.core.utils import get_now
from quizhub.schemas.attempt import (
    Answer,
    Attempt,
    QuestionView,
    StartAttemptRequest,
    SubmitAnswerRequest,
)
from quizhub.services import attempts, grading

router = APIRouter()

@router.post("/quizzes/{quiz_id}/start", response_model=Attempt, status_code=201)
async def start_attempt(
    quiz_id: int,
    payload: Optional[StartAttemptRequest] = None,
    identity: Identity = Depends(get_current_identity),
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db)
):
    """Start a new attempt on a published quiz."""
    return await attempts.start_attempt(db, quiz_id, identity, payload.access_code if payload else None, now)

@router.get("/attempts/{attempt_id}/questions", response_model=List[QuestionView])
async def get_attempt_questions(
    attempt_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    return await attempts.list_attempt_questions(db, attempt_id, identity)

@router.post("/attempts/{attempt_id}/submit", response_model=Answer)
async def submit_answer(
    attempt_id: int,
    payload: SubmitAnswerRequest,
    identity: Identity = Depends(get_current_identity),
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db)
):
    """Record (or replace) the answer to one question."""
    return await attempts.submit_answer(
        db, attempt_id, identity,
        question_id=payload.question_id,
        option_id=payload.option_id,
        answer_content=payload.answer_content,
        now=now,
    )

@router.post("/attempts/{attempt_id}/finish", response_model=Attempt)
async def finish_attempt(
    attempt_id: int,
    identity: Identity = Depends(get_current_identity),
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db)
):
    """Close the attempt and grade it."""
    return await attempts.close_attempt(db, attempt_id, identity, now)

@router.post("/attempts/{attempt_id}/regrade", response_model=Attempt)
async def regrade_attempt(
    attempt_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    return await grading.regrade_attempt(db, attempt_id, identity)
