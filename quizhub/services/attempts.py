"""
Attempt lifecycle: start, answer, close.

Each operation runs its checks first and writes last, committing once. The
current time is always passed in by the caller.
"""
from datetime import datetime, timedelta
from typing import List, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from quizhub.core.errors import (
    AttemptNotInProgress,
    InvalidAccessCode,
    NotFound,
    PrivateAccessDenied,
    QuestionNotInQuiz,
    QuizClosed,
    QuizNotAvailable,
    QuizNotYetOpen,
    TimeLimitExceeded,
)
from quizhub.core.events import QUIZ_COMPLETED, QUIZ_GRADED, QUIZ_STARTED, notifier
from quizhub.core.security import Identity
from quizhub.core.utils import shuffled
from quizhub.models.attempt import ATTEMPT_COMPLETED, ATTEMPT_IN_PROGRESS, QuestionAnswer, QuizAttempt
from quizhub.models.quiz import ACCESS_PASSWORD, ACCESS_PRIVATE, QUIZ_PUBLISHED, Question, Quiz, QuizSettings
from quizhub.services import grading
from quizhub.services.catalog import is_group_member, load_quiz, question_in_quiz
from quizhub.services.policy import Capability, authorize

logger = logging.getLogger(__name__)


def check_availability(quiz: Quiz, now: datetime) -> None:
    """Status and time-window rules, in order; the first failure wins."""
    if quiz.status != QUIZ_PUBLISHED:
        raise QuizNotAvailable()
    settings = quiz.settings
    if settings is None:
        return
    if settings.start_at and now < settings.start_at:
        raise QuizNotYetOpen()
    if settings.end_at and now > settings.end_at:
        raise QuizClosed()


async def check_access(db: AsyncSession, quiz: Quiz, identity: Identity, access_code: Optional[str]) -> None:
    settings = quiz.settings
    if settings is None:
        return
    if settings.access_mode == ACCESS_PASSWORD:
        # A password quiz without a stored code admits nobody.
        if settings.access_code is None or access_code != settings.access_code:
            raise InvalidAccessCode(field="access_code")
    elif settings.access_mode == ACCESS_PRIVATE:
        # Admission requires membership in a group linked to the quiz; no groups means nobody.
        if not await is_group_member(db, quiz.id, identity.user_id):
            raise PrivateAccessDenied()


def attempt_deadline(attempt: QuizAttempt, settings: Optional[QuizSettings]) -> Optional[datetime]:
    if settings is None or not settings.time_limit:
        return None
    return attempt.start_time + timedelta(minutes=settings.time_limit)


async def start_attempt(db: AsyncSession, quiz_id: int, identity: Identity,
                        access_code: Optional[str], now: datetime) -> QuizAttempt:
    quiz = await load_quiz(db, quiz_id)
    authorize(identity, Capability.TAKE_QUIZ, quiz=quiz)
    check_availability(quiz, now)
    await check_access(db, quiz, identity, access_code)

    attempt = QuizAttempt(
        quiz_id=quiz.id,
        user_id=identity.user_id,
        start_time=now,
        status=ATTEMPT_IN_PROGRESS,
    )
    try:
        db.add(attempt)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"User {identity.user_id} started attempt {attempt.id} on quiz {quiz.id}")
    await notifier.notify(QUIZ_STARTED, {"attempt_id": attempt.id, "quiz_id": quiz.id, "user_id": identity.user_id})
    return attempt


async def load_attempt(db: AsyncSession, attempt_id: int) -> QuizAttempt:
    result = await db.execute(
        select(QuizAttempt)
        .where(QuizAttempt.id == attempt_id)
        .execution_options(populate_existing=True)
    )
    attempt = result.scalar_one_or_none()
    if not attempt:
        raise NotFound("Attempt not found", field="attempt_id")
    return attempt


def ensure_in_progress(identity: Identity, attempt: QuizAttempt) -> None:
    authorize(identity, Capability.ACT_ON_ATTEMPT, attempt=attempt)
    if attempt.status != ATTEMPT_IN_PROGRESS:
        raise AttemptNotInProgress()


async def lock_in_progress(db: AsyncSession, attempt_id: int) -> None:
    """Lock the attempt row and fail unless it is still in progress."""
    result = await db.execute(
        select(QuizAttempt.status).where(QuizAttempt.id == attempt_id).with_for_update()
    )
    if result.scalar_one_or_none() != ATTEMPT_IN_PROGRESS:
        raise AttemptNotInProgress()


async def list_attempt_questions(db: AsyncSession, attempt_id: int, identity: Identity) -> List[Question]:
    """Questions in the order this attempt presents them."""
    attempt = await load_attempt(db, attempt_id)
    authorize(identity, Capability.ACT_ON_ATTEMPT, attempt=attempt)
    quiz = await load_quiz(db, attempt.quiz_id)
    questions = sorted(quiz.questions, key=lambda q: q.order)
    if quiz.settings is not None and quiz.settings.shuffle_questions:
        return shuffled(questions, seed=attempt.id)
    return questions


def _upsert_answer(dialect: str, values: dict):
    """INSERT ... ON CONFLICT for the (attempt_id, question_id) key, per backend."""
    replaced = ("option_id", "answer_content")
    if dialect == "mysql":
        stmt = mysql_insert(QuestionAnswer).values(**values)
        return stmt.on_duplicate_key_update({k: stmt.inserted[k] for k in replaced})
    insert = pg_insert if dialect == "postgresql" else sqlite_insert
    stmt = insert(QuestionAnswer).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=["attempt_id", "question_id"],
        set_={k: stmt.excluded[k] for k in replaced},
    )


async def submit_answer(db: AsyncSession, attempt_id: int, identity: Identity, question_id: int,
                        option_id: Optional[int], answer_content: Optional[str],
                        now: datetime) -> QuestionAnswer:
    attempt = await load_attempt(db, attempt_id)
    ensure_in_progress(identity, attempt)

    quiz = await load_quiz(db, attempt.quiz_id)
    deadline = attempt_deadline(attempt, quiz.settings)
    if deadline is not None and now > deadline:
        raise TimeLimitExceeded()

    if not await question_in_quiz(db, attempt.quiz_id, question_id):
        raise QuestionNotInQuiz(field="question_id")

    dialect = db.get_bind().dialect.name
    try:
        await lock_in_progress(db, attempt.id)
        await db.execute(_upsert_answer(dialect, {
            "attempt_id": attempt.id,
            "question_id": question_id,
            "option_id": option_id,
            "answer_content": answer_content,
        }))
        # SQLite ignores FOR UPDATE; holding the write lock now, a committed close is visible.
        await lock_in_progress(db, attempt.id)
        result = await db.execute(
            select(QuestionAnswer)
            .where(QuestionAnswer.attempt_id == attempt.id, QuestionAnswer.question_id == question_id)
            .execution_options(populate_existing=True)
        )
        answer = result.scalar_one()
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return answer


async def close_attempt(db: AsyncSession, attempt_id: int, identity: Identity, now: datetime) -> QuizAttempt:
    attempt = await load_attempt(db, attempt_id)
    ensure_in_progress(identity, attempt)

    try:
        # Compare-and-set on status: only one closer can move the attempt out of in_progress.
        result = await db.execute(
            update(QuizAttempt)
            .where(
                QuizAttempt.id == attempt.id,
                QuizAttempt.user_id == identity.user_id,
                QuizAttempt.status == ATTEMPT_IN_PROGRESS,
            )
            .values(end_time=now, status=ATTEMPT_COMPLETED)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise AttemptNotInProgress()
        attempt.end_time = now
        outcome = await grading.grade_attempt(db, attempt)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Attempt {attempt.id} closed with score {outcome.score}/{outcome.max_score}")
    payload = {"attempt_id": attempt.id, "quiz_id": attempt.quiz_id, "user_id": attempt.user_id}
    await notifier.notify(QUIZ_COMPLETED, payload)
    await notifier.notify(QUIZ_GRADED, {**payload, "score": attempt.score, "max_score": attempt.max_score})
    return attempt
