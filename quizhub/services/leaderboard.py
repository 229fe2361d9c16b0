from datetime import datetime
from typing import List, Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quizhub.core.security import Identity
from quizhub.models.attempt import ATTEMPT_COMPLETED, QuizAttempt
from quizhub.models.user import User
from quizhub.services.catalog import load_quiz
from quizhub.services.policy import Capability, authorize

def rank_entries(entries: Sequence[dict]) -> List[dict]:
    """
    Order by score descending, then earlier end time, then attempt id.

    Ranks are positions in that order starting at 1, so equal scores still
    get distinct consecutive ranks.
    """
    ordered = sorted(
        entries,
        key=lambda e: (-(e["score"] or 0), e["completed_at"] or datetime.max, e["attempt_id"]),
    )
    return [{**entry, "rank": index + 1} for index, entry in enumerate(ordered)]

async def get_leaderboard(db: AsyncSession, quiz_id: int, identity: Identity) -> List[dict]:
    quiz = await load_quiz(db, quiz_id)
    authorize(identity, Capability.VIEW_LEADERBOARD, quiz=quiz)

    result = await db.execute(
        select(
            QuizAttempt.id,
            QuizAttempt.user_id,
            User.name,
            QuizAttempt.score,
            QuizAttempt.end_time
        )
        .join(User, User.id == QuizAttempt.user_id)
        .where(QuizAttempt.quiz_id == quiz.id, QuizAttempt.status == ATTEMPT_COMPLETED)
    )
    return rank_entries([{
        "attempt_id": attempt_id,
        "user_id": user_id,
        "user": name,
        "score": score,
        "completed_at": end_time
    } for attempt_id, user_id, name, score, end_time in result.all()])
