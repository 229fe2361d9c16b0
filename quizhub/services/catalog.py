"""Read-only lookups against the quiz catalog."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quizhub.core.errors import NotFound
from quizhub.models.quiz import Question, Quiz, quiz_groups
from quizhub.models.user import group_members


async def load_quiz(db: AsyncSession, quiz_id: int) -> Quiz:
    """Load a quiz with its settings and questions; soft-deleted quizzes count as absent."""
    result = await db.execute(
        select(Quiz)
        .where(Quiz.id == quiz_id, Quiz.deleted_at.is_(None))
        .execution_options(populate_existing=True)
    )
    quiz = result.scalar_one_or_none()
    if not quiz:
        raise NotFound("Quiz not found", field="quiz_id")
    return quiz


async def question_in_quiz(db: AsyncSession, quiz_id: int, question_id: int) -> bool:
    result = await db.execute(
        select(Question.id).where(Question.id == question_id, Question.quiz_id == quiz_id)
    )
    return result.scalar_one_or_none() is not None


async def is_group_member(db: AsyncSession, quiz_id: int, user_id: int) -> bool:
    """True when ``user_id`` belongs to any group linked to the quiz."""
    result = await db.execute(
        select(group_members.c.user_id)
        .join(quiz_groups, quiz_groups.c.group_id == group_members.c.group_id)
        .where(quiz_groups.c.quiz_id == quiz_id, group_members.c.user_id == user_id)
        .limit(1)
    )
    return result.first() is not None
