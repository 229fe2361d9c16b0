"""
Grading engine.

``grade`` is a pure function from an answer set and the quiz's questions to a
``GradeResult``; ``grade_attempt`` loads those from the database, applies the
result to the answer rows and the attempt, and leaves committing to the caller.
Running it again over unchanged answers overwrites the same fields with the
same values.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quizhub.core.errors import AttemptNotCompleted, NotFound
from quizhub.core.events import QUIZ_GRADED, notifier
from quizhub.core.security import Identity
from quizhub.models.attempt import ATTEMPT_COMPLETED, QuestionAnswer, QuizAttempt
from quizhub.models.quiz import QUESTION_MCQ, QUESTION_OPEN, QUESTION_TRUE_FALSE, Question
from quizhub.services.catalog import load_quiz
from quizhub.services.policy import Capability, authorize

logger = logging.getLogger(__name__)

# (is_correct, points_awarded); is_correct None means pending
Verdict = Tuple[Optional[bool], float]
Grader = Callable[[Question, QuestionAnswer], Verdict]


@dataclass
class AnswerGrade:
    answer_id: int
    question_id: int
    is_correct: Optional[bool]
    points_awarded: float


@dataclass
class GradeResult:
    answers: List[AnswerGrade] = field(default_factory=list)
    score: float = 0
    max_score: float = 0


def grade_choice(question, answer) -> Verdict:
    selected = next((o for o in question.options if o.id == answer.option_id), None)
    if selected is not None and selected.is_correct:
        return True, question.points
    return False, 0


def grade_pending(question, answer) -> Verdict:
    return None, 0


GRADERS: Dict[str, Grader] = {
    QUESTION_MCQ: grade_choice,
    QUESTION_TRUE_FALSE: grade_choice,
    QUESTION_OPEN: grade_pending,
}


def register_grader(question_type: str, grader: Grader):
    """Plug in automatic or manual grading for a question type, e.g. open answers."""
    GRADERS[question_type] = grader


def grade(answers: Iterable, questions: Iterable) -> GradeResult:
    questions_by_id = {q.id: q for q in questions}
    result = GradeResult(max_score=sum(q.points or 0 for q in questions_by_id.values()))
    for answer in sorted(answers, key=lambda a: a.question_id):
        question = questions_by_id.get(answer.question_id)
        if question is None:
            is_correct, points = None, 0
        else:
            is_correct, points = GRADERS.get(question.type, grade_pending)(question, answer)
        result.answers.append(AnswerGrade(
            answer_id=answer.id,
            question_id=answer.question_id,
            is_correct=is_correct,
            points_awarded=points,
        ))
        result.score += points
    return result


async def grade_attempt(db: AsyncSession, attempt: QuizAttempt) -> GradeResult:
    """Grade ``attempt`` in the current transaction and mark it completed."""
    questions = (await db.execute(
        select(Question)
        .where(Question.quiz_id == attempt.quiz_id)
        .execution_options(populate_existing=True)
    )).scalars().all()
    # Locking read, so answers committed after this transaction began are graded too.
    answers = (await db.execute(
        select(QuestionAnswer)
        .where(QuestionAnswer.attempt_id == attempt.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )).scalars().all()

    result = grade(answers, questions)
    grades = {g.answer_id: g for g in result.answers}
    for answer in answers:
        answer.is_correct = grades[answer.id].is_correct
        answer.points_awarded = grades[answer.id].points_awarded

    attempt.score = result.score
    attempt.max_score = result.max_score
    attempt.status = ATTEMPT_COMPLETED
    await db.flush()

    logger.debug(f"Graded attempt {attempt.id}: {result.score}/{result.max_score}")
    return result


async def regrade_attempt(db: AsyncSession, attempt_id: int, identity: Identity) -> QuizAttempt:
    """Re-run grading for a completed attempt on behalf of the quiz author or an admin."""
    attempt = await db.get(QuizAttempt, attempt_id, populate_existing=True)
    if attempt is None:
        raise NotFound("Attempt not found", field="attempt_id")
    quiz = await load_quiz(db, attempt.quiz_id)
    authorize(identity, Capability.MANAGE_QUIZ, quiz=quiz)
    if attempt.status != ATTEMPT_COMPLETED:
        raise AttemptNotCompleted()

    try:
        await grade_attempt(db, attempt)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await notifier.notify(QUIZ_GRADED, {"attempt_id": attempt.id, "quiz_id": attempt.quiz_id, "score": attempt.score})
    return attempt
