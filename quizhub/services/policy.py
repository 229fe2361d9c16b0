"""
Capability checks shared by every attempt operation.

Role and ownership rules live here so each service asks one question,
``authorize(identity, capability, ...)``, instead of re-deriving who may do what.
Eligibility rules (time windows, access codes, group admission) are not
capabilities; they belong to the attempt lifecycle.
"""
from enum import Enum
from typing import Optional

from quizhub.core.errors import AttemptNotOwned, Forbidden
from quizhub.core.security import Identity, ROLE_ADMIN
from quizhub.models.attempt import QuizAttempt
from quizhub.models.quiz import Quiz


class Capability(str, Enum):
    TAKE_QUIZ = "take_quiz"
    ACT_ON_ATTEMPT = "act_on_attempt"
    MANAGE_QUIZ = "manage_quiz"
    VIEW_LEADERBOARD = "view_leaderboard"


def is_quiz_manager(identity: Identity, quiz: Quiz) -> bool:
    return identity.role == ROLE_ADMIN or identity.user_id == quiz.author_id


def can(identity: Identity, capability: Capability, quiz: Optional[Quiz] = None,
        attempt: Optional[QuizAttempt] = None) -> bool:
    if capability is Capability.TAKE_QUIZ:
        return True
    if capability is Capability.ACT_ON_ATTEMPT:
        return attempt is not None and attempt.user_id == identity.user_id
    if capability is Capability.MANAGE_QUIZ:
        return quiz is not None and is_quiz_manager(identity, quiz)
    if capability is Capability.VIEW_LEADERBOARD:
        if quiz is None:
            return False
        if quiz.settings is None or quiz.settings.show_results:
            return True
        return is_quiz_manager(identity, quiz)
    return False


def authorize(identity: Identity, capability: Capability, quiz: Optional[Quiz] = None,
              attempt: Optional[QuizAttempt] = None) -> None:
    """Raise ``Forbidden`` unless ``identity`` holds ``capability``."""
    if can(identity, capability, quiz=quiz, attempt=attempt):
        return
    if capability is Capability.ACT_ON_ATTEMPT:
        raise AttemptNotOwned()
    if capability is Capability.VIEW_LEADERBOARD:
        raise Forbidden("Leaderboard hidden")
    raise Forbidden()
