from types import SimpleNamespace

import pytest

from quizhub.core.errors import AttemptNotOwned, Forbidden
from quizhub.core.events import QUIZ_GRADED, EventNotifier
from quizhub.core.security import ROLE_ADMIN, ROLE_STUDENT, ROLE_TEACHER, Identity
from quizhub.services.policy import Capability, authorize, can

AUTHOR = Identity(user_id=1, role=ROLE_TEACHER)
LEARNER = Identity(user_id=2, role=ROLE_STUDENT)
ADMIN = Identity(user_id=3, role=ROLE_ADMIN)


def _quiz(show_results=True):
    return SimpleNamespace(author_id=1, settings=SimpleNamespace(show_results=show_results))


def test_only_the_owner_acts_on_an_attempt():
    attempt = SimpleNamespace(user_id=2)

    authorize(LEARNER, Capability.ACT_ON_ATTEMPT, attempt=attempt)
    with pytest.raises(AttemptNotOwned):
        authorize(AUTHOR, Capability.ACT_ON_ATTEMPT, attempt=attempt)
    with pytest.raises(AttemptNotOwned):
        authorize(LEARNER, Capability.ACT_ON_ATTEMPT)


def test_author_and_admin_manage_quiz():
    quiz = _quiz()

    assert can(AUTHOR, Capability.MANAGE_QUIZ, quiz=quiz)
    assert can(ADMIN, Capability.MANAGE_QUIZ, quiz=quiz)
    with pytest.raises(Forbidden):
        authorize(LEARNER, Capability.MANAGE_QUIZ, quiz=quiz)


def test_leaderboard_visibility_follows_show_results():
    assert can(LEARNER, Capability.VIEW_LEADERBOARD, quiz=_quiz())
    assert can(LEARNER, Capability.VIEW_LEADERBOARD, quiz=SimpleNamespace(author_id=1, settings=None))
    assert not can(LEARNER, Capability.VIEW_LEADERBOARD, quiz=_quiz(show_results=False))
    assert can(AUTHOR, Capability.VIEW_LEADERBOARD, quiz=_quiz(show_results=False))


async def test_failing_handler_does_not_stop_the_others():
    notifier = EventNotifier()
    seen = []

    async def broken(event, payload):
        raise RuntimeError("boom")

    async def record(event, payload):
        seen.append((event, payload))

    notifier.subscribe(QUIZ_GRADED, broken)
    notifier.subscribe(QUIZ_GRADED, record)
    await notifier.notify(QUIZ_GRADED, {"attempt_id": 7})

    assert seen == [(QUIZ_GRADED, {"attempt_id": 7})]


def test_unknown_event_is_rejected():
    with pytest.raises(ValueError):
        EventNotifier().subscribe("quiz.deleted", lambda e, p: None)
