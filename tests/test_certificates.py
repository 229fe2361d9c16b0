import asyncio
import re
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from conftest import NOW, identity_for, load_questions, make_quiz, make_user
from quizhub.core.errors import AttemptNotCompleted, AttemptNotOwned, CertificateCodeUnavailable, NotFound
from quizhub.models.certificate import Certificate
from quizhub.services import attempts, certificates

# Two questions worth 2 and 3 points; answering only the first scores 40%.
QUESTIONS = [
    {"points": 2, "options": [("right", True), ("wrong", False)]},
    {"points": 3, "options": [("right", True), ("wrong", False)]},
]


async def finished_attempt(db, author, learner, passing_score=None, answer_both=True):
    settings = {"passing_score": passing_score} if passing_score is not None else None
    quiz = await make_quiz(db, author, settings=settings, questions=QUESTIONS)
    first, second = await load_questions(db, quiz)
    me = identity_for(learner)
    attempt = await attempts.start_attempt(db, quiz.id, me, None, NOW)
    await attempts.submit_answer(db, attempt.id, me, first.id, first.options[0].id, None, NOW)
    if answer_both:
        await attempts.submit_answer(db, attempt.id, me, second.id, second.options[0].id, None, NOW)
    await attempts.close_attempt(db, attempt.id, me, NOW + timedelta(minutes=3))
    return attempt


async def certificate_count(db, attempt):
    return (await db.execute(
        select(func.count(Certificate.id)).where(Certificate.attempt_id == attempt.id)
    )).scalar_one()


async def test_below_passing_score_never_issues(db, author, learner):
    attempt = await finished_attempt(db, author, learner, passing_score=50, answer_both=False)
    assert attempt.score == 2
    assert attempt.percentage == pytest.approx(40.0)

    for _ in range(2):
        certificate, created = await certificates.issue_certificate(db, attempt.id, identity_for(learner), NOW)
        assert certificate is None
        assert created is False
    assert await certificate_count(db, attempt) == 0


async def test_passing_score_is_a_percentage(db, author, learner):
    attempt = await finished_attempt(db, author, learner, passing_score=40, answer_both=False)

    certificate, created = await certificates.issue_certificate(db, attempt.id, identity_for(learner), NOW)
    assert created is True
    assert certificate.score == 2


async def test_first_issue_creates_and_later_calls_return_same(db, author, learner):
    attempt = await finished_attempt(db, author, learner, passing_score=80)
    me = identity_for(learner)

    first, created = await certificates.issue_certificate(db, attempt.id, me, NOW)
    again, created_again = await certificates.issue_certificate(db, attempt.id, me, NOW + timedelta(days=1))

    assert created is True
    assert created_again is False
    assert again.certificate_code == first.certificate_code
    assert again.issued_at == NOW
    assert re.fullmatch(r"CERT-[A-Z0-9]{12}", first.certificate_code)
    assert first.score == 5
    assert first.user_id == learner.id
    assert await certificate_count(db, attempt) == 1


async def test_quiz_without_passing_score_always_qualifies(db, author, learner):
    attempt = await finished_attempt(db, author, learner, answer_both=False)

    certificate, created = await certificates.issue_certificate(db, attempt.id, identity_for(learner), NOW)
    assert created is True


async def test_attempt_in_progress_is_rejected(db, author, learner):
    quiz = await make_quiz(db, author, questions=QUESTIONS)
    attempt = await attempts.start_attempt(db, quiz.id, identity_for(learner), None, NOW)

    with pytest.raises(AttemptNotCompleted):
        await certificates.issue_certificate(db, attempt.id, identity_for(learner), NOW)


async def test_only_the_owner_gets_the_certificate(db, author, learner):
    attempt = await finished_attempt(db, author, learner)
    stranger = await make_user(db, name="Stranger")

    with pytest.raises(AttemptNotOwned):
        await certificates.issue_certificate(db, attempt.id, identity_for(stranger), NOW)


async def test_concurrent_issuance_yields_one_certificate(session_factory, db, author, learner):
    attempt = await finished_attempt(db, author, learner)
    me = identity_for(learner)

    async def issue():
        async with session_factory() as session:
            return await certificates.issue_certificate(session, attempt.id, me, NOW)

    (one, created_one), (two, created_two) = await asyncio.gather(issue(), issue())

    assert one.certificate_code == two.certificate_code
    assert sorted([created_one, created_two]) == [False, True]
    assert await certificate_count(db, attempt) == 1


async def test_code_collision_is_retried(db, author, learner, monkeypatch):
    other_learner = await make_user(db, name="Other")
    taken = await finished_attempt(db, author, other_learner)
    await certificates.issue_certificate(db, taken.id, identity_for(other_learner), NOW)
    taken_code = (await certificates.find_certificate(db, taken.id)).certificate_code

    codes = iter([taken_code, "CERT-FRESHCODE0001"])
    monkeypatch.setattr(certificates, "generate_certificate_code", lambda: next(codes))

    attempt = await finished_attempt(db, author, learner)
    certificate, created = await certificates.issue_certificate(db, attempt.id, identity_for(learner), NOW)

    assert created is True
    assert certificate.certificate_code == "CERT-FRESHCODE0001"


async def test_lost_race_returns_the_winners_certificate(session_factory, db, author, learner, monkeypatch):
    attempt = await finished_attempt(db, author, learner)
    me = identity_for(learner)
    real_find_certificate = certificates.find_certificate
    reads = []

    async def rival_wins_first(session, attempt_id, lock=False):
        reads.append(lock)
        if len(reads) == 1:
            # Another request issues the certificate between our check and our insert.
            async with session_factory() as other:
                await certificates.issue_certificate(other, attempt_id, me, NOW)
            return None
        return await real_find_certificate(session, attempt_id, lock=lock)

    monkeypatch.setattr(certificates, "find_certificate", rival_wins_first)
    certificate, created = await certificates.issue_certificate(db, attempt.id, me, NOW + timedelta(minutes=5))

    assert created is False
    assert certificate.issued_at == NOW
    assert reads[-1] is True
    assert await certificate_count(db, attempt) == 1


async def test_exhausted_code_retries_raise_a_domain_error(db, author, learner, monkeypatch):
    other_learner = await make_user(db, name="Other")
    taken = await finished_attempt(db, author, other_learner)
    await certificates.issue_certificate(db, taken.id, identity_for(other_learner), NOW)
    taken_code = (await certificates.find_certificate(db, taken.id)).certificate_code
    codes = []

    def always_taken():
        codes.append(taken_code)
        return taken_code

    monkeypatch.setattr(certificates, "generate_certificate_code", always_taken)
    attempt = await finished_attempt(db, author, learner)

    with pytest.raises(CertificateCodeUnavailable) as exc:
        await certificates.issue_certificate(db, attempt.id, identity_for(learner), NOW)
    assert exc.value.category == "InvalidState"
    assert len(codes) == certificates.MAX_CODE_ATTEMPTS
    assert await certificate_count(db, attempt) == 0


async def test_verify_by_code(db, author, learner):
    attempt = await finished_attempt(db, author, learner)
    certificate, _ = await certificates.issue_certificate(db, attempt.id, identity_for(learner), NOW)

    verified = await certificates.verify_certificate(db, certificate.certificate_code)
    assert verified.attempt_id == attempt.id
    assert verified.user.name == "Learner"
    assert verified.quiz.title == "Q1"

    with pytest.raises(NotFound):
        await certificates.verify_certificate(db, "CERT-DOESNOTEXIST")
