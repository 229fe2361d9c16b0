from datetime import datetime
from typing import Optional, Tuple
import logging

from sqlalchemy import insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from quizhub.core.errors import AttemptNotCompleted, CertificateCodeUnavailable, NotFound
from quizhub.core.security import Identity
from quizhub.core.utils import generate_certificate_code
from quizhub.models.attempt import ATTEMPT_COMPLETED, QuizAttempt
from quizhub.models.certificate import Certificate
from quizhub.models.quiz import QuizSettings
from quizhub.services.attempts import load_attempt
from quizhub.services.policy import Capability, authorize

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 5


def has_passed(attempt: QuizAttempt, settings: Optional[QuizSettings]) -> bool:
    """``passing_score`` is a percentage of the quiz's maximum points."""
    if settings is None or settings.passing_score is None:
        return True
    return attempt.percentage >= settings.passing_score


async def find_certificate(db: AsyncSession, attempt_id: int, lock: bool = False) -> Optional[Certificate]:
    """
    The certificate for ``attempt_id``, if any.

    With ``lock`` the read takes a row lock, which on MySQL and PostgreSQL also
    sees rows committed after this transaction's snapshot was taken.
    """
    stmt = select(Certificate).where(Certificate.attempt_id == attempt_id)
    if lock:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


def _insert_ignoring_conflicts(dialect: str, values: dict):
    if dialect == "mysql":
        return insert(Certificate).values(**values).prefix_with("IGNORE")
    if dialect == "postgresql":
        return pg_insert(Certificate).values(**values).on_conflict_do_nothing()
    return sqlite_insert(Certificate).values(**values).on_conflict_do_nothing()


async def issue_certificate(db: AsyncSession, attempt_id: int, identity: Identity,
                            now: datetime) -> Tuple[Optional[Certificate], bool]:
    """
    Issue the certificate for a completed attempt.

    Returns ``(certificate, created)``. An attempt below the passing score gets
    ``(None, False)``; an attempt that already has a certificate gets that one
    back with ``created`` False.
    """
    attempt = await load_attempt(db, attempt_id)
    authorize(identity, Capability.ACT_ON_ATTEMPT, attempt=attempt)
    if attempt.status != ATTEMPT_COMPLETED:
        raise AttemptNotCompleted()

    existing = await find_certificate(db, attempt.id)
    if existing:
        return existing, False

    settings = (await db.execute(
        select(QuizSettings).where(QuizSettings.quiz_id == attempt.quiz_id)
    )).scalar_one_or_none()
    if not has_passed(attempt, settings):
        return None, False

    dialect = db.get_bind().dialect.name
    try:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_certificate_code()
            result = await db.execute(_insert_ignoring_conflicts(dialect, {
                "attempt_id": attempt.id,
                "user_id": attempt.user_id,
                "quiz_id": attempt.quiz_id,
                "certificate_code": code,
                "score": attempt.score,
                "issued_at": now,
            }))
            created = result.rowcount == 1
            # A lost race on attempt_id leaves the winner's row; a code collision leaves none.
            certificate = await find_certificate(db, attempt.id, lock=True)
            if certificate is not None:
                await db.commit()
                if created:
                    logger.info(f"Issued certificate {certificate.certificate_code} for attempt {attempt.id}")
                return certificate, created
            logger.warning(f"Certificate code collision on {code}, retrying")
        raise CertificateCodeUnavailable()
    except Exception:
        await db.rollback()
        raise


async def verify_certificate(db: AsyncSession, code: str) -> Certificate:
    result = await db.execute(
        select(Certificate)
        .where(Certificate.certificate_code == code)
        .execution_options(populate_existing=True)
    )
    certificate = result.scalar_one_or_none()
    if not certificate:
        raise NotFound("Certificate not found", field="code")
    return certificate
