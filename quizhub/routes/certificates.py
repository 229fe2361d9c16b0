from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from quizhub.db.session import get_db
from quizhub.core.security import Identity, get_current_identity
from quizhub.core.utils import get_now
from quizhub.schemas.certificate import Certificate as CertificateSchema, CertificateVerification
from quizhub.services import certificates

router = APIRouter()

@router.post("/attempts/{attempt_id}/certificate", response_model=CertificateSchema)
async def generate_certificate(
    attempt_id: int,
    response: Response,
    identity: Identity = Depends(get_current_identity),
    now: datetime = Depends(get_now),
    db: AsyncSession = Depends(get_db)
):
    """Issue the certificate for a passed attempt, or return the one already issued."""
    certificate, created = await certificates.issue_certificate(db, attempt_id, identity, now)
    if certificate is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "NotEligible",
                "message": "Did not meet passing criteria",
                "details": [{"field": "attempt_id", "message": f"Attempt {attempt_id} is below the passing score"}]
            }
        )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return {
        "code": certificate.certificate_code,
        "attempt_id": certificate.attempt_id,
        "score": certificate.score,
        "issued_at": certificate.issued_at
    }

@router.get("/certificates/verify/{code}", response_model=CertificateVerification)
async def verify_certificate(
    code: str,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    certificate = await certificates.verify_certificate(db, code)
    return {
        "code": certificate.certificate_code,
        "attempt_id": certificate.attempt_id,
        "score": certificate.score,
        "issued_at": certificate.issued_at,
        "user": certificate.user.name,
        "quiz": certificate.quiz.title
    }
