from pydantic import BaseModel
from datetime import datetime

class Certificate(BaseModel):
    code: str
    attempt_id: int
    score: float
    issued_at: datetime

class CertificateVerification(Certificate):
    user: str
    quiz: str
