import random
import string
from typing import Optional
from datetime import datetime, timezone
from quizhub.core.config import settings

def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching how the database stores it."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def generate_certificate_code(length: Optional[int] = None) -> str:
    """Generate a human-readable certificate code like CERT-7KQ2M0ZP4X1B."""
    length = length or settings.CERTIFICATE_CODE_LENGTH
    alphabet = string.ascii_uppercase + string.digits
    body = ''.join(random.SystemRandom().choices(alphabet, k=length))
    return f"CERT-{body}"

def shuffled(items: list, seed) -> list:
    """Return a copy of ``items`` in an order that depends only on ``seed``."""
    result = list(items)
    random.Random(seed).shuffle(result)
    return result

def get_now() -> datetime:
    """Clock dependency for routes; tests override it to pin time."""
    return utcnow()
