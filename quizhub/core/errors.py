"""
Error taxonomy for the attempt lifecycle.

Every failure raised by a service is a ``QuizError``. The ``category`` groups
errors the way callers react to them; ``code`` names the specific rule that
failed. The HTTP layer maps categories to status codes in ``STATUS_BY_CATEGORY``.
"""
from typing import Optional


class QuizError(Exception):
    category = "Error"
    code = "error"
    message = "Request failed"

    def __init__(self, message: Optional[str] = None, field: str = ""):
        self.message = message or self.message
        self.field = field
        super().__init__(self.message)

    def to_detail(self) -> dict:
        return {
            "error": self.category,
            "code": self.code,
            "message": self.message,
            "details": [{"field": self.field, "message": self.message}],
        }


class NotFound(QuizError):
    category = "NotFound"
    code = "not_found"
    message = "Resource not found"


class Forbidden(QuizError):
    category = "Forbidden"
    code = "forbidden"
    message = "Not permitted"


class InvalidState(QuizError):
    category = "InvalidState"
    code = "invalid_state"
    message = "Operation not valid in the current state"


class ValidationFailed(QuizError):
    category = "ValidationFailed"
    code = "validation_failed"
    message = "Invalid input"


class NotEligible(QuizError):
    category = "NotEligible"
    code = "not_eligible"
    message = "Not eligible"


# Starting an attempt

class QuizNotAvailable(NotFound):
    code = "quiz_not_available"
    message = "Quiz not available"


class QuizNotYetOpen(NotEligible):
    code = "quiz_not_yet_open"
    message = "Quiz has not started yet"


class QuizClosed(NotEligible):
    code = "quiz_closed"
    message = "Quiz has ended"


class InvalidAccessCode(NotEligible):
    code = "invalid_access_code"
    message = "Invalid access code"


class PrivateAccessDenied(NotEligible):
    code = "private_access_denied"
    message = "Quiz is restricted to its groups"


# Acting on an attempt

class InvalidAttempt(QuizError):
    code = "invalid_attempt"
    message = "Invalid attempt"


class AttemptNotOwned(InvalidAttempt, Forbidden):
    code = "attempt_not_owned"


class AttemptNotInProgress(InvalidAttempt, InvalidState):
    code = "attempt_not_in_progress"
    message = "Attempt is not in progress"


class AttemptNotCompleted(InvalidState):
    code = "attempt_not_completed"
    message = "Quiz not completed"


class TimeLimitExceeded(NotEligible):
    code = "time_limit_exceeded"
    message = "Time limit for this attempt has passed"


class QuestionNotInQuiz(ValidationFailed):
    code = "question_not_in_quiz"
    message = "Invalid question for this quiz"


# Certificates

class CertificateCodeUnavailable(InvalidState):
    code = "certificate_code_unavailable"
    message = "Could not generate a unique certificate code"


STATUS_BY_CATEGORY = {
    NotFound.category: 404,
    Forbidden.category: 403,
    InvalidState.category: 409,
    ValidationFailed.category: 400,
    NotEligible.category: 403,
}
