# couplequiz/core/errors.py
"""
Domain errors raised by the services.

Every error carries:
  - status_code: the HTTP status the API maps it to
  - code: a stable machine-readable identifier clients can branch on

Services raise these instead of HTTPException so they can be used and
tested without FastAPI. `main.py` registers one handler that renders
them as {"detail": ..., "code": ...}.
"""
from fastapi import status


class CoupleQuizError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"
    message: str = "Request failed"

    def __init__(self, message: str | None = None):
        self.detail = message or self.message
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


# ----- Auth -----


class NotAuthenticated(CoupleQuizError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "not_authenticated"
    message = "Authentication required"


class StoreUnavailable(CoupleQuizError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "store_unavailable"
    message = "Backend store is unavailable"


# ----- Pairing -----


class CodeGenerationExhausted(CoupleQuizError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "code_generation_exhausted"
    message = "Could not generate a unique linking code. Please try again."


class CodeNotFound(CoupleQuizError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "code_not_found"
    message = "Invalid linking code"


class AlreadyClaimed(CoupleQuizError):
    status_code = status.HTTP_409_CONFLICT
    code = "already_claimed"
    message = "This invitation has already been used"


class SelfLink(CoupleQuizError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "self_link"
    message = "You cannot link with yourself"


class PendingInviteExists(CoupleQuizError):
    status_code = status.HTTP_409_CONFLICT
    code = "pending_invite_exists"
    message = "You already have an unclaimed invitation"


class CoupleNotFound(CoupleQuizError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "couple_not_found"
    message = "Couple not found"


# ----- Quiz -----


class EmptyAnswerBatch(CoupleQuizError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "empty_answer_batch"
    message = "No answers to save"


class InvalidAnswer(CoupleQuizError):
    status_code = 422
    code = "invalid_answer"
    message = "Answer does not match its question"


class SaveFailed(CoupleQuizError):
    """
    Persisting an answer batch failed.

    `saved_question_ids` lists the answers that did reach the store so the
    caller can retry only the remainder. The batch is written in a single
    transaction, so in practice this is empty; retrying the full batch is
    always safe because answers are upserted.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "save_failed"
    message = "Failed to save answers"

    def __init__(self, message: str | None = None, saved_question_ids=None):
        super().__init__(message)
        self.saved_question_ids = list(saved_question_ids or [])

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["saved_question_ids"] = [str(q) for q in self.saved_question_ids]
        return data


class ComparisonLocked(CoupleQuizError):
    status_code = status.HTTP_409_CONFLICT
    code = "comparison_locked"
    message = "Both partners must complete the quiz before comparing"


class CategoryNotFound(CoupleQuizError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "category_not_found"
    message = "Quiz category not found"
