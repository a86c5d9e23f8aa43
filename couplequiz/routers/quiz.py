# couplequiz/routers/quiz.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from couplequiz.core.auth import require_auth
from couplequiz.database import get_session
from couplequiz.models.profile import Profile
from couplequiz.repositories.couple_repo import CoupleRepository
from couplequiz.repositories.profile_repo import ProfileRepository
from couplequiz.repositories.quiz_repo import QuizRepository
from couplequiz.schemas.quiz import (
    CategoryProgress,
    CategoryRead,
    ComparisonRead,
    CompletionRead,
    QuizStatusRead,
    ResetResult,
    SaveAnswersRequest,
    SaveAnswersResult,
)
from couplequiz.services.pairing_service import PairingService
from couplequiz.services.quiz_service import QuizService

router = APIRouter(prefix="/quiz", tags=["Quiz"])

quiz_repo = QuizRepository()
couple_repo = CoupleRepository()
pairing = PairingService(couple_repo, ProfileRepository())
service = QuizService(quiz_repo, couple_repo, pairing)


# -------- Catalogue --------


@router.get("/categories", response_model=list[CategoryRead])
def list_categories(
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """Categories with their active (released) questions."""
    return service.get_quiz_catalogue(session)


# -------- Answers --------


@router.post("/answers", response_model=SaveAnswersResult)
def save_answers(
    payload: SaveAnswersRequest,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """
    Upsert a batch of answers.

    couple_id omitted/null => solo mode. Resubmitting a question in the
    same context overwrites the previous answer.
    """
    return service.save_answers(session, current.id, payload.couple_id, payload.answers)


@router.delete("/categories/{category_id}/answers", response_model=ResetResult)
def reset_answers(
    category_id: str,
    couple_id: uuid.UUID | None = None,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """
    Retake a category.

    In couple mode this clears BOTH partners' answers for the couple.
    """
    deleted = service.reset_quiz_answers(session, category_id, couple_id, current.id)
    return ResetResult(category_id=category_id, couple_id=couple_id, deleted=deleted)


# -------- Progress / status --------


@router.get("/progress", response_model=dict[str, CategoryProgress])
def read_progress(
    couple_id: uuid.UUID | None = None,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """Progress of the caller for every category in the given context."""
    return service.get_quiz_progress(session, current.id, couple_id)


@router.get("/categories/{category_id}/status", response_model=QuizStatusRead)
def read_status(
    category_id: str,
    couple_id: uuid.UUID | None = None,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """Derived status: not_started / in_progress / solo_complete / awaiting_partner / ready_to_compare."""
    return service.get_quiz_status(session, current.id, couple_id, category_id)


@router.get(
    "/couples/{couple_id}/categories/{category_id}/completed",
    response_model=CompletionRead,
)
def read_completed(
    couple_id: uuid.UUID,
    category_id: str,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """Whether both partners answered every active question of the category."""
    service.require_category(session, category_id)
    pairing.get_couple_for_member(session, current.id, couple_id)
    completed = service.is_quiz_completed_by_both_partners(session, couple_id, category_id)
    return CompletionRead(couple_id=couple_id, category_id=category_id, completed=completed)


@router.get(
    "/couples/{couple_id}/categories/{category_id}/comparison",
    response_model=ComparisonRead,
)
def read_comparison(
    couple_id: uuid.UUID,
    category_id: str,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """Side-by-side answers; 409 until both partners finished."""
    return service.get_comparison(session, current.id, couple_id, category_id)
