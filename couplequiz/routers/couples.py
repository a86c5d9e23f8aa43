# couplequiz/routers/couples.py
from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from couplequiz.core.auth import require_auth
from couplequiz.core.config import get_settings
from couplequiz.database import get_session
from couplequiz.models.profile import Profile
from couplequiz.repositories.couple_repo import CoupleRepository
from couplequiz.repositories.profile_repo import ProfileRepository
from couplequiz.schemas.couple import (
    CancelInviteResult,
    ClaimRequest,
    CoupleRead,
    InviteRead,
)
from couplequiz.services.pairing_service import PairingService

router = APIRouter(prefix="/couples", tags=["Couples"])

couple_repo = CoupleRepository()
profile_repo = ProfileRepository()
service = PairingService(
    couple_repo,
    profile_repo,
    max_attempts=get_settings().LINKING_CODE_MAX_ATTEMPTS,
)


@router.get("", response_model=list[CoupleRead])
def list_my_couples(
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """
    Linked couples of the caller, each with the partner's names.

    Pending invites are never listed here.
    """
    return service.get_hydrated_couples(session, current.id)


@router.post("/invite", response_model=InviteRead, status_code=status.HTTP_201_CREATED)
def create_invite(
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """
    Generate a 6-char linking code for the partner to claim.

    409 if the caller already has an unclaimed invite.
    """
    return service.generate_linking_code(session, current.id)


@router.get("/invite", response_model=InviteRead | None)
def read_invite(
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """The caller's pending invite, or null."""
    return service.get_pending_invite(session, current.id)


@router.delete("/invite", response_model=CancelInviteResult)
def cancel_invite(
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """Revoke the caller's pending invite (no-op if none)."""
    return CancelInviteResult(canceled=service.cancel_pending_invite(session, current.id))


@router.post("/claim", response_model=CoupleRead)
def claim_invite(
    payload: ClaimRequest,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """
    Claim a partner's linking code.

    Errors (distinct codes):
      - 404 code_not_found
      - 409 already_claimed
      - 400 self_link
    """
    return service.claim_linking_code(session, current.id, payload.linking_code)
