# couplequiz/routers/profiles.py
from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from couplequiz.core.auth import get_access_token, profile_service, require_auth
from couplequiz.database import get_session
from couplequiz.models.profile import Profile
from couplequiz.schemas.profile import ProfileRead, ProfileUpdate

router = APIRouter(tags=["Profiles"])


@router.get("/profiles/me", response_model=ProfileRead)
def read_me(current: Profile = Depends(require_auth)):
    """
    Return the authenticated principal's profile.

    The row is auto-created on first request with empty names.
    """
    return current


@router.patch("/profiles/me", response_model=ProfileRead)
def update_me(
    payload: ProfileUpdate,
    session: Session = Depends(get_session),
    current: Profile = Depends(require_auth),
):
    """Partial update of first/last name."""
    return profile_service.update_profile(session, current, payload)


@router.post("/auth/sign-out", status_code=status.HTTP_204_NO_CONTENT)
def sign_out(
    token: str = Depends(get_access_token),
    current: Profile = Depends(require_auth),
):
    """Revoke the caller's Supabase session."""
    profile_service.sign_out(token)
