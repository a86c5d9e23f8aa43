# couplequiz/core/auth.py
import uuid
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from couplequiz.core.config import get_settings
from couplequiz.core.errors import NotAuthenticated
from couplequiz.database import get_session
from couplequiz.models.profile import Profile
from couplequiz.repositories.profile_repo import ProfileRepository
from couplequiz.services.profile_service import ProfileService

# HTTP Bearer scheme:
# - auto_error=False => a missing Authorization header does not raise
#   FastAPI's own 403; we raise NotAuthenticated (401) instead.
bearer_scheme = HTTPBearer(auto_error=False)

profile_service = ProfileService(ProfileRepository())


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        NotAuthenticated: if token is invalid/expired.
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise NotAuthenticated("Invalid or expired token")


def get_access_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Raw bearer token; required."""
    if credentials is None:
        raise NotAuthenticated()
    return credentials.credentials


def require_auth(
    token: str = Depends(get_access_token),
    session: Session = Depends(get_session),
) -> Profile:
    """
    Resolve the current principal from a Supabase JWT.

    Flow:
      1. Decode JWT => extract 'sub' (auth user id) and 'email'.
      2. Convert 'sub' to UUID to match Profile.id type.
      3. Find the profile; auto-provision it on first sight.

    Raises:
        NotAuthenticated: token missing, malformed or without 'sub'.
    """
    payload = decode_access_token(token)
    sub = payload.get("sub")
    if not sub:
        raise NotAuthenticated("Token missing sub")

    # Supabase provides sub as a string; enforce UUID
    try:
        sub_uuid = uuid.UUID(sub)
    except ValueError:
        raise NotAuthenticated("Invalid sub in token")

    return profile_service.ensure_profile(session, sub_uuid, payload.get("email"))
