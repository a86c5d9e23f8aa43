# couplequiz/models/profile.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Profile(SQLModel, table=True):
    """
    Public profile of a principal.

    Identity:
      - id: MUST match Supabase auth.users.id (UUID from JWT "sub")

    Exactly one row per principal. The row is auto-provisioned by the
    auth dependency the first time a principal is seen; names stay empty
    until the user fills them in.

    This table is *not* responsible for credentials. Supabase Auth
    handles the email one-time-code login in its own schema.
    """

    __tablename__ = "profiles"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches Supabase auth.users.id",
    )

    email: str | None = Field(
        default=None,
        index=True,
        description="Email from Supabase auth.users",
    )

    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
