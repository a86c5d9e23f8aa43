# couplequiz/models/couple.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Index, text as sql_text
from sqlmodel import SQLModel, Field


class Couple(SQLModel, table=True):
    """
    Pairing between two principals.

    Lifecycle:
      - Pending: user1_id set, user2_id NULL, linking_code set.
      - Linked : user2_id set (!= user1_id), linking_code NULL,
                 consumed_code keeps the claimed code, linked_at set.

    Linked is terminal. On claim the pair is stored canonically
    (user1_id < user2_id) so symmetric lookups only need one ordering.

    linking_code is UNIQUE; NULLs do not collide, so the constraint only
    applies to pending invites. A partial unique index on user1_id keeps
    at most one pending invite per principal.
    """

    __tablename__ = "couples"
    __table_args__ = (
        Index(
            "uq_couples_one_pending_per_user",
            "user1_id",
            unique=True,
            postgresql_where=sql_text("user2_id IS NULL"),
            sqlite_where=sql_text("user2_id IS NULL"),
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user1_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
        description="Inviter while pending; smaller id once linked",
    )

    user2_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="profiles.id",
        index=True,
        description="NULL until the invitation is claimed",
    )

    linking_code: str | None = Field(
        default=None,
        max_length=6,
        unique=True,
        index=True,
        description="6-char [A-Z0-9] invite code, NULL once consumed",
    )

    consumed_code: str | None = Field(
        default=None,
        max_length=6,
        index=True,
        description="The code that was claimed to link this couple",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    linked_at: datetime | None = Field(
        default=None,
        description="When the invite was claimed (UTC)",
    )

    @property
    def is_linked(self) -> bool:
        return self.user2_id is not None

    def partner_of(self, user_id: uuid.UUID) -> uuid.UUID | None:
        """Return the other member's id, or None if user_id is not a member."""
        if self.user1_id == user_id:
            return self.user2_id
        if self.user2_id == user_id:
            return self.user1_id
        return None
