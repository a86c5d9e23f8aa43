"""
Pytest configuration and fixtures.

Settings are read from the environment at import time, so they are set
here before anything from couplequiz is imported. The store is an
in-memory SQLite database; every test gets freshly created tables.
"""
import os
import uuid
from datetime import datetime, timedelta, timezone

os.environ["SUPABASE_URL"] = "http://localhost:54321"
os.environ["SUPABASE_KEY"] = "test-anon-key"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"

import pytest
from jose import jwt
from sqlmodel import SQLModel, Session

from couplequiz.database import engine
from couplequiz.models.couple import Couple  # noqa: F401
from couplequiz.models.profile import Profile
from couplequiz.models.quiz import Question, QuizCategory
from couplequiz.repositories.couple_repo import CoupleRepository
from couplequiz.repositories.profile_repo import ProfileRepository
from couplequiz.repositories.quiz_repo import QuizRepository
from couplequiz.services.pairing_service import PairingService
from couplequiz.services.quiz_service import QuizService


@pytest.fixture(autouse=True)
def _tables():
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def make_user(session):
    def _make(first_name: str | None = None, last_name: str | None = None) -> Profile:
        uid = uuid.uuid4()
        profile = Profile(
            id=uid,
            email=f"{uid.hex[:8]}@example.com",
            first_name=first_name,
            last_name=last_name,
        )
        session.add(profile)
        session.commit()
        session.refresh(profile)
        return profile

    return _make


@pytest.fixture
def make_category(session):
    def _make(category_id: str, name: str | None = None, sort_order: int = 0) -> QuizCategory:
        category = QuizCategory(
            id=category_id,
            name=name or category_id.title(),
            sort_order=sort_order,
        )
        session.add(category)
        session.commit()
        return category

    return _make


@pytest.fixture
def make_question(session):
    def _make(category_id: str, type: str = "scale", **kwargs) -> Question:
        if type == "scale":
            kwargs.setdefault("min_scale", 1)
            kwargs.setdefault("max_scale", 5)
        if type == "multiple_choice":
            kwargs.setdefault("options", ["Beach", "Mountains", "City"])
        kwargs.setdefault("release_date", datetime.now(timezone.utc) - timedelta(days=1))
        question = Question(
            category_id=category_id,
            text=kwargs.pop("text", f"{type} question"),
            type=type,
            **kwargs,
        )
        session.add(question)
        session.commit()
        session.refresh(question)
        return question

    return _make


@pytest.fixture
def pairing():
    return PairingService(CoupleRepository(), ProfileRepository())


@pytest.fixture
def quiz(pairing):
    return QuizService(QuizRepository(), CoupleRepository(), pairing)


@pytest.fixture
def linked_couple(session, make_user, pairing):
    """Two users linked through a real invite + claim."""
    alice = make_user("Alice", "A")
    bob = make_user("Bob", "B")
    invite = pairing.generate_linking_code(session, alice.id)
    couple = pairing.claim_linking_code(session, bob.id, invite.linking_code)
    return alice, bob, couple.id


@pytest.fixture
def token_for():
    def _token(user_id: uuid.UUID, email: str = "someone@example.com", expires_in: int = 3600) -> str:
        claims = {
            "sub": str(user_id),
            "email": email,
            "aud": "authenticated",
            "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        }
        return jwt.encode(claims, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")

    return _token
