# couplequiz/seed.py
"""
Seed the quiz category catalogue.

Usage:

    python -m couplequiz.seed

Existing categories are left untouched, so running it twice is harmless.
Questions are authored directly in the database.
"""
import logging

from sqlmodel import Session

from couplequiz.models.quiz import QuizCategory

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: list[dict] = [
    {"id": "communication", "name": "Communication"},
    {"id": "values", "name": "Values"},
    {"id": "hobbies", "name": "Hobbies"},
    {"id": "intimacy", "name": "Intimacy"},
    {"id": "family", "name": "Family"},
    {"id": "future", "name": "Future"},
    {"id": "activities", "name": "Activities"},
    {"id": "physical", "name": "Physical"},
    {"id": "dates", "name": "Dates"},
    {"id": "personality", "name": "Personality"},
]


def seed_categories(session: Session) -> int:
    """Insert missing default categories; returns how many were added."""
    added = 0
    for order, data in enumerate(DEFAULT_CATEGORIES):
        if session.get(QuizCategory, data["id"]) is not None:
            continue
        session.add(QuizCategory(sort_order=order, **data))
        added += 1
    session.commit()
    return added


def main():
    from couplequiz.database import create_db_and_tables, engine

    logging.basicConfig(level=logging.INFO)
    create_db_and_tables()
    with Session(engine) as session:
        added = seed_categories(session)
    logger.info("Seeded %d quiz categories", added)


if __name__ == "__main__":
    main()
