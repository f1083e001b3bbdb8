# academy/conftest.py
import os
import sys
from pathlib import Path
from typing import Optional

import pytest

# Point the app at an in-memory database before any academy module loads
os.environ.setdefault("ENV", "test")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")
os.environ.setdefault("SKIP_ENV_VALIDATION", "1")

# Add project root to PYTHONPATH
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy import insert  # noqa: E402

from academy.core.authz import Role  # noqa: E402
from academy.core.database import get_db_session, new_id, profiles, reset_database, subscriptions, users  # noqa: E402
from academy.core.session import Identity, issue_session_token  # noqa: E402


@pytest.fixture(scope="function", autouse=True)
def reset_db():
    """Fresh schema for every test."""
    reset_database()
    yield


@pytest.fixture
def make_user():
    """
    Factory: insert a user (plus profile, optionally a subscription) and
    return its Identity.
    """
    counter = {"n": 0}

    def _make(
        role: Role = Role.STUDENT,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        active: bool = True,
        subscription_status: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> Identity:
        counter["n"] += 1
        user_id = new_id()
        email = email or f"user{counter['n']}-{user_id[:6]}@example.com"
        with get_db_session() as session:
            session.execute(insert(users).values(id=user_id, email=email, role=role.value, active=active))
            session.execute(
                insert(profiles).values(id=new_id(), user_id=user_id, first_name=first_name or f"User{counter['n']}")
            )
            if subscription_status:
                session.execute(
                    insert(subscriptions).values(
                        id=new_id(),
                        user_id=user_id,
                        status=subscription_status,
                        stripe_customer_id=customer_id,
                    )
                )
        return Identity(id=user_id, email=email, role=role)

    return _make


@pytest.fixture
def auth_headers():
    def _headers(identity: Identity) -> dict:
        return {"Authorization": f"Bearer {issue_session_token(identity)}"}

    return _headers


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from academy.main import app

    return TestClient(app)


@pytest.fixture
def seed_course():
    """
    Factory: a course with one module holding `lessons_count` lessons.

    Returns a dict with course_id, module_id and lesson_ids (in order).
    """
    from academy.core.database import courses, lessons, modules

    def _seed(slug: str = "growth-101", lessons_count: int = 3, published: bool = True, video_url: Optional[str] = None) -> dict:
        course_id, module_id = new_id(), new_id()
        lesson_ids = [new_id() for _ in range(lessons_count)]
        with get_db_session() as session:
            session.execute(
                insert(courses).values(id=course_id, slug=slug, title=f"Course {slug}", published=published, position=0)
            )
            session.execute(insert(modules).values(id=module_id, course_id=course_id, title="Module 1", position=0))
            for position, lesson_id in enumerate(lesson_ids):
                session.execute(
                    insert(lessons).values(
                        id=lesson_id,
                        module_id=module_id,
                        title=f"Lesson {position + 1}",
                        video_url=video_url,
                        position=position,
                    )
                )
        return {"course_id": course_id, "module_id": module_id, "lesson_ids": lesson_ids}

    return _seed
