"""Tests for subscription-gated enrollment."""
import pytest
from sqlalchemy import func, insert, select

from academy.core.database import enrollments, get_db_session, lesson_progress, new_id
from academy.core.errors import ConflictError, NotFoundError, PermissionError
from academy.features.enrollment.service import enroll, list_enrollments, unenroll


def _enrollment_rows() -> int:
    with get_db_session() as session:
        return session.execute(select(func.count()).select_from(enrollments)).scalar()


def test_enroll_without_subscription_is_forbidden(make_user, seed_course):
    course = seed_course()
    student = make_user()

    with pytest.raises(PermissionError):
        enroll(student, course["course_id"])
    assert _enrollment_rows() == 0


@pytest.mark.parametrize("status", ["INCOMPLETE", "PAST_DUE", "CANCELED", "TRIALING"])
def test_enroll_requires_active_status(make_user, seed_course, status):
    course = seed_course()
    student = make_user(subscription_status=status)

    with pytest.raises(PermissionError):
        enroll(student, course["course_id"])


def test_enroll_with_active_subscription(make_user, seed_course):
    course = seed_course()
    student = make_user(subscription_status="ACTIVE")

    enrollment = enroll(student, course["course_id"])

    assert enrollment.course_id == course["course_id"]
    assert [e.course_id for e in list_enrollments(student.id)] == [course["course_id"]]


def test_duplicate_enrollment_conflicts(make_user, seed_course):
    course = seed_course()
    student = make_user(subscription_status="ACTIVE")
    enroll(student, course["course_id"])

    with pytest.raises(ConflictError):
        enroll(student, course["course_id"])
    assert _enrollment_rows() == 1


def test_enroll_in_missing_course(make_user):
    student = make_user(subscription_status="ACTIVE")
    with pytest.raises(NotFoundError):
        enroll(student, "missing")


def test_unenroll_drops_course_progress_only(make_user, seed_course):
    first = seed_course(slug="first")
    second = seed_course(slug="second")
    student = make_user(subscription_status="ACTIVE")
    enroll(student, first["course_id"])
    enroll(student, second["course_id"])
    with get_db_session() as session:
        for lesson_id in first["lesson_ids"][:2] + second["lesson_ids"][:1]:
            session.execute(insert(lesson_progress).values(id=new_id(), user_id=student.id, lesson_id=lesson_id, completed=True))

    unenroll(student, first["course_id"])

    with get_db_session() as session:
        remaining = session.execute(select(lesson_progress.c.lesson_id)).scalars().all()
    assert remaining == second["lesson_ids"][:1]
    assert [e.course_id for e in list_enrollments(student.id)] == [second["course_id"]]


def test_unenroll_when_not_enrolled(make_user, seed_course):
    course = seed_course()
    with pytest.raises(NotFoundError):
        unenroll(make_user(), course["course_id"])


def test_enroll_api(client, make_user, auth_headers, seed_course):
    course = seed_course()
    student = make_user(subscription_status="ACTIVE")
    headers = auth_headers(student)

    resp = client.post("/api/courses/enroll", headers=headers, json={"course_id": course["course_id"]})
    assert resp.status_code == 201

    resp = client.post("/api/courses/enroll", headers=headers, json={"course_id": course["course_id"]})
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "conflict"

    resp = client.delete("/api/courses/enroll", headers=headers, params={"course_id": course["course_id"]})
    assert resp.status_code == 200
