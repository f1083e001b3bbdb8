"""Tests for the course catalog and its content-management writes."""
import pytest
from sqlalchemy import func, insert, select

from academy.core.authz import Role
from academy.core.database import courses, get_db_session, lesson_progress, lessons, modules, new_id
from academy.core.errors import ConflictError, NotFoundError, ValidationError
from academy.features.catalog import categories, structure
from academy.features.catalog.courses import (
    create_course,
    delete_course,
    get_course_by_slug,
    import_courses,
    list_courses,
    update_course,
)
from academy.features.enrollment.service import enroll
from academy.features.video.obfuscation import PREFIX

VIDEO = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def _count(table) -> int:
    with get_db_session() as session:
        return session.execute(select(func.count()).select_from(table)).scalar()


def test_new_courses_start_as_drafts():
    detail = create_course({"title": "Growth", "slug": "growth", "published": True})
    assert detail.published is False
    assert list_courses() == []
    assert [c.slug for c in list_courses(published_only=False)] == ["growth"]


def test_invalid_slug_is_rejected():
    with pytest.raises(ValidationError):
        create_course({"title": "Growth", "slug": "Growth Hacking"})


def test_duplicate_slug_conflicts():
    create_course({"title": "Growth", "slug": "growth"})
    with pytest.raises(ConflictError):
        create_course({"title": "Growth again", "slug": "growth"})


def test_draft_course_hidden_from_students(make_user, seed_course):
    seed_course(slug="draft", published=False)
    with pytest.raises(NotFoundError):
        get_course_by_slug("draft", make_user())
    assert get_course_by_slug("draft", make_user(role=Role.MENTOR)).slug == "draft"


def test_course_detail_obfuscates_video_urls(seed_course):
    seed_course(video_url=VIDEO)
    detail = get_course_by_slug("growth-101", None)
    lesson = detail.modules[0].lessons[0]
    assert lesson.video_url.startswith("https://www.youtube.com/watch?v=" + PREFIX)
    assert "dQw4w9WgXcQ" not in lesson.video_url


def test_unpublished_lessons_hidden_from_detail(seed_course):
    course = seed_course(lessons_count=2)
    structure.update_lesson(course["lesson_ids"][1], {"published": False})
    detail = get_course_by_slug("growth-101", None)
    assert [lesson.id for lesson in detail.modules[0].lessons] == course["lesson_ids"][:1]
    assert detail.lesson_count == 1


def test_detail_reports_progress_for_enrolled_student(make_user, seed_course):
    course = seed_course(lessons_count=4)
    student = make_user(subscription_status="ACTIVE")
    enroll(student, course["course_id"])
    with get_db_session() as session:
        session.execute(
            insert(lesson_progress).values(id=new_id(), user_id=student.id, lesson_id=course["lesson_ids"][0], completed=True)
        )

    detail = get_course_by_slug("growth-101", student)

    assert detail.enrolled is True
    assert detail.progress_percentage == 25
    assert [lesson.completed for lesson in detail.modules[0].lessons] == [True, False, False, False]


def test_modules_and_lessons_append_in_order(seed_course):
    course = seed_course(lessons_count=2)
    lesson = structure.create_lesson(course["module_id"], {"title": "Third"})
    assert lesson.order == 2

    second_module = structure.create_module(course["course_id"], "Module 2")
    assert second_module.order == 1

    explicit = structure.create_module(course["course_id"], "Pinned", order=10)
    assert explicit.order == 10


def test_module_delete_cascades_to_lessons(make_user, seed_course):
    course = seed_course(lessons_count=3)
    student = make_user()
    with get_db_session() as session:
        session.execute(
            insert(lesson_progress).values(id=new_id(), user_id=student.id, lesson_id=course["lesson_ids"][0], completed=True)
        )

    removed = structure.delete_module(course["module_id"])

    assert removed["lessons"] == 3
    assert _count(lessons) == 0
    assert _count(lesson_progress) == 0
    assert _count(modules) == 0
    assert _count(courses) == 1


def test_course_delete_cascades(make_user, seed_course):
    course = seed_course(lessons_count=2)
    enroll(make_user(subscription_status="ACTIVE"), course["course_id"])

    removed = delete_course(course["course_id"])

    assert removed["enrollments"] == 1
    assert removed["courses"] == 1
    assert _count(lessons) == 0


def test_lesson_move_to_missing_module(seed_course):
    course = seed_course(lessons_count=1)
    with pytest.raises(NotFoundError):
        structure.update_lesson(course["lesson_ids"][0], {"module_id": "missing"})


def test_category_in_use_cannot_be_deleted(seed_course):
    category = categories.create_category({"name": "Marketing", "slug": "marketing"})
    course = seed_course()
    update_course(course["course_id"], {"category_id": category.id})

    with pytest.raises(ConflictError):
        categories.delete_category(category.id)

    assert [c.slug for c in list_courses(category_slug="marketing")] == ["growth-101"]


def test_admin_catalog_role_tiers(client, make_user, auth_headers, seed_course):
    course = seed_course()
    mentor = auth_headers(make_user(role=Role.MENTOR))
    admin = auth_headers(make_user(role=Role.ADMIN))
    student = auth_headers(make_user())

    resp = client.post("/api/admin/courses", headers=student, json={"title": "X", "slug": "x"})
    assert resp.status_code == 403

    resp = client.post("/api/admin/courses", headers=mentor, json={"title": "X", "slug": "x"})
    assert resp.status_code == 201
    assert resp.json()["published"] is False

    resp = client.delete(f"/api/admin/courses/{course['course_id']}", headers=mentor)
    assert resp.status_code == 403

    resp = client.delete(f"/api/admin/courses/{course['course_id']}", headers=admin)
    assert resp.status_code == 200
    assert resp.json()["removed"]["courses"] == 1


def test_public_course_routes(client, seed_course):
    seed_course(video_url=VIDEO)

    resp = client.get("/api/courses")
    assert resp.status_code == 200
    assert [c["slug"] for c in resp.json()] == ["growth-101"]

    resp = client.get("/api/courses/growth-101")
    assert resp.status_code == 200
    assert resp.json()["enrolled"] is False

    resp = client.get("/api/courses/missing")
    assert resp.status_code == 404


def test_explicit_null_on_required_field_is_400(client, make_user, auth_headers, seed_course):
    seeded = seed_course(lessons_count=1)
    mentor = auth_headers(make_user(role=Role.MENTOR))
    lesson_id = seeded["lesson_ids"][0]

    resp = client.patch(f"/api/admin/lessons/{lesson_id}", headers=mentor, json={"published": None})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"

    resp = client.patch(f"/api/admin/modules/{seeded['module_id']}", headers=mentor, json={"title": None})
    assert resp.status_code == 400

    resp = client.patch(f"/api/admin/courses/{seeded['course_id']}", headers=mentor, json={"featured": None})
    assert resp.status_code == 400

    # Nullable columns still clear
    resp = client.patch(f"/api/admin/lessons/{lesson_id}", headers=mentor, json={"description": None})
    assert resp.status_code == 200


def test_update_lesson_rejects_null_published(seed_course):
    lesson_id = seed_course(lessons_count=1)["lesson_ids"][0]
    with pytest.raises(ValidationError):
        structure.update_lesson(lesson_id, {"published": None})


IMPORT_PAYLOAD = {
    "title": "Launch Playbook",
    "slug": "launch-playbook",
    "description": "From zero to first launch",
    "modules": [
        {"title": "Plan", "lessons": [{"title": "Audience"}, {"title": "Offer", "video_url": VIDEO}]},
        {"title": "Ship", "order": 5, "lessons": [{"title": "Launch day"}]},
    ],
}


def test_import_builds_draft_course_tree(make_user):
    admin = make_user(role=Role.ADMIN)
    report = import_courses(admin, [IMPORT_PAYLOAD])

    assert report.imported == 1
    assert report.failed == 0
    imported = report.results[0]
    assert (imported.slug, imported.modules_count, imported.lessons_count) == ("launch-playbook", 2, 3)

    with get_db_session() as session:
        course = session.execute(select(courses).where(courses.c.id == imported.id)).one()
        positions = session.execute(
            select(modules.c.title, modules.c.position).where(modules.c.course_id == imported.id).order_by(modules.c.position)
        ).all()
        published = session.execute(
            select(lessons.c.published).join(modules, modules.c.id == lessons.c.module_id).where(modules.c.course_id == imported.id)
        ).scalars().all()
    assert course.published is False
    assert course.mentor_id == admin.id
    assert [(p.title, p.position) for p in positions] == [("Plan", 0), ("Ship", 5)]
    assert published == [True, True, True]


def test_import_suffixes_taken_slugs(make_user):
    admin = make_user(role=Role.ADMIN)
    create_course({"title": "Existing", "slug": "launch-playbook"})
    report = import_courses(admin, [IMPORT_PAYLOAD, IMPORT_PAYLOAD])
    assert [r.slug for r in report.results] == ["launch-playbook-1", "launch-playbook-2"]


def test_import_reports_bad_entries_and_keeps_going(make_user):
    admin = make_user(role=Role.ADMIN)
    report = import_courses(
        admin,
        [
            {"title": "No description", "slug": "no-description"},
            {"title": "Bad slug", "slug": "Bad Slug", "description": "x"},
            IMPORT_PAYLOAD,
        ],
    )
    assert report.imported == 1
    assert report.failed == 2
    assert [e.title for e in report.errors] == ["No description", "Bad slug"]
    assert _count(courses) == 1


def test_import_with_untitled_lesson_leaves_nothing_behind(make_user):
    admin = make_user(role=Role.ADMIN)
    broken = dict(IMPORT_PAYLOAD, modules=[{"title": "Plan", "lessons": [{"description": "no title"}]}])
    report = import_courses(admin, [broken])
    assert report.failed == 1
    assert _count(courses) == 0
    assert _count(modules) == 0


def test_import_api_is_admin_only(client, make_user, auth_headers):
    mentor = auth_headers(make_user(role=Role.MENTOR))
    admin = auth_headers(make_user(role=Role.ADMIN))

    assert client.post("/api/admin/courses/import", headers=mentor, json=IMPORT_PAYLOAD).status_code == 403

    resp = client.post("/api/admin/courses/import", headers=admin, json=IMPORT_PAYLOAD)
    assert resp.status_code == 200
    assert resp.json()["imported"] == 1

    resp = client.post("/api/admin/courses/import", headers=admin, json=[IMPORT_PAYLOAD, {"title": "Only title"}])
    body = resp.json()
    assert (body["imported"], body["failed"]) == (1, 1)
    assert body["results"][0]["slug"] == "launch-playbook-1"
