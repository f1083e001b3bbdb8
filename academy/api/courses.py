"""
Member-facing catalog routes.

- GET    /api/courses: published courses (optional ?category=slug)
- GET    /api/courses/enrollments: the caller's enrollments
- POST   /api/courses/enroll: enroll (active subscription required)
- DELETE /api/courses/enroll?course_id=: unenroll, dropping progress
- GET    /api/courses/{slug}: course detail with obfuscated video URLs
- GET    /api/categories: active course categories
- GET    /api/resources: downloadable resources
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from academy.core.session import Identity, get_identity, require_identity
from academy.features.catalog.categories import list_categories
from academy.features.catalog.courses import get_course_by_slug, list_courses
from academy.features.catalog.resources import list_resources
from academy.features.enrollment.service import enroll, list_enrollments, unenroll
from academy.models.catalog import Course, CourseCategory, CourseDetail, Resource
from academy.models.learning import Enrollment

router = APIRouter(tags=["courses"])


class EnrollRequest(BaseModel):
    course_id: str


@router.get("/api/courses", response_model=List[Course])
def courses(category: Optional[str] = None):
    return list_courses(published_only=True, category_slug=category)


@router.get("/api/courses/enrollments", response_model=List[Enrollment])
def my_enrollments(identity: Identity = Depends(require_identity)):
    return list_enrollments(identity.id)


@router.post("/api/courses/enroll", response_model=Enrollment, status_code=201)
def enroll_in_course(body: EnrollRequest, identity: Identity = Depends(require_identity)):
    return enroll(identity, body.course_id)


@router.delete("/api/courses/enroll")
def leave_course(course_id: str = Query(...), identity: Identity = Depends(require_identity)):
    unenroll(identity, course_id)
    return {"ok": True}


@router.get("/api/courses/{slug}", response_model=CourseDetail)
def course_detail(slug: str, identity: Optional[Identity] = Depends(get_identity)):
    return get_course_by_slug(slug, identity)


@router.get("/api/categories", response_model=List[CourseCategory])
def categories():
    return list_categories(active_only=True)


@router.get("/api/resources", response_model=List[Resource])
def resources(
    course_id: Optional[str] = None,
    lesson_id: Optional[str] = None,
    identity: Identity = Depends(require_identity),
):
    return list_resources(course_id=course_id, lesson_id=lesson_id)
