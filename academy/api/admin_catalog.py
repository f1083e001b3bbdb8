"""
Admin content-management routes.

MENTOR/ADMIN create and edit courses, modules, lessons and resources.
Deleting a course, module or lesson (and anything touching course
categories) is ADMIN only.
"""
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from academy.core.authz import ADMIN_ONLY, CONTENT_ROLES
from academy.core.session import Identity, require_roles
from academy.features.catalog import categories as category_service
from academy.features.catalog import courses as course_service
from academy.features.catalog import resources as resource_service
from academy.features.catalog import structure
from academy.models.catalog import Course, CourseCategory, CourseDetail, CourseImportReport, Lesson, Module, Resource

router = APIRouter(prefix="/api/admin", tags=["admin-catalog"])

content_staff = require_roles(*CONTENT_ROLES)
admin_only = require_roles(*ADMIN_ONLY)


class CourseCreate(BaseModel):
    title: str
    slug: str
    description: Optional[str] = None
    short_description: Optional[str] = None
    thumbnail: Optional[str] = None
    level: str = "BEGINNER"
    category_id: Optional[str] = None
    mentor_id: Optional[str] = None
    duration: Optional[int] = None
    featured: bool = False
    order: Optional[int] = None


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    thumbnail: Optional[str] = None
    level: Optional[str] = None
    category_id: Optional[str] = None
    mentor_id: Optional[str] = None
    duration: Optional[int] = None
    published: Optional[bool] = None
    featured: Optional[bool] = None
    order: Optional[int] = None


class ModuleCreate(BaseModel):
    course_id: str
    title: str
    description: Optional[str] = None
    order: Optional[int] = None


class ModuleUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    order: Optional[int] = None


class LessonCreate(BaseModel):
    module_id: str
    title: str
    description: Optional[str] = None
    video_url: Optional[str] = None
    duration: Optional[int] = None
    notes: Optional[str] = None
    published: bool = True
    order: Optional[int] = None


class LessonUpdate(BaseModel):
    module_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    video_url: Optional[str] = None
    duration: Optional[int] = None
    notes: Optional[str] = None
    published: Optional[bool] = None
    order: Optional[int] = None


class ResourceCreate(BaseModel):
    title: str
    file_url: str
    description: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    course_id: Optional[str] = None
    lesson_id: Optional[str] = None


class ResourceUpdate(BaseModel):
    title: Optional[str] = None
    file_url: Optional[str] = None
    description: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    course_id: Optional[str] = None
    lesson_id: Optional[str] = None


class LessonImport(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    video_url: Optional[str] = None
    duration: Optional[int] = None
    notes: Optional[str] = None
    order: Optional[int] = None


class ModuleImport(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    order: Optional[int] = None
    lessons: List[LessonImport] = []


class CourseImport(BaseModel):
    # Required fields are checked per entry so one bad course does not reject the batch
    title: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    thumbnail: Optional[str] = None
    level: str = "BEGINNER"
    category_id: Optional[str] = None
    duration: Optional[int] = None
    featured: bool = False
    order: Optional[int] = None
    modules: List[ModuleImport] = []


class CategoryCreate(BaseModel):
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    active: bool = True
    order: Optional[int] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    active: Optional[bool] = None
    order: Optional[int] = None


# Courses

@router.get("/courses", response_model=List[Course])
def all_courses(identity: Identity = Depends(content_staff)):
    return course_service.list_courses(published_only=False)


@router.post("/courses", response_model=CourseDetail, status_code=201)
def new_course(body: CourseCreate, identity: Identity = Depends(content_staff)):
    """Courses start as drafts regardless of the payload."""
    return course_service.create_course(body.model_dump())


@router.post("/courses/import", response_model=CourseImportReport)
def import_courses(body: Union[CourseImport, List[CourseImport]], identity: Identity = Depends(admin_only)):
    """Accepts one course or a list; each lands as a draft owned by the importing admin."""
    entries = body if isinstance(body, list) else [body]
    return course_service.import_courses(identity, [entry.model_dump() for entry in entries])


@router.get("/courses/{course_id}", response_model=CourseDetail)
def read_course(course_id: str, identity: Identity = Depends(content_staff)):
    return course_service.get_course(course_id)


@router.patch("/courses/{course_id}", response_model=CourseDetail)
def edit_course(course_id: str, body: CourseUpdate, identity: Identity = Depends(content_staff)):
    return course_service.update_course(course_id, body.model_dump(exclude_unset=True))


@router.delete("/courses/{course_id}")
def remove_course(course_id: str, identity: Identity = Depends(admin_only)):
    return {"ok": True, "removed": course_service.delete_course(course_id)}


# Modules

@router.get("/modules", response_model=List[Module])
def course_modules(course_id: str = Query(...), identity: Identity = Depends(content_staff)):
    return structure.list_modules(course_id)


@router.post("/modules", response_model=Module, status_code=201)
def new_module(body: ModuleCreate, identity: Identity = Depends(content_staff)):
    return structure.create_module(body.course_id, body.title, body.description, body.order)


@router.get("/modules/{module_id}", response_model=Module)
def read_module(module_id: str, identity: Identity = Depends(content_staff)):
    return structure.get_module(module_id)


@router.patch("/modules/{module_id}", response_model=Module)
def edit_module(module_id: str, body: ModuleUpdate, identity: Identity = Depends(content_staff)):
    return structure.update_module(module_id, body.model_dump(exclude_unset=True))


@router.delete("/modules/{module_id}")
def remove_module(module_id: str, identity: Identity = Depends(admin_only)):
    return {"ok": True, "removed": structure.delete_module(module_id)}


# Lessons

@router.get("/lessons", response_model=List[Lesson])
def module_lessons(module_id: str = Query(...), identity: Identity = Depends(content_staff)):
    return structure.list_lessons(module_id)


@router.post("/lessons", response_model=Lesson, status_code=201)
def new_lesson(body: LessonCreate, identity: Identity = Depends(content_staff)):
    data = body.model_dump()
    return structure.create_lesson(data.pop("module_id"), data)


@router.patch("/lessons/{lesson_id}", response_model=Lesson)
def edit_lesson(lesson_id: str, body: LessonUpdate, identity: Identity = Depends(content_staff)):
    return structure.update_lesson(lesson_id, body.model_dump(exclude_unset=True))


@router.delete("/lessons/{lesson_id}")
def remove_lesson(lesson_id: str, identity: Identity = Depends(admin_only)):
    return {"ok": True, "removed": structure.delete_lesson(lesson_id)}


# Resources

@router.get("/resources", response_model=List[Resource])
def all_resources(
    course_id: Optional[str] = None,
    lesson_id: Optional[str] = None,
    identity: Identity = Depends(content_staff),
):
    return resource_service.list_resources(course_id=course_id, lesson_id=lesson_id)


@router.post("/resources", response_model=Resource, status_code=201)
def new_resource(body: ResourceCreate, identity: Identity = Depends(content_staff)):
    return resource_service.create_resource(body.model_dump())


@router.patch("/resources/{resource_id}", response_model=Resource)
def edit_resource(resource_id: str, body: ResourceUpdate, identity: Identity = Depends(content_staff)):
    return resource_service.update_resource(resource_id, body.model_dump(exclude_unset=True))


@router.delete("/resources/{resource_id}")
def remove_resource(resource_id: str, identity: Identity = Depends(content_staff)):
    resource_service.delete_resource(resource_id)
    return {"ok": True}


# Course categories

@router.get("/categories", response_model=List[CourseCategory])
def all_categories(identity: Identity = Depends(admin_only)):
    return category_service.list_categories()


@router.post("/categories", response_model=CourseCategory, status_code=201)
def new_category(body: CategoryCreate, identity: Identity = Depends(admin_only)):
    return category_service.create_category(body.model_dump())


@router.patch("/categories/{category_id}", response_model=CourseCategory)
def edit_category(category_id: str, body: CategoryUpdate, identity: Identity = Depends(admin_only)):
    return category_service.update_category(category_id, body.model_dump(exclude_unset=True))


@router.delete("/categories/{category_id}")
def remove_category(category_id: str, identity: Identity = Depends(admin_only)):
    category_service.delete_category(category_id)
    return {"ok": True}
