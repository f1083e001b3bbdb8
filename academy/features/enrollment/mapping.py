from typing import Any

from academy.models.learning import Enrollment


def build_enrollment(row: Any) -> Enrollment:
    return Enrollment(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        enrolled_at=row.enrolled_at,
        completed_at=row.completed_at,
    )
