"""
Course completion certificates.

A certificate is issued once per (user, course), only after every published
lesson of the course is complete. Issuing again returns the existing one.
"""
import logging
import secrets
import string
from typing import List

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError

from academy.core.config import settings
from academy.core.database import certificates, courses, enrollments, get_db_session, new_id, utcnow
from academy.core.errors import NotFoundError, ValidationError
from academy.core.session import Identity
from academy.features.email.templates import send_course_completed_email
from academy.features.enrollment.service import is_enrolled
from academy.features.notifications.service import notify_user
from academy.features.progress.service import completed_lesson_count, published_lesson_ids
from academy.features.users.service import get_account, get_display_name
from academy.models.learning import Certificate, CertificateVerification
from academy.models.notification import NotificationType

logger = logging.getLogger(__name__)

CODE_PREFIX = "VA-"
CODE_LENGTH = 10
_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_verification_code() -> str:
    return CODE_PREFIX + "".join(secrets.choice(_CODE_ALPHABET) for _ in range(CODE_LENGTH))


def _certificate_query():
    return select(
        certificates,
        courses.c.title.label("course_title"),
        courses.c.slug.label("course_slug"),
    ).join(courses, courses.c.id == certificates.c.course_id)


def _build(row) -> Certificate:
    return Certificate(
        id=row.id,
        course_id=row.course_id,
        course_title=row.course_title,
        course_slug=row.course_slug,
        verification_code=row.verification_code,
        issued_at=row.issued_at,
    )


def list_certificates(user_id: str) -> List[Certificate]:
    with get_db_session() as session:
        rows = session.execute(
            _certificate_query()
            .where(certificates.c.user_id == user_id)
            .order_by(certificates.c.issued_at.desc())
        ).all()
    return [_build(row) for row in rows]


def _existing(session, user_id: str, course_id: str):
    return session.execute(
        _certificate_query().where(certificates.c.user_id == user_id, certificates.c.course_id == course_id)
    ).first()


def issue_certificate(identity: Identity, course_id: str) -> Certificate:
    with get_db_session() as session:
        course = session.execute(select(courses.c.id, courses.c.title).where(courses.c.id == course_id)).first()
        if not course:
            raise NotFoundError("Course not found")
        if not is_enrolled(session, identity.id, course_id):
            raise ValidationError("You are not enrolled in this course")

        existing = _existing(session, identity.id, course_id)
        if existing:
            return _build(existing)

        lesson_ids = published_lesson_ids(session, course_id)
        done = completed_lesson_count(session, identity.id, lesson_ids)
        if not lesson_ids or done < len(lesson_ids):
            percentage = round(done * 100 / len(lesson_ids)) if lesson_ids else 0
            raise ValidationError(f"Course not completed yet ({percentage}% complete)")

    code = generate_verification_code()
    try:
        with get_db_session() as session:
            session.execute(
                insert(certificates).values(
                    id=new_id(),
                    user_id=identity.id,
                    course_id=course_id,
                    verification_code=code,
                )
            )
            session.execute(
                update(enrollments)
                .where(
                    enrollments.c.user_id == identity.id,
                    enrollments.c.course_id == course_id,
                    enrollments.c.completed_at.is_(None),
                )
                .values(completed_at=utcnow())
            )
    except IntegrityError:
        # A concurrent request issued it first
        with get_db_session() as session:
            return _build(_existing(session, identity.id, course_id))

    logger.info(f"certificate.issued user_id={identity.id} course_id={course_id}")
    notify_user(
        identity.id,
        NotificationType.CERTIFICATE,
        "Certificate earned!",
        f'You completed "{course.title}" and earned your certificate.',
        "/app/certificados",
    )
    certificate_url = f"{settings.APP_URL.rstrip('/')}/certificates/verify/{code}"
    try:
        account = get_account(identity.id)
        send_course_completed_email(account.email, account.display_name, course.title, certificate_url)
    except Exception:
        logger.warning("certificate.email_failed", exc_info=True, extra={"user_id": identity.id})

    with get_db_session() as session:
        return _build(_existing(session, identity.id, course_id))


def verify_certificate(code: str) -> CertificateVerification:
    """Public lookup; exposes only the student's display name."""
    with get_db_session() as session:
        row = session.execute(_certificate_query().where(certificates.c.verification_code == code.strip().upper())).first()
        if not row:
            raise NotFoundError("Certificate not found")
        student_name = get_display_name(session, row.user_id) or "Student"
    return CertificateVerification(
        verification_code=row.verification_code,
        issued_at=row.issued_at,
        course_title=row.course_title,
        student_name=student_name,
    )
