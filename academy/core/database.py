"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support (in-memory SQLite)
- Table definitions for every persisted entity
"""
import logging
from typing import Optional
from contextlib import contextmanager
from datetime import datetime, timezone
from uuid import uuid4
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Boolean, JSON, Text, Index, ForeignKey, UniqueConstraint, select
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func
import os

from academy.core.config import settings

logger = logging.getLogger(__name__)

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine and session factory
_engine = None
_SessionLocal = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return settings.DATABASE_URL


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    SQLite URLs (tests) share a single connection so an in-memory
    database survives across sessions.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    if url.startswith("sqlite"):
        _engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=False,
        )
    else:
        _engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            pool_pre_ping=True,
            echo=False,  # Set to True for SQL query logging
        )

    # Create session factory
    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Commits when the block exits cleanly, rolls back and re-raises otherwise.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


def drop_all_tables():
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    engine = get_engine()
    metadata.drop_all(bind=engine)


def reset_database():
    """
    Reset the database by dropping and recreating all tables.

    WARNING: This is destructive! Only use in tests.
    """
    drop_all_tables()
    create_all_tables()


def check_connection() -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(select(1))
        return True
    except Exception as e:
        logger.warning(f"Database connection check failed: {e}")
        return False


def _created_at() -> Column:
    return Column('created_at', DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


def _updated_at() -> Column:
    return Column('updated_at', DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False)


# Accounts
users = Table(
    'users',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('email', String(255), nullable=False, unique=True),
    Column('password_hash', String(100), nullable=True),
    Column('role', String(20), nullable=False, default='STUDENT', index=True),  # GUEST, STUDENT, MENTOR, ADMIN
    Column('active', Boolean, nullable=False, default=True),
    _created_at(),
    _updated_at(),
)

profiles = Table(
    'profiles',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False, unique=True),
    Column('first_name', String(100), nullable=True),
    Column('last_name', String(100), nullable=True),
    Column('display_name', String(200), nullable=True),
    Column('bio', Text, nullable=True),
    Column('avatar', String(500), nullable=True),
    Column('objective', String(200), nullable=True),
    Column('level', String(50), nullable=True),
    Column('onboarding_done', Boolean, nullable=False, default=False),
    _created_at(),
    _updated_at(),
)

# Billing
subscriptions = Table(
    'subscriptions',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False, unique=True),
    Column('status', String(20), nullable=False, default='INCOMPLETE', index=True),  # ACTIVE, INCOMPLETE, PAST_DUE, CANCELED, TRIALING
    Column('stripe_customer_id', String(100), nullable=True, unique=True),
    Column('stripe_subscription_id', String(100), nullable=True, unique=True),
    Column('stripe_price_id', String(100), nullable=True),
    Column('current_period_start', DateTime(timezone=True), nullable=True),
    Column('current_period_end', DateTime(timezone=True), nullable=True),
    Column('cancel_at_period_end', Boolean, nullable=False, default=False),
    _created_at(),
    _updated_at(),
)

# Webhook idempotency ledger
billing_events = Table(
    'billing_events',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('stripe_event_id', String(100), nullable=False),
    Column('event_type', String(100), nullable=False, index=True),
    Column('received_at', DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False),
    Column('payload_hash', String(64), nullable=False),  # SHA256 of the raw body
    Column('processed', Boolean, nullable=False, default=False),
    Column('processed_at', DateTime(timezone=True), nullable=True),
    Column('error', Text, nullable=True),
    UniqueConstraint('stripe_event_id', name='uq_billing_events_stripe_id'),
)

# Catalog
course_categories = Table(
    'course_categories',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('name', String(100), nullable=False),
    Column('slug', String(100), nullable=False, unique=True),
    Column('description', String(500), nullable=True),
    Column('icon', String(50), nullable=True),
    Column('color', String(20), nullable=True),
    Column('active', Boolean, nullable=False, default=True),
    Column('position', Integer, nullable=False, default=0),
    _created_at(),
)

courses = Table(
    'courses',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('slug', String(200), nullable=False, unique=True),
    Column('title', String(200), nullable=False),
    Column('description', Text, nullable=True),
    Column('short_description', String(500), nullable=True),
    Column('thumbnail', String(500), nullable=True),
    Column('level', String(20), nullable=False, default='BEGINNER'),  # BEGINNER, INTERMEDIATE, ADVANCED
    Column('category_id', String(36), ForeignKey('course_categories.id'), nullable=True, index=True),
    Column('mentor_id', String(36), ForeignKey('users.id'), nullable=True),
    Column('duration', Integer, nullable=True),  # minutes
    Column('published', Boolean, nullable=False, default=False),
    Column('featured', Boolean, nullable=False, default=False),
    Column('position', Integer, nullable=False, default=0),
    _created_at(),
    _updated_at(),
)

modules = Table(
    'modules',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('course_id', String(36), ForeignKey('courses.id'), nullable=False),
    Column('title', String(200), nullable=False),
    Column('description', Text, nullable=True),
    Column('position', Integer, nullable=False, default=0),
    _created_at(),
    _updated_at(),
    Index('idx_modules_course_position', 'course_id', 'position'),
)

lessons = Table(
    'lessons',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('module_id', String(36), ForeignKey('modules.id'), nullable=False),
    Column('title', String(200), nullable=False),
    Column('description', Text, nullable=True),
    Column('video_url', String(500), nullable=True),
    Column('duration', Integer, nullable=True),  # seconds
    Column('notes', Text, nullable=True),
    Column('published', Boolean, nullable=False, default=True),
    Column('position', Integer, nullable=False, default=0),
    _created_at(),
    _updated_at(),
    Index('idx_lessons_module_position', 'module_id', 'position'),
)

resources = Table(
    'resources',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('title', String(200), nullable=False),
    Column('description', Text, nullable=True),
    Column('file_url', String(500), nullable=False),
    Column('file_type', String(50), nullable=True),
    Column('file_size', Integer, nullable=True),
    Column('course_id', String(36), ForeignKey('courses.id'), nullable=True, index=True),
    Column('lesson_id', String(36), ForeignKey('lessons.id'), nullable=True, index=True),
    _created_at(),
)

# Learning state
enrollments = Table(
    'enrollments',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('course_id', String(36), ForeignKey('courses.id'), nullable=False, index=True),
    Column('enrolled_at', DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False),
    Column('completed_at', DateTime(timezone=True), nullable=True),
    UniqueConstraint('user_id', 'course_id', name='uq_enrollments_user_course'),
)

lesson_progress = Table(
    'lesson_progress',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('lesson_id', String(36), ForeignKey('lessons.id'), nullable=False, index=True),
    Column('completed', Boolean, nullable=False, default=False),
    Column('completed_at', DateTime(timezone=True), nullable=True),
    Column('watch_time', Integer, nullable=False, default=0),  # seconds
    _updated_at(),
    UniqueConstraint('user_id', 'lesson_id', name='uq_lesson_progress_user_lesson'),
)

certificates = Table(
    'certificates',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('course_id', String(36), ForeignKey('courses.id'), nullable=False, index=True),
    Column('verification_code', String(20), nullable=False, unique=True),
    Column('issued_at', DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False),
    UniqueConstraint('user_id', 'course_id', name='uq_certificates_user_course'),
)

bookmarks = Table(
    'bookmarks',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False, index=True),
    Column('course_id', String(36), ForeignKey('courses.id'), nullable=True),
    Column('lesson_id', String(36), ForeignKey('lessons.id'), nullable=True),
    _created_at(),
    UniqueConstraint('user_id', 'course_id', name='uq_bookmarks_user_course'),
    UniqueConstraint('user_id', 'lesson_id', name='uq_bookmarks_user_lesson'),
)

lesson_notes = Table(
    'lesson_notes',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('lesson_id', String(36), ForeignKey('lessons.id'), nullable=False),
    Column('content', Text, nullable=False),
    Column('timestamp', Integer, nullable=True),  # seconds into the video
    _created_at(),
    _updated_at(),
    Index('idx_lesson_notes_user_lesson', 'user_id', 'lesson_id'),
)

# Lesson discussion
lesson_comments = Table(
    'lesson_comments',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('lesson_id', String(36), ForeignKey('lessons.id'), nullable=False, index=True),
    Column('author_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('parent_id', String(36), ForeignKey('lesson_comments.id'), nullable=True, index=True),
    Column('content', Text, nullable=False),
    Column('attachments', JSON, nullable=True),  # [{url, name, type, size}]
    Column('pinned', Boolean, nullable=False, default=False),
    _created_at(),
    _updated_at(),
)

lesson_comment_likes = Table(
    'lesson_comment_likes',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('comment_id', String(36), ForeignKey('lesson_comments.id'), nullable=False, index=True),
    _created_at(),
    UniqueConstraint('user_id', 'comment_id', name='uq_lesson_comment_likes_user_comment'),
)

# Community
community_categories = Table(
    'community_categories',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('name', String(100), nullable=False),
    Column('slug', String(100), nullable=False, unique=True),
    Column('description', String(500), nullable=True),
    Column('color', String(20), nullable=True),
    Column('position', Integer, nullable=False, default=0),
)

posts = Table(
    'posts',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('author_id', String(36), ForeignKey('users.id'), nullable=False, index=True),
    Column('category_id', String(36), ForeignKey('community_categories.id'), nullable=False, index=True),
    Column('title', String(200), nullable=False),
    Column('content', Text, nullable=False),
    Column('type', String(20), nullable=False, default='GENERAL'),  # GENERAL, QUESTION, ANNOUNCEMENT, WIN
    Column('pinned', Boolean, nullable=False, default=False),
    Column('locked', Boolean, nullable=False, default=False),
    _created_at(),
    _updated_at(),
    Index('idx_posts_pinned_created', 'pinned', 'created_at'),
)

comments = Table(
    'comments',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('post_id', String(36), ForeignKey('posts.id'), nullable=False, index=True),
    Column('author_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('parent_id', String(36), ForeignKey('comments.id'), nullable=True, index=True),
    Column('content', Text, nullable=False),
    _created_at(),
    _updated_at(),
)

likes = Table(
    'likes',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('post_id', String(36), ForeignKey('posts.id'), nullable=True, index=True),
    Column('comment_id', String(36), ForeignKey('comments.id'), nullable=True, index=True),
    _created_at(),
    UniqueConstraint('user_id', 'post_id', name='uq_likes_user_post'),
    UniqueConstraint('user_id', 'comment_id', name='uq_likes_user_comment'),
)

# Live events
live_events = Table(
    'live_events',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('title', String(200), nullable=False),
    Column('description', Text, nullable=True),
    Column('type', String(20), nullable=False, default='MARKETING'),
    Column('mentor_id', String(36), ForeignKey('users.id'), nullable=True),
    Column('scheduled_at', DateTime(timezone=True), nullable=False, index=True),
    Column('duration', Integer, nullable=False, default=60),  # minutes
    Column('meeting_url', String(500), nullable=True),
    Column('replay_url', String(500), nullable=True),
    Column('thumbnail', String(500), nullable=True),
    Column('published', Boolean, nullable=False, default=False),
    _created_at(),
    _updated_at(),
)

# Notifications
notifications = Table(
    'notifications',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('type', String(20), nullable=False),  # SYSTEM, COURSE, LIVE, COMMUNITY, CERTIFICATE, BILLING
    Column('title', String(200), nullable=False),
    Column('message', Text, nullable=False),
    Column('link', String(500), nullable=True),
    Column('read', Boolean, nullable=False, default=False),
    _created_at(),
    Index('idx_notifications_user_read', 'user_id', 'read'),
    Index('idx_notifications_user_created', 'user_id', 'created_at'),
)

# Upload catalog
media = Table(
    'media',
    metadata,
    Column('id', String(36), primary_key=True, default=new_id),
    Column('filename', String(300), nullable=False),
    Column('url', String(500), nullable=False),
    Column('content_type', String(150), nullable=False),
    Column('size', Integer, nullable=False),
    Column('folder', String(50), nullable=False),
    Column('object_key', String(300), nullable=True),  # bucket key, used to delete the blob
    Column('uploaded_by', String(36), ForeignKey('users.id'), nullable=True),
    _created_at(),
)
