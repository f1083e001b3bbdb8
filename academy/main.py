import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load env from the project root .env
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from academy.api import (
    admin_catalog,
    admin_media,
    admin_users,
    auth,
    billing,
    certificates,
    community,
    courses,
    health,
    lessons,
    lives,
    profile,
    uploads,
)
from academy.core.config import cors_origins, settings, validate_config
from academy.core.database import create_all_tables
from academy.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    integrity_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from academy.core.logging import configure_logging
from academy.core.middleware.request_id import RequestIdMiddleware
from academy.core.validation import validate_env

configure_logging(settings.ENV, settings.LOG_LEVEL)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("academy")
    logger.info("Starting Viral Academy backend...")
    app.state.startup_time = time.time()
    if settings.ENV != "production":
        # Production schemas are managed outside the app
        create_all_tables()
    try:
        yield
    finally:
        logging.getLogger("academy").info("Stopping Viral Academy backend...")


app = FastAPI(title="Viral Academy - Backend", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(IntegrityError, integrity_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(profile.router)
app.include_router(courses.router)
app.include_router(lessons.router)
app.include_router(certificates.router)
app.include_router(community.router)
app.include_router(lives.router)
app.include_router(billing.router)
app.include_router(uploads.router)
app.include_router(admin_catalog.router)
app.include_router(admin_users.router)
app.include_router(admin_media.router)
