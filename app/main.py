from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.admin_companies import router as admin_companies_router
from app.api.admin_courses import router as admin_courses_router
from app.api.admin_results import router as admin_results_router
from app.api.certificates import router as certificates_router
from app.api.entry import router as entry_router
from app.api.health import router as health_router
from app.api.metrics_endpoint import router as metrics_router
from app.api.session import router as session_router
from app.core.config import SETTINGS
from app.core.logging import setup_logging
from app.db.redis import lifespan_redis
from app.middleware.metrics import MetricsMiddleware
from app.middleware.request_context import RequestContextMiddleware
from app.repos.access_code_repo import access_code_repo
from app.repos.course_repo import course_repo
from app.services.seed import seed_demo_data

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_redis():
        if SETTINGS.seed_demo_data:
            await seed_demo_data(access_code_repo, course_repo)
        yield


app = FastAPI(
    title="safetyhub",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[SETTINGS.public_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware execution order: last-added runs first (outermost layer).
# RequestContext (outermost) → Metrics → CORS → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(entry_router)
app.include_router(session_router)
app.include_router(certificates_router)
app.include_router(admin_companies_router)
app.include_router(admin_results_router)
app.include_router(admin_courses_router)

logger.info(
    "safetyhub started  env=%s log_level=%s port=%d docs=%s store=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
    "redis" if SETTINGS.redis_url else "memory",
)
