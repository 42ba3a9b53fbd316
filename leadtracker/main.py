"""
Lead Tracker: first-touch attribution for phone, SMS and email clicks.
Main application entry point.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from leadtracker import __version__
from leadtracker.api.ajax import router as ajax_router
from leadtracker.api.dashboard import router as dashboard_router
from leadtracker.api.tracker import router as tracker_router
from leadtracker.middleware.security import SecurityHeadersMiddleware
from leadtracker.config import get_settings

import structlog

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.dev.ConsoleRenderer() if get_settings().debug else structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("leadtracker_starting", base_url=get_settings().base_url)
    yield
    logger.info("leadtracker_shutting_down")


app = FastAPI(
    title=get_settings().app_name,
    description="Lead attribution: which campaign produced each phone, SMS and email click.",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if get_settings().debug else None,
    redoc_url="/redoc" if get_settings().debug else None,
    openapi_url="/openapi.json" if get_settings().debug else None,
)

# Security headers on every response
app.add_middleware(SecurityHeadersMiddleware)

# Attribution store for /v1/tracker/resolve: a browser-session cookie (no max_age)
app.add_middleware(
    SessionMiddleware,
    secret_key=get_settings().session_secret,
    session_cookie=get_settings().session_cookie,
    max_age=None,
    same_site="lax",
    https_only=not get_settings().debug,
)

ALLOWED_ORIGINS = ["*"] if get_settings().debug else get_settings().allowed_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["X-Admin-Key", "Content-Type"],
)

# --- Routes ---
app.include_router(ajax_router)
app.include_router(tracker_router)
app.include_router(dashboard_router)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "leadtracker", "version": __version__}
