"""
FastAPI Application - Clinic contact-form service
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.orm import Session

from clinic.config import settings
from clinic.database import SessionLocal, get_db, init_database
from clinic.errors import RateLimited
from clinic.middleware.security import SecurityHeadersMiddleware
from clinic.observability.logging import configure_logging
from clinic.routers.contact import router as contact_router
from clinic.security import limiter
from clinic.services.pipeline import build_pipeline

logger = logging.getLogger(__name__)


# ==========================================
# Application Lifespan
# ==========================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting contact service")
    try:
        init_database()
    except Exception as exc:
        # The file fallback keeps inquiries flowing while the database is down.
        logger.error("Database initialization failed: %s", exc)
    if getattr(app.state, "pipeline", None) is None:
        app.state.pipeline = build_pipeline(settings, SessionLocal)
    app.state.pipeline.submission_log.path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Contact service ready")
    yield
    logger.info("Shutting down contact service")


configure_logging(settings.log_level.upper(), json_format=settings.is_production)
IS_PROD = settings.is_production


# ==========================================
# Exception handlers (define BEFORE registration)
# ==========================================
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        {"success": False, "message": RateLimited.default_message},
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error: %s", exc, exc_info=True)
    return JSONResponse(
        {"success": False, "message": "Internal server error"},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


# ==========================================
# FastAPI Application
# ==========================================
app = FastAPI(
    title="Clinic Contact Service",
    description="Contact-form submission pipeline",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if IS_PROD else "/docs",
    redoc_url=None if IS_PROD else "/redoc",
    openapi_url=None if IS_PROD else "/openapi.json",
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(CorrelationIdMiddleware, header_name="X-Request-ID")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


# ==========================================
# Health & readiness (minimal in prod)
# ==========================================
@app.get("/healthz", tags=["system"], summary="Health check", response_model=dict)
async def health_check(db: Session = Depends(get_db)) -> dict:
    try:
        db.execute(text("SELECT 1"))
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="unhealthy"
        )
    if IS_PROD:
        return {"status": "healthy"}
    return {"status": "healthy", "database": "connected", "version": app.version}


@app.get("/readyz", tags=["system"], summary="Readiness check", response_model=dict)
async def readiness_check(request: Request, db: Session = Depends(get_db)) -> dict:
    pipeline = request.app.state.pipeline
    backups_dir = pipeline.submission_log.path.parent
    try:
        db.execute(text("SELECT 1"))
        if not backups_dir.exists():
            raise RuntimeError(f"Backups dir missing: {backups_dir}")
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="not ready" if IS_PROD else str(exc),
        )
    if IS_PROD:
        return {"status": "ready"}
    logs = {
        "fallback_submissions": pipeline.repository.fallback_log,
        "audited_submissions": pipeline.submission_log,
        "spam_attempts": pipeline.spam_filter.spam_log,
    }
    return {
        "status": "ready",
        "database": "connected",
        "backups_dir": "available",
        "statistics": {
            name: log.statistics().as_dict() for name, log in logs.items()
        },
    }


# ==========================================
# Routers
# ==========================================
app.include_router(contact_router)
