"""Main FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from quadriparlanti.api import (
    analytics,
    auth,
    config,
    health,
    public,
    qr,
    review,
    teachers,
    themes,
    works,
)
from quadriparlanti.api.health import VERSION
from quadriparlanti.config import get_settings
from quadriparlanti.db.session import init_db
from quadriparlanti.middleware.rate_limit import limiter
from quadriparlanti.middleware.request_context import bind_request_context

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Quadriparlanti API...")

    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    logger.info("Quadriparlanti API started successfully")

    yield

    logger.info("Shutting down Quadriparlanti API...")


app = FastAPI(
    title="Quadriparlanti API",
    description="""
## School works catalogue

Teachers submit student works (texts, images, videos, links), administrators
review and publish them, and visitors browse published works by theme,
usually arriving from a QR code displayed in the school.

### Work lifecycle
`draft` → `pending_review` → `published` or `needs_revision` → `archived`

### Authentication
Log in with `POST /v1/auth/login` and send the returned access key:
```
Authorization: Bearer qpk_your_access_key
```
Public routes (`/v1/public`, `/q/{code}`, `POST /api/analytics`) need no key.

### Rate Limiting
Authenticated requests are limited per access key, public ones per client IP.
    """,
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.middleware("http")(bind_request_context)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.site_url.rstrip("/")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(auth.callback_router)
app.include_router(teachers.router)
app.include_router(works.router)
app.include_router(works.uploads_router)
app.include_router(review.router)
app.include_router(themes.router)
app.include_router(qr.router)
app.include_router(qr.redirect_router)
app.include_router(public.router)
app.include_router(analytics.router)
app.include_router(config.router)


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with service info."""
    return {
        "service": "Quadriparlanti API",
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "quadriparlanti.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
