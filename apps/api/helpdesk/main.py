"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from helpdesk.core.config import settings
from helpdesk.core.structured_logging import build_log_context, configure_logging
from helpdesk.db.session import engine
from helpdesk.services.errors import HelpdeskError

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from helpdesk.core.rate_limit import limiter


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Helpdesk API",
    description="Multi-tenant support ticket intake and automation API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["X-Request-ID"],
)


@app.exception_handler(HelpdeskError)
async def helpdesk_error_handler(request: Request, exc: HelpdeskError):
    """Map service-layer errors to JSON responses."""
    logger.info(
        f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}",
        extra=build_log_context(route=request.url.path, method=request.method),
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ============================================================================
# Routers
# ============================================================================

from helpdesk.routers import categories, macros, tickets, triggers

app.include_router(tickets.router, prefix="/tickets", tags=["tickets"])
app.include_router(categories.router, prefix="/categories", tags=["categories"])
app.include_router(triggers.router, prefix="/triggers", tags=["automation"])
app.include_router(macros.router, prefix="/macros", tags=["automation"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
