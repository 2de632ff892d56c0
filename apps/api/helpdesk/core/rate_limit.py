"""Rate limiting configuration for the helpdesk API."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from helpdesk.core.config import settings

# In-memory storage: the API runs as a single writer process per deployment.
IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    default_limits=DEFAULT_LIMITS,
    enabled=not IS_TESTING,
)


def ticket_create_limit() -> str:
    """Per-client limit for ticket creation."""
    return f"{max(settings.RATE_LIMIT_TICKET_CREATE, 1)}/minute"
