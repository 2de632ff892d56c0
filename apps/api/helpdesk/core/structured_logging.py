"""Structured logging helpers (ids only, never ticket content)."""

import logging
from typing import Any

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for API and CLI entry points."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_log_context(
    *,
    user_id: str | None = None,
    clinic_id: str | None = None,
    ticket_id: str | None = None,
    ticket_number: int | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict for `extra=`."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if clinic_id:
        context["clinic_id"] = clinic_id
    if ticket_id:
        context["ticket_id"] = ticket_id
    if ticket_number is not None:
        context["ticket_number"] = ticket_number
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
