"""Ticket status directory."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from helpdesk.db.enums import TicketStatusSlug
from helpdesk.db.models import TicketStatus

logger = logging.getLogger(__name__)

DEFAULT_STATUSES: list[dict] = [
    {
        "name": "Open",
        "slug": TicketStatusSlug.OPEN.value,
        "color": "#ef4444",
        "order": 1,
        "is_final": False,
    },
    {
        "name": "In Progress",
        "slug": TicketStatusSlug.IN_PROGRESS.value,
        "color": "#f59e0b",
        "order": 2,
        "is_final": False,
    },
    {
        "name": "Closed",
        "slug": TicketStatusSlug.CLOSED.value,
        "color": "#22c55e",
        "order": 3,
        "is_final": True,
    },
]


def get_status_by_slug(db: Session, slug: str) -> TicketStatus | None:
    return db.execute(
        select(TicketStatus).where(TicketStatus.slug == slug)
    ).scalar_one_or_none()


def get_status(db: Session, status_id: UUID) -> TicketStatus | None:
    return db.get(TicketStatus, status_id)


def resolve_status(db: Session, reference: str | UUID | None) -> TicketStatus | None:
    """
    Resolve a status from a directory id or a slug.

    Macros written before the directory existed store slugs; newer ones
    store ids. Returns None for unknown or inactive statuses.
    """
    if reference is None:
        return None
    status: TicketStatus | None = None
    if isinstance(reference, UUID):
        status = get_status(db, reference)
    else:
        value = str(reference).strip()
        if not value:
            return None
        try:
            status = get_status(db, UUID(value))
        except ValueError:
            status = None
        if status is None:
            status = get_status_by_slug(db, value)
    if status is None or not status.is_active:
        return None
    return status


def list_active_statuses(db: Session) -> list[TicketStatus]:
    return list(
        db.execute(
            select(TicketStatus)
            .where(TicketStatus.is_active.is_(True))
            .order_by(TicketStatus.order)
        )
        .scalars()
        .all()
    )


def initialize_default_statuses(db: Session) -> list[TicketStatus]:
    """Create the system statuses that are missing. Idempotent."""
    created: list[TicketStatus] = []
    for defaults in DEFAULT_STATUSES:
        if get_status_by_slug(db, defaults["slug"]):
            continue
        status = TicketStatus(is_system=True, **defaults)
        db.add(status)
        created.append(status)
    db.flush()
    if created:
        logger.info(f"Initialized {len(created)} default ticket statuses")
    return created
