"""Ticket intake and lifecycle operations.

`create_ticket` is the intake pipeline: actor and tenant resolution, input
validation, category access, number allocation, persistence, then trigger
evaluation in the same transaction. Anything that fails before the number is
allocated aborts the request. Trigger failures never retract a ticket.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from helpdesk.core import permissions as perms
from helpdesk.core.config import settings
from helpdesk.core.structured_logging import build_log_context
from helpdesk.db.enums import (
    MAX_TICKET_PRIORITY,
    MIN_TICKET_PRIORITY,
    DEFAULT_TICKET_PRIORITY,
    AuditAction,
    AuditEntityType,
    TicketStatusSlug,
    TicketVisibility,
)
from helpdesk.db.models import Category, Clinic, Ticket, TicketComment, User
from helpdesk.services import (
    audit_service,
    category_access,
    sequence_service,
    status_service,
    trigger_engine,
    user_service,
)
from helpdesk.services.errors import (
    AccessDeniedError,
    NoTenantError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from helpdesk.services.trigger_engine import TriggerRunResult

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
NUDGE_COMMENT = "The requester asked for this ticket to be resolved."


@dataclass
class TicketCreateResult:
    ticket_id: UUID
    ticket_number: int
    triggers: TriggerRunResult


@dataclass
class ActorContext:
    """Resolved actor: user, capabilities and active clinic memberships."""

    user: User
    permissions: list[str]
    clinic_ids: list[UUID]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_actor(db: Session, actor_id: UUID | None) -> ActorContext:
    user = user_service.get_active_user(db, actor_id)
    if not user:
        raise UnauthorizedError("User not found")
    return ActorContext(
        user=user,
        permissions=user_service.get_user_permissions(db, user),
        clinic_ids=user_service.get_user_clinic_ids(db, user.id),
    )


def _validate_priority(priority: int | None, permissions: list[str]) -> int:
    if priority is None:
        return DEFAULT_TICKET_PRIORITY
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise ValidationError("Priority must be an integer")
    if not MIN_TICKET_PRIORITY <= priority <= MAX_TICKET_PRIORITY:
        raise ValidationError(
            f"Priority must be between {MIN_TICKET_PRIORITY} and {MAX_TICKET_PRIORITY}"
        )
    if not perms.can_set_priority(permissions):
        return DEFAULT_TICKET_PRIORITY
    return priority


def _validate_visibility(visibility: str | None, clinic: Clinic) -> str:
    if visibility is None:
        return TicketVisibility.PRIVATE.value
    try:
        value = TicketVisibility(visibility).value
    except ValueError:
        raise ValidationError(f"Invalid visibility: {visibility}")
    if value == TicketVisibility.PUBLIC.value and not clinic.allow_public_tickets:
        raise ValidationError("Public tickets are disabled for this clinic")
    return value


def create_ticket(
    db: Session,
    actor_id: UUID,
    title: str,
    description: str,
    category_id: UUID,
    visibility: str | None = None,
    priority: int | None = None,
    clinic_id: UUID | None = None,
) -> TicketCreateResult:
    """
    Create a ticket and run the clinic's triggers against it.

    Raises:
        UnauthorizedError: actor unknown or inactive
        NoTenantError: actor has no active clinic
        AccessDeniedError: requested clinic or category not allowed
        ValidationError: bad input or an inactive category
        NotFoundError: category missing or soft-deleted
    """
    actor = resolve_actor(db, actor_id)
    if not actor.clinic_ids:
        raise NoTenantError("User is not associated with any clinic")

    if clinic_id is not None:
        if clinic_id not in actor.clinic_ids:
            raise AccessDeniedError("User is not a member of the requested clinic")
        resolved_clinic_id = clinic_id
    else:
        resolved_clinic_id = user_service.resolve_clinic_id(actor.user, actor.clinic_ids)
    clinic = db.get(Clinic, resolved_clinic_id)

    clean_title = (title or "").strip()
    if not clean_title:
        raise ValidationError("Title is required")
    if len(clean_title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters")
    clean_description = (description or "").strip()

    category = db.get(Category, category_id)
    if category is None or category.deleted_at is not None:
        raise NotFoundError("Category not found")
    if not category.is_active:
        raise ValidationError("Category is not active")
    if not category_access.can_access_category(db, actor.user.id, category.id):
        raise AccessDeniedError("Category not available for your societies")

    resolved_priority = _validate_priority(priority, actor.permissions)
    resolved_visibility = _validate_visibility(visibility, clinic)

    ticket_number = sequence_service.next_number(db, settings.TICKET_SEQUENCE_NAME)
    open_status = status_service.get_status_by_slug(db, TicketStatusSlug.OPEN.value)

    ticket = Ticket(
        ticket_number=ticket_number,
        title=clean_title,
        description=clean_description,
        status=TicketStatusSlug.OPEN.value,
        status_id=open_status.id if open_status else None,
        category_id=category.id,
        clinic_id=clinic.id,
        creator_id=actor.user.id,
        visibility=resolved_visibility,
        priority=resolved_priority,
        last_activity_at=_now(),
    )
    db.add(ticket)
    db.flush()

    log_context = build_log_context(
        user_id=str(actor.user.id),
        clinic_id=str(clinic.id),
        ticket_id=str(ticket.id),
        ticket_number=ticket_number,
    )
    logger.info(f"Ticket {ticket_number} created", extra=log_context)

    try:
        run = trigger_engine.fire_triggers(db, ticket, category)
    except Exception:
        logger.exception(f"Trigger evaluation failed for ticket {ticket_number}", extra=log_context)
        run = TriggerRunResult(ticket_id=ticket.id)

    audit_service.log_event(
        db,
        AuditEntityType.TICKET,
        ticket.id,
        AuditAction.CREATED,
        user_id=actor.user.id,
        changes={
            "ticket_number": ticket_number,
            "category_id": category.id,
            "priority": resolved_priority,
            "triggers_matched": [str(t) for t in run.matched],
        },
    )
    return TicketCreateResult(ticket_id=ticket.id, ticket_number=ticket_number, triggers=run)


# =============================================================================
# Read access
# =============================================================================


def can_view_ticket(ticket: Ticket, actor: ActorContext) -> bool:
    user_id = actor.user.id
    if ticket.creator_id == user_id or ticket.assignee_id == user_id:
        return True
    if ticket.clinic_id not in actor.clinic_ids:
        return False
    if perms.can_manage_all_tickets(actor.permissions):
        return True
    return ticket.visibility == TicketVisibility.PUBLIC.value


def get_ticket(db: Session, ticket_id: UUID, actor_id: UUID) -> Ticket:
    """Ticket visible to the actor, else NotFoundError."""
    actor = resolve_actor(db, actor_id)
    ticket = db.get(Ticket, ticket_id)
    if not ticket or not can_view_ticket(ticket, actor):
        raise NotFoundError("Ticket not found")
    return ticket


def _require_clinic_ticket(db: Session, ticket_id: UUID, actor: ActorContext) -> Ticket:
    ticket = db.get(Ticket, ticket_id)
    if not ticket:
        raise NotFoundError("Ticket not found")
    if ticket.clinic_id not in actor.clinic_ids and ticket.creator_id != actor.user.id:
        raise NotFoundError("Ticket not found")
    return ticket


# =============================================================================
# Mutations
# =============================================================================


def assign_ticket(
    db: Session,
    ticket_id: UUID,
    actor_id: UUID,
    assignee_id: UUID | None,
) -> Ticket:
    """Assign (or unassign with None) a ticket to an active clinic member."""
    actor = resolve_actor(db, actor_id)
    ticket = _require_clinic_ticket(db, ticket_id, actor)
    if not perms.can_assign_tickets(actor.permissions):
        raise AccessDeniedError("Insufficient permissions to assign tickets")

    if assignee_id is not None:
        assignee = user_service.get_active_user(db, assignee_id)
        if not assignee or not user_service.is_clinic_member(db, assignee.id, ticket.clinic_id):
            raise ValidationError("Invalid assignee")

    old_assignee_id = ticket.assignee_id
    ticket.assignee_id = assignee_id
    ticket.last_activity_at = _now()
    db.flush()

    audit_service.log_event(
        db,
        AuditEntityType.TICKET,
        ticket.id,
        AuditAction.ASSIGNED if assignee_id else AuditAction.UNASSIGNED,
        user_id=actor.user.id,
        changes={"assignee_id": {"from": old_assignee_id, "to": assignee_id}},
    )
    return ticket


def change_ticket_status(
    db: Session,
    ticket_id: UUID,
    actor_id: UUID,
    status: str,
) -> Ticket:
    """Move a ticket to a directory status (id or slug)."""
    actor = resolve_actor(db, actor_id)
    ticket = _require_clinic_ticket(db, ticket_id, actor)

    allowed = (
        ticket.assignee_id == actor.user.id
        or ticket.creator_id == actor.user.id
        or perms.can_edit_tickets(actor.permissions)
    )
    if not allowed:
        raise AccessDeniedError("Insufficient permissions to change ticket status")

    resolved = status_service.resolve_status(db, status)
    if not resolved:
        raise ValidationError(f"Unknown status: {status}")

    old_status = ticket.status
    ticket.status = resolved.slug
    ticket.status_id = resolved.id
    ticket.last_activity_at = _now()
    db.flush()

    audit_service.log_event(
        db,
        AuditEntityType.TICKET,
        ticket.id,
        AuditAction.STATUS_CHANGED,
        user_id=actor.user.id,
        changes={"status": {"from": old_status, "to": resolved.slug}},
    )
    return ticket


def add_comment(
    db: Session,
    ticket_id: UUID,
    actor_id: UUID,
    content: str,
    is_internal: bool = False,
) -> TicketComment:
    """Comment as creator, assignee or clinic member."""
    actor = resolve_actor(db, actor_id)
    ticket = db.get(Ticket, ticket_id)
    if not ticket:
        raise NotFoundError("Ticket not found")

    allowed = (
        ticket.creator_id == actor.user.id
        or ticket.assignee_id == actor.user.id
        or ticket.clinic_id in actor.clinic_ids
    )
    if not allowed:
        raise AccessDeniedError("Insufficient permissions to comment on this ticket")

    body = (content or "").strip()
    if not body:
        raise ValidationError("Comment cannot be empty")

    comment = TicketComment(
        ticket_id=ticket.id,
        author_id=actor.user.id,
        content=body,
        is_internal=is_internal,
    )
    db.add(comment)
    ticket.last_activity_at = _now()
    db.flush()

    audit_service.log_event(
        db,
        AuditEntityType.TICKET,
        ticket.id,
        AuditAction.COMMENTED,
        user_id=actor.user.id,
        changes={"comment_id": comment.id, "is_internal": is_internal},
    )
    return comment


def nudge_ticket(db: Session, ticket_id: UUID, actor_id: UUID) -> Ticket:
    """Creator asks for resolution; at most once per cooldown window."""
    actor = resolve_actor(db, actor_id)
    ticket = db.get(Ticket, ticket_id)
    if not ticket:
        raise NotFoundError("Ticket not found")
    if ticket.creator_id != actor.user.id:
        raise AccessDeniedError("Only the ticket creator can nudge it")

    now = _now()
    cooldown = timedelta(hours=settings.NUDGE_COOLDOWN_HOURS)
    if ticket.last_nudge_at and ticket.last_nudge_at > now - cooldown:
        raise ValidationError(
            f"A ticket can be nudged once every {settings.NUDGE_COOLDOWN_HOURS} hours"
        )

    ticket.nudge_count = (ticket.nudge_count or 0) + 1
    ticket.last_nudge_at = now
    ticket.last_nudge_by = actor.user.id
    ticket.last_activity_at = now
    db.add(TicketComment(ticket_id=ticket.id, author_id=actor.user.id, content=NUDGE_COMMENT))
    db.flush()

    audit_service.log_event(
        db,
        AuditEntityType.TICKET,
        ticket.id,
        AuditAction.NUDGED,
        user_id=actor.user.id,
        changes={"nudge_count": ticket.nudge_count},
    )
    logger.info(f"Ticket {ticket.ticket_number} nudged ({ticket.nudge_count})")
    return ticket
