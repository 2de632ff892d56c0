"""Agent competencies and the "tickets to manage" work queue."""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import and_, delete, false, or_, select
from sqlalchemy.orm import Session

from helpdesk.core import permissions as perms
from helpdesk.db.enums import AuditAction, AuditEntityType
from helpdesk.db.models import Category, Ticket, User, UserCompetency
from helpdesk.services import audit_service, user_service
from helpdesk.services.errors import NoTenantError, NotFoundError, UnauthorizedError

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def get_user_competencies(db: Session, user_id: UUID) -> list[UUID]:
    """Category ids the user is competent for."""
    return list(
        db.execute(
            select(UserCompetency.category_id).where(UserCompetency.user_id == user_id)
        )
        .scalars()
        .all()
    )


def set_user_competencies(
    db: Session,
    user_id: UUID,
    category_ids: list[UUID],
    actor_id: UUID | None = None,
) -> list[UUID]:
    """Replace the user's competency set."""
    if not db.get(User, user_id):
        raise NotFoundError("User not found")
    wanted = list(dict.fromkeys(category_ids))
    if wanted:
        found = set(
            db.execute(
                select(Category.id).where(
                    Category.id.in_(wanted), Category.deleted_at.is_(None)
                )
            ).scalars()
        )
        missing = [c for c in wanted if c not in found]
        if missing:
            raise NotFoundError(f"Category not found: {missing[0]}")

    db.execute(delete(UserCompetency).where(UserCompetency.user_id == user_id))
    for category_id in wanted:
        db.add(UserCompetency(user_id=user_id, category_id=category_id))
    db.flush()

    audit_service.log_event(
        db,
        AuditEntityType.USER_COMPETENCY,
        user_id,
        AuditAction.UPDATED,
        user_id=actor_id,
        changes={"category_ids": wanted},
    )
    return wanted


def list_agents_with_competencies(
    db: Session,
    clinic_id: UUID,
) -> list[tuple[User, list[UUID]]]:
    """Active agents of a clinic with their competency category ids."""
    agents: list[tuple[User, list[UUID]]] = []
    users = db.execute(select(User).where(User.is_active.is_(True)).order_by(User.display_name))
    for user in users.scalars():
        if not perms.can_manage_all_tickets(user_service.get_user_permissions(db, user)):
            continue
        if not user_service.is_clinic_member(db, user.id, clinic_id):
            continue
        agents.append((user, get_user_competencies(db, user.id)))
    return agents


def _sort_key(ticket: Ticket) -> tuple:
    nudged = (ticket.nudge_count or 0) > 0
    last_nudge = (ticket.last_nudge_at or _EPOCH).timestamp() if nudged else 0.0
    created = (ticket.created_at or _EPOCH).timestamp()
    return (0 if nudged else 1, -last_nudge, -created, -ticket.ticket_number)


def tickets_to_manage(db: Session, agent_id: UUID) -> list[Ticket]:
    """
    Work queue for an agent, across all of the agent's clinics.

    Includes tickets assigned to the agent, unassigned tickets in the agent's
    competencies (all unassigned tickets when the agent has none) and tickets
    assigned to someone else within the agent's competencies. Nudged tickets
    come first, most recent nudge first; the rest newest first.
    """
    agent = user_service.get_active_user(db, agent_id)
    if not agent:
        raise UnauthorizedError("User not found")
    if not perms.can_manage_all_tickets(user_service.get_user_permissions(db, agent)):
        return []

    clinic_ids = user_service.get_user_clinic_ids(db, agent.id)
    if not clinic_ids:
        raise NoTenantError("User has no clinic assigned")

    competencies = get_user_competencies(db, agent.id)
    in_competencies = Ticket.category_id.in_(competencies) if competencies else false()
    unassigned = Ticket.assignee_id.is_(None)
    if competencies:
        unassigned = and_(unassigned, in_competencies)

    query = select(Ticket).where(
        Ticket.clinic_id.in_(clinic_ids),
        or_(
            Ticket.assignee_id == agent.id,
            unassigned,
            and_(
                Ticket.assignee_id.is_not(None),
                Ticket.assignee_id != agent.id,
                in_competencies,
            ),
        ),
    )
    tickets = list(db.execute(query).scalars().all())
    tickets.sort(key=_sort_key)
    return tickets
