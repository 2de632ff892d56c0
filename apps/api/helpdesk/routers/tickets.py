"""Ticket API endpoints: intake, work queue, lifecycle and macros."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from helpdesk.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_permission,
)
from helpdesk.core.policies import POLICIES
from helpdesk.core.rate_limit import limiter, ticket_create_limit
from helpdesk.schemas.auth import UserSession
from helpdesk.schemas.ticket import (
    CommentCreate,
    CommentRead,
    MacroExecutionResponse,
    TicketAssign,
    TicketCreate,
    TicketCreateResponse,
    TicketRead,
    TicketStatusChange,
)
from helpdesk.services import competency_service, macro_engine, ticket_service
from helpdesk.services.errors import NotFoundError

router = APIRouter()


@router.post(
    "",
    response_model=TicketCreateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(ticket_create_limit)
def create_ticket(
    request: Request,
    data: TicketCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Open a ticket; clinic triggers run before the response is returned."""
    result = ticket_service.create_ticket(
        db,
        actor_id=session.user_id,
        title=data.title,
        description=data.description,
        category_id=data.category_id,
        visibility=data.visibility.value if data.visibility else None,
        priority=data.priority,
        clinic_id=data.clinic_id,
    )
    db.commit()
    return TicketCreateResponse(
        ticket_id=result.ticket_id,
        ticket_number=result.ticket_number,
        triggers=result.triggers.to_dict(),
    )


@router.get("/manage", response_model=list[TicketRead])
def list_tickets_to_manage(
    session: UserSession = Depends(
        require_permission(POLICIES["tickets"].actions["manage"])
    ),
    db: Session = Depends(get_db),
):
    """Agent work queue."""
    return competency_service.tickets_to_manage(db, session.user_id)


@router.get("/{ticket_id}", response_model=TicketRead)
def get_ticket(
    ticket_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return ticket_service.get_ticket(db, ticket_id, session.user_id)


@router.post(
    "/{ticket_id}/assign",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def assign_ticket(
    ticket_id: UUID,
    data: TicketAssign,
    session: UserSession = Depends(
        require_permission(POLICIES["tickets"].actions["assign"])
    ),
    db: Session = Depends(get_db),
):
    ticket = ticket_service.assign_ticket(db, ticket_id, session.user_id, data.assignee_id)
    db.commit()
    db.refresh(ticket)
    return ticket


@router.post(
    "/{ticket_id}/status",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def change_ticket_status(
    ticket_id: UUID,
    data: TicketStatusChange,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    ticket = ticket_service.change_ticket_status(db, ticket_id, session.user_id, data.status)
    db.commit()
    db.refresh(ticket)
    return ticket


@router.post(
    "/{ticket_id}/comments",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def add_comment(
    ticket_id: UUID,
    data: CommentCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    comment = ticket_service.add_comment(
        db, ticket_id, session.user_id, data.content, is_internal=data.is_internal
    )
    db.commit()
    db.refresh(comment)
    return comment


@router.post(
    "/{ticket_id}/nudge",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def nudge_ticket(
    ticket_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Ask for resolution (creator only, rate limited per ticket)."""
    ticket = ticket_service.nudge_ticket(db, ticket_id, session.user_id)
    db.commit()
    db.refresh(ticket)
    return ticket


@router.post(
    "/{ticket_id}/macros/{macro_id}",
    response_model=MacroExecutionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def execute_macro(
    ticket_id: UUID,
    macro_id: UUID,
    session: UserSession = Depends(
        require_permission(POLICIES["tickets"].actions["run_macro"])
    ),
    db: Session = Depends(get_db),
):
    """Replay a macro on a ticket of one of the agent's clinics."""
    ticket = ticket_service.get_ticket(db, ticket_id, session.user_id)
    if ticket.clinic_id not in session.clinic_ids:
        raise NotFoundError("Ticket not found")
    result = macro_engine.execute_macro(db, macro_id, ticket.id, session.user_id)
    db.commit()
    return MacroExecutionResponse(**result.to_dict())
