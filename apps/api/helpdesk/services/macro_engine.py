"""Macro engine: replays a macro's ordered action list against a ticket.

Execution is partial-failure tolerant. An action that cannot be applied (for
example a status slug missing from the directory) is skipped and reported,
and the remaining actions still run.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from helpdesk.db.enums import AuditAction, AuditEntityType, AutomationSource
from helpdesk.db.models import Macro, Ticket, User
from helpdesk.services import audit_service, automation_actions
from helpdesk.services.automation_actions import ActionContext, ActionOutcome
from helpdesk.services.errors import (
    AccessDeniedError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass
class MacroExecutionResult:
    success: bool
    macro_name: str
    applied: list[ActionOutcome] = field(default_factory=list)
    skipped: list[ActionOutcome] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "macro_name": self.macro_name,
            "applied": [outcome.to_dict() for outcome in self.applied],
            "skipped": [outcome.to_dict() for outcome in self.skipped],
        }


def execute_macro(
    db: Session,
    macro_id: UUID,
    ticket_id: UUID,
    actor_id: UUID,
) -> MacroExecutionResult:
    """
    Run every action of a macro on a ticket, in list order.

    Raises:
        UnauthorizedError: actor is unknown or inactive
        NotFoundError: macro or ticket does not exist
        ValidationError: macro is not approved or not active
        AccessDeniedError: macro belongs to another clinic than the ticket
    """
    actor = db.get(User, actor_id)
    if not actor or not actor.is_active:
        raise UnauthorizedError("User not found")

    macro = db.get(Macro, macro_id)
    if not macro:
        raise NotFoundError("Macro not found")
    if macro.requires_approval and not macro.is_approved:
        if macro.rejected_at is not None:
            raise ValidationError("Macro was rejected")
        raise ValidationError("Macro is awaiting approval")
    if not macro.is_active:
        raise ValidationError("Macro is not active")

    ticket = db.get(Ticket, ticket_id)
    if not ticket:
        raise NotFoundError("Ticket not found")
    if macro.clinic_id != ticket.clinic_id:
        raise AccessDeniedError("Macro does not belong to the ticket's clinic")

    logger.info(
        f"Executing macro {macro.id} ({len(macro.actions or [])} actions) "
        f"on ticket {ticket.ticket_number}"
    )
    result = MacroExecutionResult(success=True, macro_name=macro.name)
    context = ActionContext(source=AutomationSource.MACRO, author_id=actor.id, rule_id=None)

    for raw_action in macro.actions or []:
        action = automation_actions.parse_action(raw_action)
        outcome = automation_actions.apply_action(db, ticket, action, context)
        if outcome.applied:
            result.applied.append(outcome)
        else:
            result.skipped.append(outcome)

    ticket.last_activity_at = datetime.now(timezone.utc)
    db.flush()

    audit_service.log_event(
        db,
        AuditEntityType.TICKET,
        ticket.id,
        AuditAction.MACRO_EXECUTED,
        user_id=actor.id,
        changes={
            "macro_id": macro.id,
            "applied": [outcome.action_type for outcome in result.applied],
            "skipped": [outcome.action_type for outcome in result.skipped],
        },
    )
    return result
