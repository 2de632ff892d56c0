"""Trigger engine: evaluates clinic rules against a newly created ticket.

Every active trigger of the ticket's clinic is evaluated in `position` order.
Triggers are independent: a later matching trigger overwrites whatever an
earlier one wrote (last applicable trigger wins). Society scoping of triggers
only affects who can see them, not whether they fire.
"""

import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from helpdesk.db.enums import AutomationSource
from helpdesk.db.models import Category, Ticket, Trigger
from helpdesk.services import automation_actions
from helpdesk.services.automation_actions import ActionContext, ActionOutcome

logger = logging.getLogger(__name__)

MALFORMED_RULE = "malformed_rule"


@dataclass
class TriggerRunResult:
    """What happened when triggers ran for one ticket."""

    ticket_id: UUID
    evaluated: int = 0
    matched: list[UUID] = field(default_factory=list)
    applied: list[ActionOutcome] = field(default_factory=list)
    skipped: list[ActionOutcome] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "evaluated": self.evaluated,
            "matched": [str(trigger_id) for trigger_id in self.matched],
            "applied": [outcome.to_dict() for outcome in self.applied],
            "skipped": [outcome.to_dict() for outcome in self.skipped],
        }


def load_active_triggers(db: Session, clinic_id: UUID) -> list[Trigger]:
    return list(
        db.execute(
            select(Trigger)
            .where(Trigger.clinic_id == clinic_id, Trigger.is_active.is_(True))
            .order_by(Trigger.position, Trigger.created_at, Trigger.id)
        )
        .scalars()
        .all()
    )


def fire_triggers(db: Session, ticket: Ticket, category: Category) -> TriggerRunResult:
    """Evaluate and apply the clinic's active triggers. Never raises."""
    result = TriggerRunResult(ticket_id=ticket.id)
    facts = automation_actions.TicketFacts.capture(ticket, category)
    try:
        triggers = load_active_triggers(db, ticket.clinic_id)
    except Exception:
        logger.exception(f"Failed to load triggers for clinic {ticket.clinic_id}")
        return result

    for trigger in triggers:
        result.evaluated += 1
        try:
            condition = automation_actions.parse_condition(trigger.conditions)
            if not automation_actions.evaluate_condition(condition, facts):
                continue
            action = automation_actions.parse_action(trigger.actions)
        except Exception as e:
            # Malformed stored rule: skip this trigger, keep evaluating the rest
            logger.warning(f"Trigger {trigger.id} skipped, malformed rule: {e!r}")
            result.skipped.append(
                ActionOutcome(
                    action_type=MALFORMED_RULE,
                    rule_id=trigger.id,
                    reason=f"Malformed trigger rule: {type(e).__name__}",
                )
            )
            continue

        result.matched.append(trigger.id)
        context = ActionContext(
            source=AutomationSource.TRIGGER,
            author_id=trigger.created_by,
            rule_id=trigger.id,
        )
        outcome = automation_actions.apply_action(db, ticket, action, context)
        if outcome.applied:
            result.applied.append(outcome)
        else:
            result.skipped.append(outcome)

    if result.matched:
        logger.info(
            f"Ticket {ticket.ticket_number}: {len(result.matched)} trigger(s) matched, "
            f"{len(result.applied)} applied, {len(result.skipped)} skipped"
        )
    return result
