"""Action and condition vocabulary shared by triggers and macros.

Raw rule payloads are stored as JSON `{type, value}` dicts. They are parsed
into a closed set of variants, and each action variant has exactly one handler
in ACTION_HANDLERS. Handlers raise on any problem; `apply_action` runs each one
inside a SAVEPOINT and turns failures into a skipped outcome.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from helpdesk.db.enums import (
    MAX_TICKET_PRIORITY,
    MIN_TICKET_PRIORITY,
    AutomationSource,
    TriggerActionType,
    TriggerConditionType,
)
from helpdesk.db.models import Category, Ticket, TicketComment, User
from helpdesk.services import status_service
from helpdesk.services.errors import DependencyNotFoundError, HelpdeskError, ValidationError

logger = logging.getLogger(__name__)


# =============================================================================
# Conditions
# =============================================================================


@dataclass(frozen=True)
class CategoryMatch:
    slug: str


@dataclass(frozen=True)
class StatusChange:
    status: str


@dataclass(frozen=True)
class PriorityCompare:
    operator: str
    value: int | None


@dataclass(frozen=True)
class UnknownCondition:
    condition_type: str


Condition = CategoryMatch | StatusChange | PriorityCompare | UnknownCondition


def _parse_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def parse_condition(raw: dict[str, Any] | None) -> Condition:
    raw = raw or {}
    condition_type = str(raw.get("type") or "")
    value = raw.get("value")

    if condition_type == TriggerConditionType.CATEGORY_MATCH.value:
        return CategoryMatch(slug=str(value or ""))
    if condition_type == TriggerConditionType.STATUS_CHANGE.value:
        return StatusChange(status=str(value or ""))
    if condition_type in (
        TriggerConditionType.PRIORITY_EQ.value,
        TriggerConditionType.PRIORITY_GTE.value,
        TriggerConditionType.PRIORITY_LTE.value,
    ):
        return PriorityCompare(operator=condition_type, value=_parse_int(value))
    return UnknownCondition(condition_type=condition_type)


@dataclass(frozen=True)
class TicketFacts:
    """Ticket attributes conditions are evaluated against, captured at creation."""

    category_slug: str
    status: str
    priority: int

    @classmethod
    def capture(cls, ticket: Ticket, category: Category) -> "TicketFacts":
        return cls(category_slug=category.slug, status=ticket.status, priority=ticket.priority)


def evaluate_condition(condition: Condition, facts: TicketFacts) -> bool:
    """Whether a parsed condition holds for the captured ticket facts."""
    if isinstance(condition, CategoryMatch):
        return bool(condition.slug) and condition.slug == facts.category_slug

    if isinstance(condition, StatusChange):
        return condition.status == facts.status

    if isinstance(condition, PriorityCompare):
        if condition.value is None:
            return False
        if condition.operator == TriggerConditionType.PRIORITY_EQ.value:
            return facts.priority == condition.value
        if condition.operator == TriggerConditionType.PRIORITY_GTE.value:
            return facts.priority >= condition.value
        return facts.priority <= condition.value

    logger.warning(f"Unknown trigger condition type: {condition.condition_type!r}")
    return False


# =============================================================================
# Actions
# =============================================================================


@dataclass(frozen=True)
class AssignUser:
    user_ref: str


@dataclass(frozen=True)
class ChangeStatus:
    status_ref: str


@dataclass(frozen=True)
class SetPriority:
    raw_value: Any


@dataclass(frozen=True)
class AddComment:
    content: str


@dataclass(frozen=True)
class UnknownAction:
    action_type: str
    raw_value: Any = None


Action = AssignUser | ChangeStatus | SetPriority | AddComment | UnknownAction

ACTION_TYPES: dict[type, str] = {
    AssignUser: TriggerActionType.ASSIGN_USER.value,
    ChangeStatus: TriggerActionType.CHANGE_STATUS.value,
    SetPriority: TriggerActionType.SET_PRIORITY.value,
    AddComment: TriggerActionType.ADD_COMMENT.value,
}


def parse_action(raw: dict[str, Any] | None) -> Action:
    raw = raw or {}
    action_type = str(raw.get("type") or "")
    value = raw.get("value")

    if action_type == TriggerActionType.ASSIGN_USER.value:
        return AssignUser(user_ref=str(value or "").strip())
    if action_type == TriggerActionType.CHANGE_STATUS.value:
        return ChangeStatus(status_ref=str(value or "").strip())
    if action_type == TriggerActionType.SET_PRIORITY.value:
        return SetPriority(raw_value=value)
    if action_type == TriggerActionType.ADD_COMMENT.value:
        return AddComment(content=str(value or ""))
    return UnknownAction(action_type=action_type, raw_value=value)


def action_type_of(action: Action) -> str:
    if isinstance(action, UnknownAction):
        return action.action_type
    return ACTION_TYPES[type(action)]


@dataclass
class ActionContext:
    """Who is applying an action and on whose behalf comments are written."""

    source: AutomationSource
    author_id: UUID | None = None
    rule_id: UUID | None = None


@dataclass
class ActionOutcome:
    action_type: str
    value: Any = None
    applied: bool = False
    reason: str | None = None
    rule_id: UUID | None = None
    changes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "action_type": self.action_type,
            "value": self.value,
        }
        if self.rule_id is not None:
            result["rule_id"] = str(self.rule_id)
        if self.reason:
            result["reason"] = self.reason
        if self.changes:
            result["changes"] = self.changes
        return result


def _now() -> datetime:
    return datetime.now(timezone.utc)


def find_user_by_reference(db: Session, reference: str) -> User | None:
    """Active user by id or case-insensitive email."""
    if not reference:
        return None
    try:
        user = db.get(User, UUID(reference))
    except ValueError:
        user = db.execute(
            select(User).where(func.lower(User.email) == reference.lower())
        ).scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return user


def _apply_assign_user(
    db: Session, ticket: Ticket, action: AssignUser, context: ActionContext
) -> dict[str, Any]:
    user = find_user_by_reference(db, action.user_ref)
    if user is None:
        raise DependencyNotFoundError(f"User not found: {action.user_ref}")
    ticket.assignee_id = user.id
    ticket.last_activity_at = _now()
    return {"assignee_id": str(user.id)}


def _apply_change_status(
    db: Session, ticket: Ticket, action: ChangeStatus, context: ActionContext
) -> dict[str, Any]:
    if not action.status_ref:
        raise ValidationError("Status value is empty")
    status = status_service.resolve_status(db, action.status_ref)

    if context.source == AutomationSource.MACRO:
        if status is None:
            raise DependencyNotFoundError(f"Status not found: {action.status_ref}")
        ticket.status = status.slug
        ticket.status_id = status.id
        return {"status": status.slug}

    # Triggers write the configured value as-is and only link the directory
    # entry when one matches.
    ticket.status = status.slug if status else action.status_ref
    ticket.status_id = status.id if status else None
    return {"status": ticket.status}


def _apply_set_priority(
    db: Session, ticket: Ticket, action: SetPriority, context: ActionContext
) -> dict[str, Any]:
    priority = _parse_int(action.raw_value)
    if priority is None or not MIN_TICKET_PRIORITY <= priority <= MAX_TICKET_PRIORITY:
        raise ValidationError(
            f"Priority must be between {MIN_TICKET_PRIORITY} and {MAX_TICKET_PRIORITY}"
        )
    ticket.priority = priority
    return {"priority": priority}


def _apply_add_comment(
    db: Session, ticket: Ticket, action: AddComment, context: ActionContext
) -> dict[str, Any]:
    content = action.content.strip()
    if not content:
        raise ValidationError("Comment is empty")
    if context.author_id is None:
        raise DependencyNotFoundError("No author available for automated comment")
    comment = TicketComment(ticket_id=ticket.id, author_id=context.author_id, content=content)
    db.add(comment)
    db.flush()
    return {"comment_id": str(comment.id)}


ActionHandler = Callable[[Session, Ticket, Any, ActionContext], dict[str, Any]]

ACTION_HANDLERS: dict[type, ActionHandler] = {
    AssignUser: _apply_assign_user,
    ChangeStatus: _apply_change_status,
    SetPriority: _apply_set_priority,
    AddComment: _apply_add_comment,
}


def _action_value(action: Action) -> Any:
    if isinstance(action, AssignUser):
        return action.user_ref
    if isinstance(action, ChangeStatus):
        return action.status_ref
    if isinstance(action, AddComment):
        return action.content
    return action.raw_value


def apply_action(
    db: Session,
    ticket: Ticket,
    action: Action,
    context: ActionContext,
) -> ActionOutcome:
    """Apply one action in its own SAVEPOINT. Never raises."""
    outcome = ActionOutcome(
        action_type=action_type_of(action),
        value=_action_value(action),
        rule_id=context.rule_id,
    )
    handler = ACTION_HANDLERS.get(type(action))
    if handler is None:
        outcome.reason = f"Unknown action type: {outcome.action_type!r}"
        logger.warning(f"{context.source.value} skipped action on ticket {ticket.id}: {outcome.reason}")
        return outcome

    try:
        with db.begin_nested():
            outcome.changes = handler(db, ticket, action, context)
            db.flush()
    except HelpdeskError as e:
        outcome.reason = e.message or type(e).__name__
        logger.warning(
            f"{context.source.value} skipped {outcome.action_type} on ticket {ticket.id}: "
            f"{outcome.reason}"
        )
        return outcome
    except Exception as e:
        logger.exception(f"{context.source.value} action {outcome.action_type} failed: {e}")
        outcome.reason = str(e) or type(e).__name__
        return outcome

    outcome.applied = True
    return outcome
