"""Tests for macro execution and macro administration."""

import uuid

import pytest

from helpdesk.db.models import Ticket, TicketComment
from helpdesk.services import macro_engine, macro_service, ticket_service
from helpdesk.services.errors import (
    AccessDeniedError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)


@pytest.fixture
def ticket(db, requester, category) -> Ticket:
    result = ticket_service.create_ticket(db, requester.id, "Scanner offline", "", category.id)
    return db.get(Ticket, result.ticket_id)


def _macro(db, clinic, actions, **kwargs):
    return macro_service.create_macro(
        db, clinic_id=clinic.id, name=kwargs.pop("name", "Triage"), category="hardware",
        actions=actions, **kwargs
    )


def test_actions_run_in_order(db, clinic, agent, ticket, statuses):
    macro = _macro(db, clinic, [
        {"type": "assign_user", "value": str(agent.id)},
        {"type": "change_status", "value": "in_progress"},
        {"type": "set_priority", "value": "3"},
        {"type": "add_comment", "value": "Taking a look."},
    ])

    result = macro_engine.execute_macro(db, macro.id, ticket.id, agent.id)

    assert result.success is True
    assert result.macro_name == "Triage"
    assert [o.action_type for o in result.applied] == [
        "assign_user", "change_status", "set_priority", "add_comment",
    ]
    assert ticket.assignee_id == agent.id
    assert ticket.status == "in_progress"
    assert ticket.status_id == statuses["in_progress"].id
    assert ticket.priority == 3
    comment = db.query(TicketComment).filter(TicketComment.ticket_id == ticket.id).one()
    assert comment.author_id == agent.id


def test_partial_failure_keeps_going(db, clinic, agent, ticket):
    macro = _macro(db, clinic, [
        {"type": "change_status", "value": "waiting_on_vendor"},
        {"type": "add_comment", "value": "Escalated."},
        {"type": "set_priority", "value": 7},
    ])

    result = macro_engine.execute_macro(db, macro.id, ticket.id, agent.id)

    assert result.success is True
    assert [o.action_type for o in result.applied] == ["add_comment"]
    assert [o.action_type for o in result.skipped] == ["change_status", "set_priority"]
    assert ticket.status == "open"
    assert ticket.priority == 1


def test_action_after_a_skipped_one_still_runs(db, clinic, agent, ticket, statuses):
    macro = _macro(db, clinic, [
        {"type": "add_comment", "value": "Checking the cabling."},
        {"type": "change_status", "value": "nonexistent"},
        {"type": "change_status", "value": "closed"},
    ])

    result = macro_engine.execute_macro(db, macro.id, ticket.id, agent.id)

    assert result.success is True
    assert [(o.action_type, o.value) for o in result.applied] == [
        ("add_comment", "Checking the cabling."),
        ("change_status", "closed"),
    ]
    assert [(o.action_type, o.value) for o in result.skipped] == [("change_status", "nonexistent")]
    assert result.skipped[0].reason == "Status not found: nonexistent"
    assert ticket.status == "closed"
    assert ticket.status_id == statuses["closed"].id
    comments = db.query(TicketComment).filter(TicketComment.ticket_id == ticket.id).all()
    assert [c.content for c in comments] == ["Checking the cabling."]


def test_later_action_overrides_earlier(db, clinic, agent, ticket, statuses):
    macro = _macro(db, clinic, [
        {"type": "change_status", "value": "in_progress"},
        {"type": "change_status", "value": "closed"},
    ])
    macro_engine.execute_macro(db, macro.id, ticket.id, agent.id)
    assert ticket.status == "closed"


def test_unknown_actor(db, clinic, ticket):
    macro = _macro(db, clinic, [{"type": "add_comment", "value": "x"}])
    with pytest.raises(UnauthorizedError):
        macro_engine.execute_macro(db, macro.id, ticket.id, uuid.uuid4())


def test_missing_macro_or_ticket(db, clinic, agent, ticket):
    macro = _macro(db, clinic, [{"type": "add_comment", "value": "x"}])
    with pytest.raises(NotFoundError):
        macro_engine.execute_macro(db, uuid.uuid4(), ticket.id, agent.id)
    with pytest.raises(NotFoundError):
        macro_engine.execute_macro(db, macro.id, uuid.uuid4(), agent.id)


def test_inactive_macro(db, clinic, agent, ticket):
    macro = _macro(db, clinic, [{"type": "add_comment", "value": "x"}], is_active=False)
    with pytest.raises(ValidationError):
        macro_engine.execute_macro(db, macro.id, ticket.id, agent.id)


def test_macro_from_other_clinic(db, other_clinic, agent, ticket):
    macro = _macro(db, other_clinic, [{"type": "add_comment", "value": "x"}])
    with pytest.raises(AccessDeniedError):
        macro_engine.execute_macro(db, macro.id, ticket.id, agent.id)


# =============================================================================
# Administration
# =============================================================================

def test_create_macro_validates_actions(db, clinic):
    with pytest.raises(ValidationError):
        _macro(db, clinic, [])
    with pytest.raises(ValidationError):
        _macro(db, clinic, [{"type": "send_fax", "value": "1"}])


def test_create_macro_keeps_action_order(db, clinic):
    macro = _macro(db, clinic, [
        {"type": "set_priority", "value": 2, "order": 1},
        {"type": "add_comment", "value": "done"},
    ])
    assert macro.actions == [
        {"type": "set_priority", "value": 2, "order": 1},
        {"type": "add_comment", "value": "done"},
    ]


def test_list_active_macros_for_category(db, clinic):
    active = _macro(db, clinic, [{"type": "add_comment", "value": "a"}], name="Active")
    _macro(db, clinic, [{"type": "add_comment", "value": "b"}], name="Inactive", is_active=False)

    found = macro_service.list_active_macros_for_category(db, clinic.id, "hardware")
    assert [m.id for m in found] == [active.id]


def test_update_and_delete_scoped_to_clinics(db, clinic, other_clinic):
    macro = _macro(db, clinic, [{"type": "add_comment", "value": "a"}])

    with pytest.raises(NotFoundError):
        macro_service.update_macro(db, macro.id, clinic_ids=[other_clinic.id], name="Renamed")

    updated = macro_service.update_macro(db, macro.id, clinic_ids=[clinic.id], name="Renamed")
    assert updated.name == "Renamed"

    macro_service.delete_macro(db, macro.id, clinic_ids=[clinic.id])
    assert macro_service.get_macro(db, macro.id) is None


# =============================================================================
# Approval
# =============================================================================

def test_macro_requiring_approval_cannot_run(db, clinic, agent, ticket):
    macro = _macro(db, clinic, [{"type": "add_comment", "value": "x"}], requires_approval=True)

    assert macro.is_active is False
    assert macro.is_pending_approval
    assert macro_service.list_active_macros_for_category(db, clinic.id, "hardware") == []
    with pytest.raises(ValidationError, match="awaiting approval"):
        macro_engine.execute_macro(db, macro.id, ticket.id, agent.id)
    with pytest.raises(ValidationError):
        macro_service.update_macro(db, macro.id, is_active=True)


def test_approve_activates_macro(db, clinic, admin, agent, ticket):
    macro = _macro(db, clinic, [{"type": "set_priority", "value": 2}], requires_approval=True)
    assert [m.id for m in macro_service.list_pending_macros(db, [clinic.id])] == [macro.id]

    approved = macro_service.approve_macro(db, macro.id, admin.id, clinic_ids=[clinic.id])

    assert approved.is_approved is True
    assert approved.is_active is True
    assert approved.approved_by == admin.id
    assert approved.approved_at is not None
    assert macro_service.list_pending_macros(db, [clinic.id]) == []
    assert macro_engine.execute_macro(db, macro.id, ticket.id, agent.id).success is True
    assert ticket.priority == 2

    with pytest.raises(ValidationError):
        macro_service.approve_macro(db, macro.id, admin.id)


def test_reject_keeps_macro_inactive_with_reason(db, clinic, admin, agent, ticket):
    macro = _macro(db, clinic, [{"type": "add_comment", "value": "x"}], requires_approval=True)

    rejected = macro_service.reject_macro(db, macro.id, admin.id, reason="  ")

    assert rejected.is_active is False
    assert rejected.rejected_by == admin.id
    assert rejected.rejection_reason == macro_service.DEFAULT_REJECTION_REASON
    assert macro_service.list_pending_macros(db, [clinic.id]) == []
    with pytest.raises(ValidationError, match="rejected"):
        macro_engine.execute_macro(db, macro.id, ticket.id, agent.id)

    reapproved = macro_service.approve_macro(db, macro.id, admin.id)
    assert reapproved.rejected_at is None
    assert reapproved.is_active is True


def test_approval_checks(db, clinic, other_clinic, admin):
    plain = _macro(db, clinic, [{"type": "add_comment", "value": "x"}], name="Plain")
    with pytest.raises(ValidationError):
        macro_service.approve_macro(db, plain.id, admin.id)
    with pytest.raises(ValidationError):
        macro_service.reject_macro(db, plain.id, admin.id)

    pending = _macro(db, clinic, [{"type": "add_comment", "value": "x"}], requires_approval=True)
    with pytest.raises(NotFoundError):
        macro_service.approve_macro(db, pending.id, admin.id, clinic_ids=[other_clinic.id])
    with pytest.raises(UnauthorizedError):
        macro_service.approve_macro(db, pending.id, uuid.uuid4())
