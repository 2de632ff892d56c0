"""Tests for ticket intake and lifecycle."""

import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from helpdesk.core.config import settings
from helpdesk.db.base import Base
from helpdesk.db.enums import AuditAction, AuditEntityType
from helpdesk.db.models import Ticket, TicketComment
from helpdesk.db.session import build_engine
from helpdesk.services import (
    audit_service,
    category_service,
    clinic_service,
    sequence_service,
    society_service,
    status_service,
    ticket_service,
    trigger_service,
    user_service,
)
from helpdesk.services.errors import (
    AccessDeniedError,
    NoTenantError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)


# =============================================================================
# Intake
# =============================================================================

def test_create_ticket_defaults(db, requester, category, clinic, statuses):
    result = ticket_service.create_ticket(db, requester.id, "  VPN down  ", "No access", category.id)
    ticket = db.get(Ticket, result.ticket_id)

    assert ticket.title == "VPN down"
    assert ticket.status == "open"
    assert ticket.status_id == statuses["open"].id
    assert ticket.priority == 1
    assert ticket.visibility == "private"
    assert ticket.clinic_id == clinic.id
    assert ticket.creator_id == requester.id
    assert ticket.assignee_id is None


def test_ticket_numbers_follow_the_sequence(db, requester, category):
    before = sequence_service.current_value(db, settings.TICKET_SEQUENCE_NAME)
    first = ticket_service.create_ticket(db, requester.id, "One", "", category.id)
    second = ticket_service.create_ticket(db, requester.id, "Two", "", category.id)

    assert first.ticket_number == before + 1
    assert second.ticket_number == before + 2


def test_requester_priority_is_pinned_to_default(db, requester, category):
    result = ticket_service.create_ticket(db, requester.id, "Urgent!", "", category.id, priority=5)
    assert db.get(Ticket, result.ticket_id).priority == 1


def test_agent_priority_is_kept(db, agent, category):
    result = ticket_service.create_ticket(db, agent.id, "Server room hot", "", category.id, priority=4)
    assert db.get(Ticket, result.ticket_id).priority == 4


@pytest.mark.parametrize("priority", [0, 6, -1])
def test_out_of_range_priority_is_rejected_for_everyone(db, requester, agent, category, priority):
    for user in (requester, agent):
        with pytest.raises(ValidationError):
            ticket_service.create_ticket(db, user.id, "Bad priority", "", category.id, priority=priority)


def test_rejected_ticket_does_not_consume_a_number(db, requester, category):
    before = sequence_service.current_value(db, settings.TICKET_SEQUENCE_NAME)
    with pytest.raises(ValidationError):
        ticket_service.create_ticket(db, requester.id, "", "", category.id)
    assert sequence_service.current_value(db, settings.TICKET_SEQUENCE_NAME) == before


def test_title_too_long(db, requester, category):
    with pytest.raises(ValidationError):
        ticket_service.create_ticket(db, requester.id, "x" * 201, "", category.id)


def test_unknown_actor(db, category):
    with pytest.raises(UnauthorizedError):
        ticket_service.create_ticket(db, uuid.uuid4(), "Ghost", "", category.id)


def test_actor_without_clinic(db, make_user, category):
    loner = make_user("requester", member_of=None, name="Loner")
    with pytest.raises(NoTenantError):
        ticket_service.create_ticket(db, loner.id, "Hello", "", category.id)


def test_foreign_clinic_is_denied(db, requester, other_clinic, category):
    with pytest.raises(AccessDeniedError):
        ticket_service.create_ticket(
            db, requester.id, "Wrong clinic", "", category.id, clinic_id=other_clinic.id
        )


def test_user_created_with_a_primary_clinic_can_file(db, roles, clinic, category):
    user = user_service.create_user(
        db, "walkin@test.com", "Walk-in", role=roles["requester"], clinic_id=clinic.id
    )
    result = ticket_service.create_ticket(db, user.id, "First day", "", category.id)
    assert db.get(Ticket, result.ticket_id).clinic_id == clinic.id
    assert user_service.get_user_clinic_ids(db, user.id) == [clinic.id]

    with pytest.raises(ValidationError):
        user_service.create_user(db, "ghost@test.com", "Ghost", clinic_id=uuid.uuid4())


def test_legacy_primary_clinic_without_membership_row(db, roles, clinic, category):
    user = user_service.create_user(db, "legacy@test.com", "Legacy", role=roles["requester"])
    user.clinic_id = clinic.id
    db.flush()

    result = ticket_service.create_ticket(db, user.id, "Old account", "", category.id)
    assert db.get(Ticket, result.ticket_id).clinic_id == clinic.id

    clinic_service.add_user_to_clinic(db, user.id, clinic.id)
    clinic_service.remove_user_from_clinic(db, user.id, clinic.id)
    with pytest.raises(NoTenantError):
        ticket_service.create_ticket(db, user.id, "Removed", "", category.id)


def test_explicit_clinic_membership_is_used(db, requester, other_clinic, category):
    clinic_service.add_user_to_clinic(db, requester.id, other_clinic.id)
    result = ticket_service.create_ticket(
        db, requester.id, "Second site", "", category.id, clinic_id=other_clinic.id
    )
    assert db.get(Ticket, result.ticket_id).clinic_id == other_clinic.id


def test_deleted_category_is_not_found(db, requester, category):
    category_service.soft_delete_category(db, category.id)
    with pytest.raises(NotFoundError):
        ticket_service.create_ticket(db, requester.id, "Lost", "", category.id)


def test_inactive_category_is_rejected(db, requester, category):
    category_service.update_category(db, category.id, is_active=False)
    before = sequence_service.current_value(db, settings.TICKET_SEQUENCE_NAME)

    with pytest.raises(ValidationError):
        ticket_service.create_ticket(db, requester.id, "Dormant", "", category.id)

    assert sequence_service.current_value(db, settings.TICKET_SEQUENCE_NAME) == before
    assert category.id not in {
        c.id for c in category_service.list_accessible_categories(db, requester.id)
    }


def test_scoped_category_requires_society(db, requester, society, scoped_category):
    with pytest.raises(AccessDeniedError):
        ticket_service.create_ticket(db, requester.id, "Scoped", "", scoped_category.id)

    society_service.assign_user_to_society(db, requester.id, society.id)
    result = ticket_service.create_ticket(db, requester.id, "Scoped", "", scoped_category.id)
    assert result.ticket_number > 0


def test_public_visibility_respects_clinic_setting(db, requester, clinic, category):
    result = ticket_service.create_ticket(
        db, requester.id, "Public", "", category.id, visibility="public"
    )
    assert db.get(Ticket, result.ticket_id).visibility == "public"

    clinic.allow_public_tickets = False
    db.flush()
    with pytest.raises(ValidationError):
        ticket_service.create_ticket(db, requester.id, "Public", "", category.id, visibility="public")


def test_creation_is_audited(db, requester, category):
    result = ticket_service.create_ticket(db, requester.id, "Audit me", "", category.id)
    events = audit_service.list_entity_events(db, AuditEntityType.TICKET, result.ticket_id)
    assert [e.action for e in events] == [AuditAction.CREATED.value]
    assert events[0].changes["ticket_number"] == result.ticket_number


# =============================================================================
# Visibility
# =============================================================================

def test_private_ticket_hidden_from_other_requesters(db, requester, make_user, agent, category):
    result = ticket_service.create_ticket(db, requester.id, "Private", "", category.id)
    neighbour = make_user("requester", name="Neighbour")

    with pytest.raises(NotFoundError):
        ticket_service.get_ticket(db, result.ticket_id, neighbour.id)
    assert ticket_service.get_ticket(db, result.ticket_id, agent.id).id == result.ticket_id
    assert ticket_service.get_ticket(db, result.ticket_id, requester.id).id == result.ticket_id


# =============================================================================
# Lifecycle
# =============================================================================

def test_assign_requires_capability(db, requester, agent, category):
    result = ticket_service.create_ticket(db, requester.id, "Assign me", "", category.id)

    with pytest.raises(AccessDeniedError):
        ticket_service.assign_ticket(db, result.ticket_id, requester.id, agent.id)

    ticket = ticket_service.assign_ticket(db, result.ticket_id, agent.id, agent.id)
    assert ticket.assignee_id == agent.id

    ticket = ticket_service.assign_ticket(db, result.ticket_id, agent.id, None)
    assert ticket.assignee_id is None


def test_assignee_must_belong_to_clinic(db, requester, agent, make_user, other_clinic, category):
    outsider = make_user("agent", member_of=other_clinic, name="Outsider")
    result = ticket_service.create_ticket(db, requester.id, "Assign", "", category.id)
    with pytest.raises(ValidationError):
        ticket_service.assign_ticket(db, result.ticket_id, agent.id, outsider.id)


def test_change_status_through_directory(db, requester, agent, category, statuses):
    result = ticket_service.create_ticket(db, requester.id, "Status", "", category.id)

    ticket = ticket_service.change_ticket_status(db, result.ticket_id, agent.id, "in_progress")
    assert ticket.status == "in_progress"
    assert ticket.status_id == statuses["in_progress"].id

    ticket = ticket_service.change_ticket_status(
        db, result.ticket_id, requester.id, str(statuses["closed"].id)
    )
    assert ticket.status == "closed"

    with pytest.raises(ValidationError):
        ticket_service.change_ticket_status(db, result.ticket_id, agent.id, "archived")


def test_change_status_denied_for_unrelated_requester(db, requester, make_user, category):
    result = ticket_service.create_ticket(db, requester.id, "Status", "", category.id)
    neighbour = make_user("requester", name="Neighbour")
    with pytest.raises(AccessDeniedError):
        ticket_service.change_ticket_status(db, result.ticket_id, neighbour.id, "closed")


def test_add_comment(db, requester, agent, category):
    result = ticket_service.create_ticket(db, requester.id, "Comment", "", category.id)
    comment = ticket_service.add_comment(db, result.ticket_id, agent.id, " On it ", is_internal=True)

    assert comment.content == "On it"
    assert comment.is_internal is True
    with pytest.raises(ValidationError):
        ticket_service.add_comment(db, result.ticket_id, agent.id, "   ")


# =============================================================================
# Nudges
# =============================================================================

def test_nudge_increments_and_comments(db, requester, category):
    result = ticket_service.create_ticket(db, requester.id, "Still broken", "", category.id)
    ticket = ticket_service.nudge_ticket(db, result.ticket_id, requester.id)

    assert ticket.nudge_count == 1
    assert ticket.last_nudge_by == requester.id
    comments = db.query(TicketComment).filter(TicketComment.ticket_id == ticket.id).all()
    assert [c.content for c in comments] == [ticket_service.NUDGE_COMMENT]


def test_nudge_cooldown(db, requester, category):
    result = ticket_service.create_ticket(db, requester.id, "Cooldown", "", category.id)
    ticket_service.nudge_ticket(db, result.ticket_id, requester.id)

    with pytest.raises(ValidationError):
        ticket_service.nudge_ticket(db, result.ticket_id, requester.id)

    ticket = db.get(Ticket, result.ticket_id)
    ticket.last_nudge_at = datetime.now(timezone.utc) - timedelta(
        hours=settings.NUDGE_COOLDOWN_HOURS + 1
    )
    db.flush()
    assert ticket_service.nudge_ticket(db, result.ticket_id, requester.id).nudge_count == 2


def test_only_creator_can_nudge(db, requester, agent, category):
    result = ticket_service.create_ticket(db, requester.id, "Mine", "", category.id)
    with pytest.raises(AccessDeniedError):
        ticket_service.nudge_ticket(db, result.ticket_id, agent.id)


# =============================================================================
# Concurrency (own database file; the shared test transaction would hold the lock)
# =============================================================================

def test_concurrent_intake_numbers_are_unique_and_gapless(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'intake.db'}")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)

    with Session() as setup:
        status_service.initialize_default_statuses(setup)
        clinic = clinic_service.create_clinic(setup, name="Busy Clinic", code="BUSY01")
        role = user_service.get_or_create_role(setup, "Requester", ["create_tickets"])
        user = user_service.create_user(setup, "rush@test.com", "Rush", role=role, clinic_id=clinic.id)
        category = category_service.create_category(setup, name="Hardware")
        trigger_service.create_trigger(
            setup, clinic.id, "Start work",
            {"type": "category_match", "value": category.slug},
            {"type": "change_status", "value": "in_progress"},
        )
        setup.commit()
        user_id, category_id = user.id, category.id

    def file_ticket(n: int) -> int:
        with Session() as session:
            result = ticket_service.create_ticket(
                session, user_id, f"Ticket {n}", "", category_id
            )
            session.commit()
            return result.ticket_number

    total = 30
    try:
        with ThreadPoolExecutor(max_workers=8) as pool:
            numbers = list(pool.map(file_ticket, range(total)))

        with Session() as check:
            tickets = check.execute(select(Ticket)).scalars().all()
            statuses = {t.status for t in tickets}
            stored = sorted(t.ticket_number for t in tickets)
    finally:
        engine.dispose()

    assert sorted(numbers) == list(range(1, total + 1))
    assert stored == list(range(1, total + 1))
    assert statuses == {"in_progress"}
