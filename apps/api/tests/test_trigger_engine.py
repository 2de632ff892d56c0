"""Tests for trigger evaluation at ticket creation."""

from helpdesk.db.models import Ticket, TicketComment, Trigger
from helpdesk.services import automation_actions, ticket_service, trigger_service
from helpdesk.services.automation_actions import TicketFacts


def _trigger(db, clinic, name, condition, action, actor=None, **kwargs):
    return trigger_service.create_trigger(
        db,
        clinic_id=clinic.id,
        name=name,
        conditions=condition,
        actions=action,
        actor_id=actor.id if actor else None,
        **kwargs,
    )


def _create(db, user, category, **kwargs):
    result = ticket_service.create_ticket(db, user.id, "Printer on fire", "", category.id, **kwargs)
    return result, db.get(Ticket, result.ticket_id)


# =============================================================================
# Condition evaluation (no DB)
# =============================================================================

def test_condition_evaluation():
    facts = TicketFacts(category_slug="billing", status="open", priority=3)

    def holds(raw):
        return automation_actions.evaluate_condition(automation_actions.parse_condition(raw), facts)

    assert holds({"type": "category_match", "value": "billing"})
    assert not holds({"type": "category_match", "value": "travel"})
    assert holds({"type": "status_change", "value": "open"})
    assert holds({"type": "priority_eq", "value": "3"})
    assert holds({"type": "priority_gte", "value": 3})
    assert not holds({"type": "priority_gte", "value": 4})
    assert holds({"type": "priority_lte", "value": 3})
    assert not holds({"type": "priority_eq", "value": "high"})
    assert not holds({"type": "weather_is", "value": "sunny"})
    assert not holds(None)


def test_parse_action_variants():
    assert isinstance(
        automation_actions.parse_action({"type": "assign_user", "value": "a@b.com"}),
        automation_actions.AssignUser,
    )
    unknown = automation_actions.parse_action({"type": "send_fax", "value": "123"})
    assert isinstance(unknown, automation_actions.UnknownAction)
    assert automation_actions.action_type_of(unknown) == "send_fax"


# =============================================================================
# Engine
# =============================================================================

def test_matching_trigger_assigns_by_email(db, clinic, requester, agent, category):
    _trigger(
        db, clinic, "Route network",
        {"type": "category_match", "value": category.slug},
        {"type": "assign_user", "value": agent.email.upper()},
    )
    result, ticket = _create(db, requester, category)

    assert ticket.assignee_id == agent.id
    assert len(result.triggers.matched) == 1
    assert result.triggers.applied[0].action_type == "assign_user"


def test_last_matching_trigger_wins(db, clinic, requester, category):
    _trigger(db, clinic, "Raise", {"type": "category_match", "value": category.slug},
             {"type": "set_priority", "value": 3})
    _trigger(db, clinic, "Raise more", {"type": "category_match", "value": category.slug},
             {"type": "set_priority", "value": 5})

    result, ticket = _create(db, requester, category)

    assert ticket.priority == 5
    assert len(result.triggers.applied) == 2


def test_position_controls_order(db, clinic, requester, category):
    first = _trigger(db, clinic, "Low", {"type": "category_match", "value": category.slug},
                     {"type": "set_priority", "value": 2})
    second = _trigger(db, clinic, "High", {"type": "category_match", "value": category.slug},
                      {"type": "set_priority", "value": 4})
    trigger_service.update_trigger(db, first.id, position=second.position + 1)

    _, ticket = _create(db, requester, category)
    assert ticket.priority == 2


def test_conditions_see_the_ticket_as_created(db, clinic, requester, category):
    _trigger(db, clinic, "Escalate", {"type": "category_match", "value": category.slug},
             {"type": "set_priority", "value": 5})
    _trigger(db, clinic, "Only urgent", {"type": "priority_gte", "value": 5},
             {"type": "change_status", "value": "in_progress"})

    result, ticket = _create(db, requester, category)

    assert ticket.priority == 5
    assert ticket.status == "open"
    assert len(result.triggers.matched) == 1


def test_failed_action_is_skipped_and_ticket_kept(db, clinic, requester, category):
    _trigger(db, clinic, "Ghost agent", {"type": "category_match", "value": category.slug},
             {"type": "assign_user", "value": "nobody@nowhere.test"})
    _trigger(db, clinic, "Raise", {"type": "category_match", "value": category.slug},
             {"type": "set_priority", "value": 2})

    result, ticket = _create(db, requester, category)

    assert ticket.assignee_id is None
    assert ticket.priority == 2
    assert [o.action_type for o in result.triggers.skipped] == ["assign_user"]
    assert result.triggers.skipped[0].reason


def test_invalid_priority_action_is_skipped(db, clinic, requester, category):
    _trigger(db, clinic, "Silly", {"type": "category_match", "value": category.slug},
             {"type": "set_priority", "value": 9})
    result, ticket = _create(db, requester, category)

    assert ticket.priority == 1
    assert len(result.triggers.skipped) == 1


def test_trigger_status_without_directory_entry(db, clinic, requester, category):
    _trigger(db, clinic, "Waiting", {"type": "category_match", "value": category.slug},
             {"type": "change_status", "value": "waiting_on_vendor"})
    _, ticket = _create(db, requester, category)

    assert ticket.status == "waiting_on_vendor"
    assert ticket.status_id is None


def test_trigger_status_links_directory_entry(db, clinic, requester, category, statuses):
    _trigger(db, clinic, "Start", {"type": "category_match", "value": category.slug},
             {"type": "change_status", "value": "in_progress"})
    _, ticket = _create(db, requester, category)

    assert ticket.status == "in_progress"
    assert ticket.status_id == statuses["in_progress"].id


def test_trigger_comment_uses_rule_author(db, clinic, requester, admin, category):
    _trigger(db, clinic, "Ack", {"type": "category_match", "value": category.slug},
             {"type": "add_comment", "value": "We received your request."}, actor=admin)
    _, ticket = _create(db, requester, category)

    comments = db.query(TicketComment).filter(TicketComment.ticket_id == ticket.id).all()
    assert [(c.author_id, c.content) for c in comments] == [(admin.id, "We received your request.")]


def test_trigger_comment_without_author_is_skipped(db, clinic, requester, category):
    _trigger(db, clinic, "Anonymous", {"type": "category_match", "value": category.slug},
             {"type": "add_comment", "value": "hello"})
    result, _ = _create(db, requester, category)
    assert [o.action_type for o in result.triggers.skipped] == ["add_comment"]


def test_inactive_and_foreign_triggers_are_ignored(db, clinic, other_clinic, requester, category):
    _trigger(db, clinic, "Disabled", {"type": "category_match", "value": category.slug},
             {"type": "set_priority", "value": 5}, is_active=False)
    _trigger(db, other_clinic, "Elsewhere", {"type": "category_match", "value": category.slug},
             {"type": "set_priority", "value": 4})

    result, ticket = _create(db, requester, category)

    assert ticket.priority == 1
    assert result.triggers.evaluated == 0


def test_run_result_serializes(db, clinic, requester, category):
    trigger = _trigger(db, clinic, "Raise", {"type": "category_match", "value": category.slug},
                       {"type": "set_priority", "value": 3})
    result, _ = _create(db, requester, category)

    data = result.triggers.to_dict()
    assert data["matched"] == [str(trigger.id)]
    assert data["applied"][0]["rule_id"] == str(trigger.id)
    assert data["skipped"] == []


def test_malformed_stored_rule_does_not_stop_later_triggers(db, clinic, requester, category):
    legacy = Trigger(
        clinic_id=clinic.id,
        name="Legacy import",
        conditions=["category_match", category.slug],
        actions={"type": "set_priority", "value": 5},
        position=0,
    )
    db.add(legacy)
    db.flush()
    valid = _trigger(db, clinic, "Raise", {"type": "category_match", "value": category.slug},
                     {"type": "set_priority", "value": 3})

    result, ticket = _create(db, requester, category)

    assert ticket.priority == 3
    assert result.triggers.evaluated == 2
    assert result.triggers.matched == [valid.id]
    assert [(o.action_type, o.rule_id) for o in result.triggers.skipped] == [
        ("malformed_rule", legacy.id),
    ]
    assert result.triggers.skipped[0].reason == "Malformed trigger rule: AttributeError"
