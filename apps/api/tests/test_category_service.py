"""Tests for the category tree service."""

import pytest

from helpdesk.db.enums import AuditAction, AuditEntityType
from helpdesk.services import audit_service, category_service, ticket_service
from helpdesk.services.errors import NotFoundError, ValidationError


def test_slugify_strips_accents_and_punctuation():
    assert category_service.slugify("Équipement Médical / IT") == "equipement-medical-it"
    assert category_service.slugify("  Billing  ") == "billing"


def test_create_child_sets_path_and_depth(db):
    root = category_service.create_category(db, name="Facilities")
    child = category_service.create_category(db, name="Elevators", parent_id=root.id)
    grandchild = category_service.create_category(db, name="Elevator Doors", parent_id=child.id)

    assert root.path == [] and root.depth == 0
    assert child.path == [str(root.id)] and child.depth == 1
    assert grandchild.path == [str(root.id), str(child.id)]
    assert grandchild.depth == 2


def test_duplicate_slug_is_rejected(db):
    category_service.create_category(db, name="Lab Results")
    with pytest.raises(ValidationError):
        category_service.create_category(db, name="lab  results!")


def test_short_name_is_rejected(db):
    with pytest.raises(ValidationError):
        category_service.create_category(db, name="X")


def test_move_rewrites_descendant_paths(db):
    a = category_service.create_category(db, name="Branch A")
    b = category_service.create_category(db, name="Branch B")
    child = category_service.create_category(db, name="Moving Node", parent_id=a.id)
    leaf = category_service.create_category(db, name="Moving Leaf", parent_id=child.id)

    category_service.move_category(db, child.id, b.id)
    db.refresh(leaf)

    assert child.parent_id == b.id
    assert child.path == [str(b.id)]
    assert leaf.path == [str(b.id), str(child.id)]
    assert leaf.depth == 2


def test_move_to_root(db):
    a = category_service.create_category(db, name="Old Parent")
    child = category_service.create_category(db, name="Detached", parent_id=a.id)
    leaf = category_service.create_category(db, name="Detached Leaf", parent_id=child.id)

    category_service.move_category(db, child.id, None)
    db.refresh(leaf)

    assert child.depth == 0 and child.path == []
    assert leaf.path == [str(child.id)] and leaf.depth == 1


def test_move_under_own_descendant_is_rejected(db):
    root = category_service.create_category(db, name="Cycle Root")
    child = category_service.create_category(db, name="Cycle Child", parent_id=root.id)

    with pytest.raises(ValidationError):
        category_service.move_category(db, root.id, child.id)
    with pytest.raises(ValidationError):
        category_service.move_category(db, root.id, root.id)


def test_soft_delete_and_restore(db, category):
    category_service.soft_delete_category(db, category.id)
    assert category_service.get_category(db, category.id) is None
    assert category in category_service.list_deleted_categories(db)

    with pytest.raises(ValidationError):
        category_service.soft_delete_category(db, category.id)

    restored = category_service.restore_category(db, category.id)
    assert restored.deleted_at is None
    assert restored.is_active is True


def test_hard_delete_refuses_categories_with_tickets(db, requester, category):
    ticket_service.create_ticket(db, requester.id, "Printer jam", "", category.id)
    with pytest.raises(ValidationError):
        category_service.hard_delete_category(db, category.id)


def test_hard_delete_refuses_categories_with_children(db):
    root = category_service.create_category(db, name="Has Kids")
    category_service.create_category(db, name="Kid", parent_id=root.id)
    with pytest.raises(ValidationError):
        category_service.hard_delete_category(db, root.id)


def test_hard_delete_leaf(db):
    leaf = category_service.create_category(db, name="Disposable")
    category_service.hard_delete_category(db, leaf.id)
    with pytest.raises(NotFoundError):
        category_service.restore_category(db, leaf.id)


def test_tree_orders_siblings(db):
    root = category_service.create_category(db, name="Tree Root")
    second = category_service.create_category(db, name="Second", parent_id=root.id)
    first = category_service.create_category(db, name="First", parent_id=root.id)
    category_service.update_category(db, first.id, order=0)
    category_service.update_category(db, second.id, order=1)

    tree = category_service.build_tree([root, first, second])
    assert [n.category.id for n in tree] == [root.id]
    assert [n.category.id for n in tree[0].children] == [first.id, second.id]


# =============================================================================
# Approval
# =============================================================================

@pytest.fixture
def approving_clinic(db, clinic):
    clinic.require_approval_for_categories = True
    db.flush()
    return clinic


def test_clinic_without_approval_creates_active_categories(db, clinic):
    category = category_service.create_category(db, name="Walk-in Desk", clinic_id=clinic.id)
    assert category.is_active is True
    assert category.requires_approval is False
    assert category_service.list_pending_categories(db) == []


def test_pending_category_is_kept_out_of_intake(db, approving_clinic, requester):
    pending = category_service.create_category(db, name="Telehealth", clinic_id=approving_clinic.id)

    assert pending.is_active is False
    assert pending.is_pending_approval
    assert [c.id for c in category_service.list_pending_categories(db)] == [pending.id]
    assert pending.id not in {
        c.id for c in category_service.list_accessible_categories(db, requester.id)
    }
    with pytest.raises(ValidationError):
        ticket_service.create_ticket(db, requester.id, "Video call drops", "", pending.id)
    with pytest.raises(ValidationError):
        category_service.update_category(db, pending.id, is_active=True)


def test_approve_activates_category(db, approving_clinic, requester, admin):
    pending = category_service.create_category(db, name="Telehealth", clinic_id=approving_clinic.id)

    approved = category_service.approve_category(db, pending.id, actor_id=admin.id)

    assert approved.is_active is True
    assert approved.requires_approval is False
    assert category_service.list_pending_categories(db) == []
    result = ticket_service.create_ticket(db, requester.id, "Video call drops", "", pending.id)
    assert result.ticket_number > 0
    with pytest.raises(ValidationError):
        category_service.approve_category(db, pending.id)

    events = audit_service.list_entity_events(db, AuditEntityType.CATEGORY, pending.id)
    assert {e.action for e in events} == {AuditAction.CREATED.value, AuditAction.APPROVED.value}


def test_reject_removes_category(db, approving_clinic, admin):
    pending = category_service.create_category(db, name="Astrology", clinic_id=approving_clinic.id)
    category_id = pending.id

    category_service.reject_category(db, category_id, actor_id=admin.id, reason=" Out of scope ")

    assert category_service.get_category(db, category_id, include_deleted=True) is None
    events = audit_service.list_entity_events(db, AuditEntityType.CATEGORY, category_id)
    rejected = [e for e in events if e.action == AuditAction.REJECTED.value]
    assert [e.changes for e in rejected] == [{"reason": "Out of scope"}]


def test_only_pending_categories_can_be_rejected(db, category, approving_clinic):
    with pytest.raises(ValidationError):
        category_service.reject_category(db, category.id)

    parent = category_service.create_category(db, name="Pending Root", clinic_id=approving_clinic.id)
    category_service.create_category(
        db, name="Pending Child", parent_id=parent.id, clinic_id=approving_clinic.id
    )
    with pytest.raises(ValidationError):
        category_service.reject_category(db, parent.id)


def test_restore_keeps_pending_category_inactive(db, approving_clinic):
    pending = category_service.create_category(db, name="Night Shift", clinic_id=approving_clinic.id)
    category_service.soft_delete_category(db, pending.id)

    restored = category_service.restore_category(db, pending.id)

    assert restored.is_active is False
    assert restored.is_pending_approval
