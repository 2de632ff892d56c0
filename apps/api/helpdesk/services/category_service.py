"""Category tree administration.

Categories form one global tree shared by every clinic. Each node stores the
ids of its ancestors in `path` (root first) and `depth == len(path)`.
Deleting is soft by default; soft-deleted nodes drop out of every listing and
of ticket creation but keep their place in the tree until restored.

A clinic with `require_approval_for_categories` gets its new categories
created inactive. They stay out of intake until approved; rejecting one
removes it.
"""

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from helpdesk.db.enums import AuditAction, AuditEntityType, CategoryVisibility
from helpdesk.db.models import Category, Clinic, Ticket
from helpdesk.services import audit_service, category_access
from helpdesk.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2


@dataclass
class CategoryNode:
    """Category with its children, for tree rendering."""

    category: Category
    children: list["CategoryNode"] = field(default_factory=list)


# =============================================================================
# Helpers
# =============================================================================


def slugify(value: str) -> str:
    """Lower-case ASCII slug: accents stripped, other runs collapsed to '-'."""
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")


def _validate_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if len(cleaned) < MIN_NAME_LENGTH:
        raise ValidationError(
            f"Category name must be at least {MIN_NAME_LENGTH} characters long"
        )
    return cleaned


def _validate_visibility(visibility: str) -> str:
    try:
        return CategoryVisibility(visibility).value
    except ValueError:
        raise ValidationError(f"Invalid visibility: {visibility}")


def _ensure_unique_slug(db: Session, slug: str, exclude_id: UUID | None = None) -> None:
    if not slug:
        raise ValidationError("Category name must contain letters or digits")
    query = select(Category.id).where(Category.slug == slug)
    if exclude_id is not None:
        query = query.where(Category.id != exclude_id)
    if db.execute(query).first():
        raise ValidationError("A category with this name already exists")


def _normalize_society_ids(society_ids: list[UUID | str] | None) -> list[str] | None:
    if not society_ids:
        return None
    return sorted({str(s) for s in society_ids})


def _next_sibling_order(db: Session, parent_id: UUID | None) -> int:
    query = select(func.count(Category.id))
    if parent_id is None:
        query = query.where(Category.parent_id.is_(None))
    else:
        query = query.where(Category.parent_id == parent_id)
    return int(db.execute(query).scalar_one())


def get_category(db: Session, category_id: UUID, include_deleted: bool = False) -> Category | None:
    category = db.get(Category, category_id)
    if category is None:
        return None
    if category.deleted_at is not None and not include_deleted:
        return None
    return category


def get_category_by_slug(db: Session, slug: str) -> Category | None:
    return db.execute(
        select(Category).where(Category.slug == slug, Category.deleted_at.is_(None))
    ).scalar_one_or_none()


def _require_category(db: Session, category_id: UUID, include_deleted: bool = False) -> Category:
    category = get_category(db, category_id, include_deleted=include_deleted)
    if not category:
        raise NotFoundError("Category not found")
    return category


def _descendants(db: Session, category: Category) -> list[Category]:
    marker = str(category.id)
    candidates = db.execute(
        select(Category).where(Category.depth > category.depth)
    ).scalars()
    return [c for c in candidates if marker in (c.path or [])]


# =============================================================================
# Queries
# =============================================================================


def list_categories(
    db: Session,
    include_inactive: bool = False,
    include_deleted: bool = False,
    visibility: str | None = None,
) -> list[Category]:
    """Flat list ordered by depth, then sibling order."""
    query = select(Category)
    if not include_deleted:
        query = query.where(Category.deleted_at.is_(None))
    if not include_inactive:
        query = query.where(Category.is_active.is_(True))
    if visibility:
        query = query.where(Category.visibility == visibility)
    query = query.order_by(Category.depth, Category.order, Category.name)
    return list(db.execute(query).scalars().all())


def list_deleted_categories(db: Session) -> list[Category]:
    return list(
        db.execute(
            select(Category)
            .where(Category.deleted_at.is_not(None))
            .order_by(Category.deleted_at.desc())
        )
        .scalars()
        .all()
    )


def list_pending_categories(db: Session) -> list[Category]:
    """Categories awaiting approval, oldest request first."""
    return list(
        db.execute(
            select(Category)
            .where(
                Category.requires_approval.is_(True),
                Category.is_active.is_(False),
                Category.deleted_at.is_(None),
            )
            .order_by(Category.created_at, Category.id)
        )
        .scalars()
        .all()
    )


def list_accessible_categories(db: Session, user_id: UUID) -> list[Category]:
    """Active, non-deleted categories the user may file tickets against."""
    return category_access.filter_accessible_categories(db, user_id, list_categories(db))


def build_tree(categories: list[Category]) -> list[CategoryNode]:
    """Assemble nodes into a forest; orphans of filtered parents are dropped."""
    nodes = {c.id: CategoryNode(category=c) for c in categories}
    roots: list[CategoryNode] = []
    for node in nodes.values():
        parent_id = node.category.parent_id
        if parent_id is None:
            roots.append(node)
        elif parent_id in nodes:
            nodes[parent_id].children.append(node)

    def _sort(items: list[CategoryNode]) -> None:
        items.sort(key=lambda n: (n.category.order, n.category.name))
        for item in items:
            _sort(item.children)

    _sort(roots)
    return roots


def get_category_tree(
    db: Session,
    visibility: str | None = None,
    include_inactive: bool = False,
) -> list[CategoryNode]:
    return build_tree(
        list_categories(db, include_inactive=include_inactive, visibility=visibility)
    )


# =============================================================================
# Mutations
# =============================================================================


def create_category(
    db: Session,
    name: str,
    actor_id: UUID | None = None,
    description: str | None = None,
    parent_id: UUID | None = None,
    visibility: str = CategoryVisibility.PUBLIC.value,
    society_ids: list[UUID | str] | None = None,
    synonyms: list[str] | None = None,
    clinic_id: UUID | None = None,
) -> Category:
    """
    Create a category under an optional parent.

    When requested for a clinic that requires category approval, the
    category starts inactive and pending.
    """
    cleaned = _validate_name(name)
    requires_approval = False
    if clinic_id is not None:
        clinic = db.get(Clinic, clinic_id)
        if not clinic:
            raise NotFoundError("Clinic not found")
        requires_approval = clinic.require_approval_for_categories
    slug = slugify(cleaned)
    _ensure_unique_slug(db, slug)

    path: list[str] = []
    if parent_id is not None:
        parent = get_category(db, parent_id)
        if not parent:
            raise NotFoundError("Parent category not found")
        path = [*(parent.path or []), str(parent.id)]

    category = Category(
        name=cleaned,
        slug=slug,
        description=description.strip() if description else None,
        parent_id=parent_id,
        path=path,
        depth=len(path),
        order=_next_sibling_order(db, parent_id),
        visibility=_validate_visibility(visibility),
        society_ids=_normalize_society_ids(society_ids),
        synonyms=[s.strip() for s in (synonyms or []) if s and s.strip()],
        requires_approval=requires_approval,
        is_active=not requires_approval,
    )
    db.add(category)
    db.flush()

    audit_service.log_event(
        db,
        AuditEntityType.CATEGORY,
        category.id,
        AuditAction.CREATED,
        user_id=actor_id,
        changes={"slug": slug, "parent_id": parent_id, "requires_approval": requires_approval},
    )
    return category


def update_category(
    db: Session,
    category_id: UUID,
    actor_id: UUID | None = None,
    name: str | None = None,
    description: str | None = None,
    visibility: str | None = None,
    society_ids: list[UUID | str] | None = None,
    synonyms: list[str] | None = None,
    is_active: bool | None = None,
    order: int | None = None,
) -> Category:
    """
    Update category fields.

    Renaming regenerates the slug and re-checks uniqueness. Passing an empty
    `society_ids` list removes the society scope.
    """
    category = _require_category(db, category_id)
    changes: dict = {}

    if name is not None:
        cleaned = _validate_name(name)
        slug = slugify(cleaned)
        if slug != category.slug:
            _ensure_unique_slug(db, slug, exclude_id=category.id)
            category.slug = slug
            changes["slug"] = slug
        category.name = cleaned
        changes["name"] = cleaned
    if description is not None:
        category.description = description.strip() or None
        changes["description"] = True
    if visibility is not None:
        category.visibility = _validate_visibility(visibility)
        changes["visibility"] = category.visibility
    if society_ids is not None:
        category.society_ids = _normalize_society_ids(society_ids)
        changes["society_ids"] = category.society_ids
    if synonyms is not None:
        category.synonyms = [s.strip() for s in synonyms if s and s.strip()]
        changes["synonyms"] = category.synonyms
    if is_active is not None:
        if is_active and category.is_pending_approval:
            raise ValidationError("Category must be approved before it can be activated")
        category.is_active = is_active
        changes["is_active"] = is_active
    if order is not None:
        category.order = order
        changes["order"] = order

    db.flush()
    if changes:
        audit_service.log_event(
            db, AuditEntityType.CATEGORY, category.id, AuditAction.UPDATED, actor_id, changes
        )
    return category


def move_category(
    db: Session,
    category_id: UUID,
    new_parent_id: UUID | None,
    actor_id: UUID | None = None,
) -> Category:
    """
    Re-parent a category and rewrite the path/depth of its whole subtree.

    Moving a node under itself or one of its descendants is rejected.
    """
    category = _require_category(db, category_id)
    if category.parent_id == new_parent_id:
        return category

    new_path: list[str] = []
    if new_parent_id is not None:
        if new_parent_id == category.id:
            raise ValidationError("A category cannot be its own parent")
        parent = get_category(db, new_parent_id)
        if not parent:
            raise NotFoundError("Parent category not found")
        if str(category.id) in (parent.path or []):
            raise ValidationError("A category cannot be moved under its own descendant")
        new_path = [*(parent.path or []), str(parent.id)]

    descendants = _descendants(db, category)
    old_parent_id = category.parent_id
    new_order = _next_sibling_order(db, new_parent_id)

    category.parent_id = new_parent_id
    category.path = new_path
    category.depth = len(new_path)
    category.order = new_order

    prefix = [*new_path, str(category.id)]
    for descendant in descendants:
        tail = descendant.path[descendant.path.index(str(category.id)) + 1:]
        descendant.path = [*prefix, *tail]
        descendant.depth = len(descendant.path)

    db.flush()
    audit_service.log_event(
        db,
        AuditEntityType.CATEGORY,
        category.id,
        AuditAction.MOVED,
        user_id=actor_id,
        changes={
            "from_parent_id": old_parent_id,
            "to_parent_id": new_parent_id,
            "descendants_updated": len(descendants),
        },
    )
    logger.info(f"Moved category {category.id} with {len(descendants)} descendants")
    return category


def soft_delete_category(db: Session, category_id: UUID, actor_id: UUID | None = None) -> Category:
    category = _require_category(db, category_id, include_deleted=True)
    if category.deleted_at is not None:
        raise ValidationError("Category is already deleted")
    category.deleted_at = datetime.now(timezone.utc)
    category.is_active = False
    db.flush()
    audit_service.log_event(
        db, AuditEntityType.CATEGORY, category.id, AuditAction.DELETED, actor_id, {"soft": True}
    )
    return category


def restore_category(db: Session, category_id: UUID, actor_id: UUID | None = None) -> Category:
    category = _require_category(db, category_id, include_deleted=True)
    if category.deleted_at is None:
        raise ValidationError("Category is not deleted")
    category.deleted_at = None
    category.is_active = not category.requires_approval
    db.flush()
    audit_service.log_event(
        db, AuditEntityType.CATEGORY, category.id, AuditAction.RESTORED, actor_id
    )
    return category


def hard_delete_category(db: Session, category_id: UUID, actor_id: UUID | None = None) -> None:
    """Permanently delete a leaf category that no ticket references."""
    category = _require_category(db, category_id, include_deleted=True)
    ticket_count = db.execute(
        select(func.count(Ticket.id)).where(Ticket.category_id == category.id)
    ).scalar_one()
    if ticket_count:
        raise ValidationError("Cannot delete category: there are tickets associated with it")
    child_count = db.execute(
        select(func.count(Category.id)).where(Category.parent_id == category.id)
    ).scalar_one()
    if child_count:
        raise ValidationError("Cannot delete category: it has subcategories")

    entity_id = category.id
    db.delete(category)
    db.flush()
    audit_service.log_event(
        db, AuditEntityType.CATEGORY, entity_id, AuditAction.DELETED, actor_id, {"soft": False}
    )


# =============================================================================
# Approval
# =============================================================================


def _require_pending(db: Session, category_id: UUID) -> Category:
    category = _require_category(db, category_id)
    if not category.is_pending_approval:
        raise ValidationError("Category is not awaiting approval")
    return category


def approve_category(db: Session, category_id: UUID, actor_id: UUID | None = None) -> Category:
    """Activate a pending category so intake can use it."""
    category = _require_pending(db, category_id)
    category.is_active = True
    category.requires_approval = False
    db.flush()
    audit_service.log_event(
        db, AuditEntityType.CATEGORY, category.id, AuditAction.APPROVED, actor_id
    )
    logger.info(f"Category {category.id} approved")
    return category


def reject_category(
    db: Session,
    category_id: UUID,
    actor_id: UUID | None = None,
    reason: str | None = None,
) -> None:
    """Remove a pending category. Pending nodes with subcategories must be cleared first."""
    category = _require_pending(db, category_id)
    child_count = db.execute(
        select(func.count(Category.id)).where(Category.parent_id == category.id)
    ).scalar_one()
    if child_count:
        raise ValidationError("Cannot reject category: it has subcategories")

    entity_id = category.id
    db.delete(category)
    db.flush()
    audit_service.log_event(
        db,
        AuditEntityType.CATEGORY,
        entity_id,
        AuditAction.REJECTED,
        actor_id,
        {"reason": reason.strip()} if reason and reason.strip() else None,
    )
