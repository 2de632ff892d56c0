"""Society-scoped category visibility.

A category with no society scope is visible to everyone. A scoped category is
visible only to users with an active membership in at least one of its
societies. Soft-deleted categories are never accessible.
"""

import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from helpdesk.db.models import Category, Society, UserSociety

logger = logging.getLogger(__name__)


def is_visible_to_societies(scope: Iterable[str] | None, society_ids: Iterable[str]) -> bool:
    """Shared scoping rule for categories and triggers."""
    scoped = {str(s) for s in (scope or ())}
    if not scoped:
        return True
    return not scoped.isdisjoint(str(s) for s in society_ids)


def get_active_society_ids(db: Session, user_id: UUID) -> set[str]:
    """Ids of the user's active memberships in active societies."""
    rows = db.execute(
        select(UserSociety.society_id)
        .join(Society, Society.id == UserSociety.society_id)
        .where(
            UserSociety.user_id == user_id,
            UserSociety.is_active.is_(True),
            Society.is_active.is_(True),
        )
    ).scalars()
    return {str(society_id) for society_id in rows}


def can_access_category(db: Session, user_id: UUID, category_id: UUID) -> bool:
    """Whether the user may file a ticket against the category. Never raises."""
    category = db.get(Category, category_id)
    if category is None or category.deleted_at is not None:
        return False
    if not category.society_ids:
        return True
    allowed = is_visible_to_societies(category.society_ids, get_active_society_ids(db, user_id))
    if not allowed:
        logger.debug(f"Category {category_id} hidden from user {user_id} by society scope")
    return allowed


def filter_accessible_categories(
    db: Session,
    user_id: UUID,
    categories: Iterable[Category],
) -> list[Category]:
    """Keep the categories the user can access (one membership lookup)."""
    society_ids: set[str] | None = None
    visible: list[Category] = []
    for category in categories:
        if category.deleted_at is not None:
            continue
        if category.society_ids:
            if society_ids is None:
                society_ids = get_active_society_ids(db, user_id)
            if not is_visible_to_societies(category.society_ids, society_ids):
                continue
        visible.append(category)
    return visible
