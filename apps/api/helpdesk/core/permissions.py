"""Capability registry and capability checks.

Capabilities are opaque strings supplied by the identity/role provider.
Code checks capabilities, never role names.

Precedence: full_access implies every other capability.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class PermissionDef:
    """Permission definition with metadata."""
    key: str
    label: str
    description: str
    category: str


class PermissionCategory(str, Enum):
    """Permission categories for UI grouping."""
    TICKETS = "Tickets"
    CATALOG = "Catalog"
    AUTOMATION = "Automation"
    ADMIN = "Admin"


class PermissionKey(str, Enum):
    """Capability keys understood by the pipeline."""
    FULL_ACCESS = "full_access"
    VIEW_ALL_TICKETS = "view_all_tickets"
    EDIT_TICKETS = "edit_tickets"
    ASSIGN_TICKETS = "assign_tickets"
    CREATE_TICKETS = "create_tickets"
    MANAGE_CATEGORIES = "manage_categories"
    MANAGE_AUTOMATION = "manage_automation"


# =============================================================================
# Permission Registry
# =============================================================================

PERMISSION_REGISTRY: dict[str, PermissionDef] = {
    "full_access": PermissionDef(
        "full_access", "Full Access",
        "Administrator capability, implies every other permission", PermissionCategory.ADMIN
    ),
    "view_all_tickets": PermissionDef(
        "view_all_tickets", "View All Tickets",
        "Work the agent queue for the user's clinics", PermissionCategory.TICKETS
    ),
    "edit_tickets": PermissionDef(
        "edit_tickets", "Edit Tickets",
        "Change status of tickets the user does not own", PermissionCategory.TICKETS
    ),
    "assign_tickets": PermissionDef(
        "assign_tickets", "Assign Tickets",
        "Assign tickets to agents", PermissionCategory.TICKETS
    ),
    "create_tickets": PermissionDef(
        "create_tickets", "Create Tickets",
        "Open new tickets", PermissionCategory.TICKETS
    ),
    "manage_categories": PermissionDef(
        "manage_categories", "Manage Categories",
        "Create, move and delete categories", PermissionCategory.CATALOG
    ),
    "manage_automation": PermissionDef(
        "manage_automation", "Manage Automation",
        "Create and edit triggers and macros", PermissionCategory.AUTOMATION
    ),
}


# =============================================================================
# Helper Functions
# =============================================================================

def is_valid_permission(key: str) -> bool:
    """Check if permission key exists."""
    return key in PERMISSION_REGISTRY


def has_permission(permissions: Iterable[str], key: PermissionKey | str) -> bool:
    """Check a capability, honoring full_access."""
    value = key.value if isinstance(key, PermissionKey) else key
    granted = set(permissions or ())
    return PermissionKey.FULL_ACCESS.value in granted or value in granted


def has_full_access(permissions: Iterable[str]) -> bool:
    """Administrator capability."""
    return PermissionKey.FULL_ACCESS.value in set(permissions or ())


def can_manage_all_tickets(permissions: Iterable[str]) -> bool:
    """Agent or admin."""
    return has_permission(permissions, PermissionKey.VIEW_ALL_TICKETS)


def can_edit_tickets(permissions: Iterable[str]) -> bool:
    return has_permission(permissions, PermissionKey.EDIT_TICKETS)


def can_assign_tickets(permissions: Iterable[str]) -> bool:
    return has_permission(permissions, PermissionKey.ASSIGN_TICKETS)


def can_set_priority(permissions: Iterable[str]) -> bool:
    """Only agents/admins may raise priority above the default at creation."""
    return can_manage_all_tickets(permissions) or can_assign_tickets(permissions)
