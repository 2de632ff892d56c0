"""Audit log enums."""

from enum import Enum


class AuditEntityType(str, Enum):
    """Entity kinds recorded in the audit log."""

    TICKET = "ticket"
    CATEGORY = "category"
    TRIGGER = "trigger"
    MACRO = "macro"
    SOCIETY = "society"
    USER_SOCIETY = "user_society"
    USER_COMPETENCY = "user_competency"


class AuditAction(str, Enum):
    """Audit actions."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    RESTORED = "restored"
    MOVED = "moved"
    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"
    STATUS_CHANGED = "status_changed"
    COMMENTED = "commented"
    NUDGED = "nudged"
    MACRO_EXECUTED = "macro_executed"
    APPROVED = "approved"
    REJECTED = "rejected"
