"""Enum definitions for application constants."""

from helpdesk.db.enums.audit import AuditAction, AuditEntityType
from helpdesk.db.enums.automation import (
    AutomationSource,
    MacroActionType,
    TriggerActionType,
    TriggerConditionType,
)
from helpdesk.db.enums.catalog import CategoryVisibility
from helpdesk.db.enums.tickets import (
    DEFAULT_TICKET_PRIORITY,
    MAX_TICKET_PRIORITY,
    MIN_TICKET_PRIORITY,
    TicketStatusSlug,
    TicketVisibility,
)

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "AutomationSource",
    "CategoryVisibility",
    "DEFAULT_TICKET_PRIORITY",
    "MAX_TICKET_PRIORITY",
    "MIN_TICKET_PRIORITY",
    "MacroActionType",
    "TicketStatusSlug",
    "TicketVisibility",
    "TriggerActionType",
    "TriggerConditionType",
]
