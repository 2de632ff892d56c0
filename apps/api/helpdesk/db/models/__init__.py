"""SQLAlchemy ORM models."""

from helpdesk.db.models.audit import AuditLog
from helpdesk.db.models.automation import Macro, Trigger
from helpdesk.db.models.catalog import Category, TicketStatus
from helpdesk.db.models.tenancy import (
    Clinic,
    Role,
    Society,
    User,
    UserClinic,
    UserCompetency,
    UserSociety,
)
from helpdesk.db.models.tickets import SequenceCounter, Ticket, TicketComment

__all__ = [
    "AuditLog",
    "Category",
    "Clinic",
    "Macro",
    "Role",
    "SequenceCounter",
    "Society",
    "Ticket",
    "TicketComment",
    "TicketStatus",
    "Trigger",
    "User",
    "UserClinic",
    "UserCompetency",
    "UserSociety",
]
