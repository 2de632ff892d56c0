"""Ticket enums and priority bounds."""

from enum import Enum


class TicketStatusSlug(str, Enum):
    """Built-in ticket lifecycle slugs (the status directory may add more)."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"


class TicketVisibility(str, Enum):
    """Who can see a ticket besides its creator and agents."""

    PUBLIC = "public"
    PRIVATE = "private"


MIN_TICKET_PRIORITY = 1
MAX_TICKET_PRIORITY = 5
DEFAULT_TICKET_PRIORITY = 1
