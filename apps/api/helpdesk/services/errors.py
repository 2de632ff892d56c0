"""Domain exceptions raised by the service layer.

Routers never build HTTP errors for these by hand: the application-wide
exception handler maps `status_code` to the response.
"""


class HelpdeskError(Exception):
    """Base exception for helpdesk service errors."""

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(HelpdeskError):
    """Input failed a business rule."""

    status_code = 422


class NotFoundError(HelpdeskError):
    """Referenced record does not exist (or is soft-deleted)."""

    status_code = 404


class AccessDeniedError(HelpdeskError):
    """Actor is known but not allowed to perform the operation."""

    status_code = 403


class UnauthorizedError(HelpdeskError):
    """Actor could not be resolved to an active user."""

    status_code = 401


class NoTenantError(HelpdeskError):
    """Actor has no active clinic membership."""

    status_code = 403


class DependencyNotFoundError(HelpdeskError):
    """A user or status referenced by an automation action is missing."""

    status_code = 422
