"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # user_id
    token_version: int


class UserSession(BaseModel):
    """
    Full session context for authenticated requests.

    Returned by the get_current_session dependency. Clinic, society and
    capability context is loaded from the database on every request.
    """
    user_id: UUID
    email: str
    display_name: str
    clinic_ids: list[UUID] = []
    society_ids: list[str] = []
    permissions: list[str] = []

    @property
    def primary_clinic_id(self) -> UUID | None:
        return self.clinic_ids[0] if self.clinic_ids else None
