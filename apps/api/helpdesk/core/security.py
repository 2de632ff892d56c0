"""Session token signing and verification (JWT carried in a cookie)."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from helpdesk.core.config import settings

ALGORITHM = "HS256"


def create_session_token(user_id: UUID, token_version: int) -> str:
    """
    Sign a session token with the current secret.

    Only identity and the revocation counter are embedded. Clinic, society
    and capability context is looked up per request.
    """
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "token_version": token_version,
        "iat": issued_at,
        "exp": issued_at + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_session_token(token: str) -> dict:
    """
    Verify a session token against the current secret, then the previous one.

    Raises:
        jwt.InvalidTokenError: no configured secret accepts the token
    """
    error: jwt.InvalidTokenError | None = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=[ALGORITHM])
        except jwt.InvalidTokenError as e:
            error = e
    raise error or jwt.InvalidTokenError("No signing secret configured")
