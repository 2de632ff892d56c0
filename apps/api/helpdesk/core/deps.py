"""Request dependencies: database session, session cookie auth, capabilities, CSRF."""

from typing import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from helpdesk.core.permissions import PermissionKey, has_permission
from helpdesk.core.security import decode_session_token
from helpdesk.db.session import SessionLocal


COOKIE_NAME = "helpdesk_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """One session per request, always closed."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail)


def get_current_user(request: Request, db: Session = Depends(get_db)):
    """
    Resolve the active user behind the session cookie.

    A token minted before the user's last revocation (older token_version)
    is refused.

    Raises:
        HTTPException 401
    """
    from helpdesk.db.models import User
    from helpdesk.schemas.auth import TokenPayload

    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise _unauthorized("Not authenticated")

    try:
        payload = TokenPayload.model_validate(decode_session_token(token))
    except Exception:
        raise _unauthorized("Invalid session")

    user = db.get(User, payload.sub)
    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("Account disabled")
    if user.token_version != payload.token_version:
        raise _unauthorized("Session revoked")
    return user


def get_current_session(request: Request, db: Session = Depends(get_db)):
    """
    Authenticated user plus clinic, society and capability context.

    Memberships and role capabilities are read fresh on every request, so
    changes apply without re-issuing the cookie.
    """
    from helpdesk.schemas.auth import UserSession
    from helpdesk.services import category_access, user_service

    user = get_current_user(request, db)
    return UserSession(
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        clinic_ids=user_service.get_user_clinic_ids(db, user.id),
        society_ids=sorted(category_access.get_active_society_ids(db, user.id)),
        permissions=user_service.get_user_permissions(db, user),
    )


def require_permission(permission: PermissionKey | None):
    """
    Build a dependency that returns the session if it holds `permission`.

    None only requires an authenticated session. full_access satisfies any
    capability.
    """
    def dependency(request: Request, db: Session = Depends(get_db)):
        session = get_current_session(request, db)
        if permission is not None and not has_permission(session.permissions, permission):
            raise HTTPException(
                status_code=403,
                detail=f"Missing permission '{permission.value}'"
            )
        return session
    return dependency


def require_csrf_header(request: Request) -> None:
    """Reject state-changing requests that lack the XHR marker header (403)."""
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )
