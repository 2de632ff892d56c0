"""Category API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from helpdesk.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_permission,
)
from helpdesk.core.policies import POLICIES
from helpdesk.schemas.auth import UserSession
from helpdesk.schemas.category import (
    CategoryAccessResponse,
    CategoryCreate,
    CategoryMove,
    CategoryRead,
    CategoryReject,
    CategoryUpdate,
)
from helpdesk.services import category_access, category_service
from helpdesk.services.errors import AccessDeniedError

router = APIRouter()

_manage = require_permission(POLICIES["categories"].actions["manage"])
_approve = require_permission(POLICIES["categories"].actions["approve"])


@router.get("", response_model=list[CategoryRead])
def list_categories(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Categories the current user may file tickets against."""
    return category_service.list_accessible_categories(db, session.user_id)


@router.get("/pending", response_model=list[CategoryRead])
def list_pending_categories(
    session: UserSession = Depends(_approve),
    db: Session = Depends(get_db),
):
    """Categories waiting for an approval decision."""
    return category_service.list_pending_categories(db)


@router.get("/{category_id}/access", response_model=CategoryAccessResponse)
def check_category_access(
    category_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return CategoryAccessResponse(
        category_id=category_id,
        can_access=category_access.can_access_category(db, session.user_id, category_id),
    )


@router.post(
    "",
    response_model=CategoryRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_category(
    data: CategoryCreate,
    session: UserSession = Depends(_manage),
    db: Session = Depends(get_db),
):
    """New categories start pending when the clinic requires approval."""
    if data.clinic_id is not None and data.clinic_id not in session.clinic_ids:
        raise AccessDeniedError("User is not a member of the requested clinic")
    clinic_id = data.clinic_id or (session.clinic_ids[0] if session.clinic_ids else None)

    category = category_service.create_category(
        db,
        name=data.name,
        actor_id=session.user_id,
        description=data.description,
        parent_id=data.parent_id,
        visibility=data.visibility.value,
        society_ids=data.society_ids,
        synonyms=data.synonyms,
        clinic_id=clinic_id,
    )
    db.commit()
    db.refresh(category)
    return category


@router.patch(
    "/{category_id}",
    response_model=CategoryRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_category(
    category_id: UUID,
    data: CategoryUpdate,
    session: UserSession = Depends(_manage),
    db: Session = Depends(get_db),
):
    category = category_service.update_category(
        db,
        category_id,
        actor_id=session.user_id,
        name=data.name,
        description=data.description,
        visibility=data.visibility.value if data.visibility else None,
        society_ids=data.society_ids,
        synonyms=data.synonyms,
        is_active=data.is_active,
        order=data.order,
    )
    db.commit()
    db.refresh(category)
    return category


@router.post(
    "/{category_id}/move",
    response_model=CategoryRead,
    dependencies=[Depends(require_csrf_header)],
)
def move_category(
    category_id: UUID,
    data: CategoryMove,
    session: UserSession = Depends(_manage),
    db: Session = Depends(get_db),
):
    """Re-parent a category; descendants follow."""
    category = category_service.move_category(
        db, category_id, data.parent_id, actor_id=session.user_id
    )
    db.commit()
    db.refresh(category)
    return category


@router.delete(
    "/{category_id}",
    response_model=CategoryRead,
    dependencies=[Depends(require_csrf_header)],
)
def soft_delete_category(
    category_id: UUID,
    session: UserSession = Depends(_manage),
    db: Session = Depends(get_db),
):
    category = category_service.soft_delete_category(db, category_id, actor_id=session.user_id)
    db.commit()
    db.refresh(category)
    return category


@router.post(
    "/{category_id}/restore",
    response_model=CategoryRead,
    dependencies=[Depends(require_csrf_header)],
)
def restore_category(
    category_id: UUID,
    session: UserSession = Depends(_manage),
    db: Session = Depends(get_db),
):
    category = category_service.restore_category(db, category_id, actor_id=session.user_id)
    db.commit()
    db.refresh(category)
    return category


@router.post(
    "/{category_id}/approve",
    response_model=CategoryRead,
    dependencies=[Depends(require_csrf_header)],
)
def approve_category(
    category_id: UUID,
    session: UserSession = Depends(_approve),
    db: Session = Depends(get_db),
):
    category = category_service.approve_category(db, category_id, actor_id=session.user_id)
    db.commit()
    db.refresh(category)
    return category


@router.post(
    "/{category_id}/reject",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def reject_category(
    category_id: UUID,
    data: CategoryReject | None = None,
    session: UserSession = Depends(_approve),
    db: Session = Depends(get_db),
):
    """Delete a pending category."""
    category_service.reject_category(
        db, category_id, actor_id=session.user_id, reason=data.reason if data else None
    )
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
