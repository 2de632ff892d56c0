"""Macro administration API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_db, require_csrf_header, require_permission
from helpdesk.core.policies import POLICIES
from helpdesk.schemas.auth import UserSession
from helpdesk.schemas.automation import MacroCreate, MacroRead, MacroReject, MacroUpdate
from helpdesk.services import macro_service
from helpdesk.services.errors import AccessDeniedError, NoTenantError

router = APIRouter()

_automation = require_permission(POLICIES["automation"].default)
_approve = require_permission(POLICIES["automation"].actions["approve"])
_run_macros = require_permission(POLICIES["tickets"].actions["run_macro"])


@router.get("", response_model=list[MacroRead])
def list_macros(
    category: str | None = None,
    session: UserSession = Depends(_run_macros),
    db: Session = Depends(get_db),
):
    """Macros of the user's clinics; active ones only when filtering by category."""
    if category:
        macros = []
        for clinic_id in session.clinic_ids:
            macros.extend(macro_service.list_active_macros_for_category(db, clinic_id, category))
        return macros
    return macro_service.list_macros_for_clinics(db, session.clinic_ids)


@router.get("/pending", response_model=list[MacroRead])
def list_pending_macros(
    session: UserSession = Depends(_approve),
    db: Session = Depends(get_db),
):
    return macro_service.list_pending_macros(db, session.clinic_ids)


@router.post(
    "",
    response_model=MacroRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_macro(
    data: MacroCreate,
    session: UserSession = Depends(_automation),
    db: Session = Depends(get_db),
):
    if not session.clinic_ids:
        raise NoTenantError("User is not associated with any clinic")
    clinic_id = data.clinic_id or session.clinic_ids[0]
    if clinic_id not in session.clinic_ids:
        raise AccessDeniedError("User is not a member of the requested clinic")

    macro = macro_service.create_macro(
        db,
        clinic_id=clinic_id,
        name=data.name,
        category=data.category,
        actions=[action.model_dump(exclude_none=True) for action in data.actions],
        actor_id=session.user_id,
        description=data.description,
        is_active=data.is_active,
        requires_approval=data.requires_approval,
    )
    db.commit()
    db.refresh(macro)
    return macro


@router.patch(
    "/{macro_id}",
    response_model=MacroRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_macro(
    macro_id: UUID,
    data: MacroUpdate,
    session: UserSession = Depends(_automation),
    db: Session = Depends(get_db),
):
    macro = macro_service.update_macro(
        db,
        macro_id,
        actor_id=session.user_id,
        clinic_ids=session.clinic_ids,
        name=data.name,
        description=data.description,
        category=data.category,
        actions=(
            [action.model_dump(exclude_none=True) for action in data.actions]
            if data.actions is not None
            else None
        ),
        is_active=data.is_active,
    )
    db.commit()
    db.refresh(macro)
    return macro


@router.delete(
    "/{macro_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def delete_macro(
    macro_id: UUID,
    session: UserSession = Depends(_automation),
    db: Session = Depends(get_db),
):
    macro_service.delete_macro(
        db, macro_id, actor_id=session.user_id, clinic_ids=session.clinic_ids
    )
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{macro_id}/approve",
    response_model=MacroRead,
    dependencies=[Depends(require_csrf_header)],
)
def approve_macro(
    macro_id: UUID,
    session: UserSession = Depends(_approve),
    db: Session = Depends(get_db),
):
    """Approve and activate a macro."""
    macro = macro_service.approve_macro(
        db, macro_id, approver_id=session.user_id, clinic_ids=session.clinic_ids
    )
    db.commit()
    db.refresh(macro)
    return macro


@router.post(
    "/{macro_id}/reject",
    response_model=MacroRead,
    dependencies=[Depends(require_csrf_header)],
)
def reject_macro(
    macro_id: UUID,
    data: MacroReject | None = None,
    session: UserSession = Depends(_approve),
    db: Session = Depends(get_db),
):
    macro = macro_service.reject_macro(
        db,
        macro_id,
        approver_id=session.user_id,
        reason=data.reason if data else None,
        clinic_ids=session.clinic_ids,
    )
    db.commit()
    db.refresh(macro)
    return macro
