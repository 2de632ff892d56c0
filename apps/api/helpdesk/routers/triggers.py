"""Trigger administration API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_db, require_csrf_header, require_permission
from helpdesk.core.policies import POLICIES
from helpdesk.schemas.auth import UserSession
from helpdesk.schemas.automation import TriggerCreate, TriggerRead, TriggerUpdate
from helpdesk.services import trigger_service
from helpdesk.services.errors import AccessDeniedError, NoTenantError

router = APIRouter()

_automation = require_permission(POLICIES["automation"].default)


def _target_clinic(session: UserSession, clinic_id: UUID | None) -> UUID:
    if not session.clinic_ids:
        raise NoTenantError("User is not associated with any clinic")
    if clinic_id is None:
        return session.clinic_ids[0]
    if clinic_id not in session.clinic_ids:
        raise AccessDeniedError("User is not a member of the requested clinic")
    return clinic_id


@router.get("", response_model=list[TriggerRead])
def list_triggers(
    is_active: bool | None = None,
    session: UserSession = Depends(_automation),
    db: Session = Depends(get_db),
):
    """Triggers of the user's clinics visible to the user's societies."""
    return trigger_service.list_triggers_for_actor(
        db, session.clinic_ids, session.society_ids, is_active=is_active
    )


@router.post(
    "",
    response_model=TriggerRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_trigger(
    data: TriggerCreate,
    session: UserSession = Depends(_automation),
    db: Session = Depends(get_db),
):
    trigger = trigger_service.create_trigger(
        db,
        clinic_id=_target_clinic(session, data.clinic_id),
        name=data.name,
        conditions=data.conditions.model_dump(),
        actions=data.actions.model_dump(),
        actor_id=session.user_id,
        is_active=data.is_active,
        society_ids=data.society_ids,
    )
    db.commit()
    db.refresh(trigger)
    return trigger


@router.patch(
    "/{trigger_id}",
    response_model=TriggerRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_trigger(
    trigger_id: UUID,
    data: TriggerUpdate,
    session: UserSession = Depends(_automation),
    db: Session = Depends(get_db),
):
    trigger = trigger_service.update_trigger(
        db,
        trigger_id,
        actor_id=session.user_id,
        clinic_ids=session.clinic_ids,
        name=data.name,
        conditions=data.conditions.model_dump() if data.conditions else None,
        actions=data.actions.model_dump() if data.actions else None,
        is_active=data.is_active,
        society_ids=data.society_ids,
        position=data.position,
    )
    db.commit()
    db.refresh(trigger)
    return trigger


@router.delete(
    "/{trigger_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def delete_trigger(
    trigger_id: UUID,
    session: UserSession = Depends(_automation),
    db: Session = Depends(get_db),
):
    trigger_service.delete_trigger(
        db, trigger_id, actor_id=session.user_id, clinic_ids=session.clinic_ids
    )
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
