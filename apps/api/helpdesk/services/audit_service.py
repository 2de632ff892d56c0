"""Audit trail for ticket, category and automation changes.

Entries store ids and changed field names/values, never comment bodies.
Writes are best effort: a failed audit insert is logged and dropped so it
never aborts the business operation that produced it.
"""

import json
import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from helpdesk.db.enums import AuditAction, AuditEntityType
from helpdesk.db.models import AuditLog

logger = logging.getLogger(__name__)


def _jsonable(changes: dict[str, Any] | None) -> dict[str, Any] | None:
    if changes is None:
        return None
    return json.loads(json.dumps(changes, default=str))


def log_event(
    db: Session,
    entity_type: AuditEntityType,
    entity_id: UUID,
    action: AuditAction,
    user_id: UUID | None = None,
    changes: dict[str, Any] | None = None,
) -> AuditLog | None:
    """
    Record an audit entry inside a SAVEPOINT.

    Returns the entry, or None when the insert failed.
    """
    entry = AuditLog(
        entity_type=entity_type.value,
        entity_id=entity_id,
        action=action.value,
        user_id=user_id,
        changes=_jsonable(changes),
    )
    try:
        with db.begin_nested():
            db.add(entry)
            db.flush()
    except SQLAlchemyError:
        logger.exception(
            f"Audit write failed for {entity_type.value}/{action.value} {entity_id}"
        )
        return None
    return entry


def list_entity_events(
    db: Session,
    entity_type: AuditEntityType,
    entity_id: UUID,
) -> list[AuditLog]:
    """Audit entries for one entity, oldest first."""
    return list(
        db.execute(
            select(AuditLog)
            .where(
                AuditLog.entity_type == entity_type.value,
                AuditLog.entity_id == entity_id,
            )
            .order_by(AuditLog.created_at, AuditLog.id)
        )
        .scalars()
        .all()
    )
