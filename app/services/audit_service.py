"""
Audit Service — append-only trail of domain actions.

record() adds an AuditLog row to the caller's session without committing,
so the entry lands in the same transaction as the change it describes.
The actor comes from the X-Actor-Id header (via CorrelationMiddleware)
or defaults to "system".
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from sqlmodel import Session, select

from app.core.database import get_session_context
from app.core.pagination import Page, paginate
from app.core.structured_logging import actor_id_var
from app.models.audit import AuditAction, AuditLog

logger = logging.getLogger(__name__)

__all__ = ["AuditService", "audit_service", "current_actor"]

SYSTEM_ACTOR = "system"


def current_actor() -> str:
    return actor_id_var.get() or SYSTEM_ACTOR


def _jsonable(values: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if values is None:
        return None
    out: Dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, Decimal):
            value = str(value)
        elif isinstance(value, (date, datetime)):
            value = value.isoformat()
        out[key] = value
    return out


class AuditService:

    def record(
        self,
        session: Session,
        entity_type: str,
        entity_id: str,
        action: AuditAction,
        old_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        entry = AuditLog(
            actor_id=current_actor(),
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            old_value=_jsonable(old_value),
            new_value=_jsonable(new_value),
        )
        session.add(entry)
        return entry

    def list_entries(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Page[AuditLog]:
        stmt = select(AuditLog)
        if entity_type:
            stmt = stmt.where(AuditLog.entity_type == entity_type)
        if entity_id:
            stmt = stmt.where(AuditLog.entity_id == entity_id)

        with get_session_context() as session:
            return paginate(session, stmt.order_by(AuditLog.created_at.asc()), limit, offset)


audit_service = AuditService()
