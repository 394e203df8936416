"""
Audit Router

- GET /api/audit — paginated audit trail, oldest first (entity_type / entity_id filters)
"""

from typing import Optional

from fastapi import APIRouter

from app.core.async_utils import run_sync
from app.models.responses import AuditLogResponse, PageResponse, to_page
from app.services.audit_service import audit_service

router = APIRouter()


@router.get("", response_model=PageResponse[AuditLogResponse])
async def list_audit_entries(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
):
    page = await run_sync(
        audit_service.list_entries,
        entity_type=entity_type,
        entity_id=entity_id,
        limit=limit,
        offset=offset,
    )
    return to_page(page, AuditLogResponse)
