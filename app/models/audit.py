"""
AuditLog: append-only record of domain actions, written in the same
transaction as the action it describes.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlmodel import JSON, Column, Field, SQLModel

from app.models.base import new_id, utcnow


class AuditAction(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    STATUS_CHANGE = "STATUS_CHANGE"
    LINE_ADDED = "LINE_ADDED"
    LINE_REMOVED = "LINE_REMOVED"
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    DISCOUNT_APPLIED = "DISCOUNT_APPLIED"


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    actor_id: str = Field(default="system", index=True, max_length=128)
    entity_type: str = Field(index=True, max_length=64)
    entity_id: str = Field(index=True, max_length=36)
    action: str = Field(max_length=32)
    old_value: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    new_value: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=utcnow, index=True)
