"""
Limit/offset pagination shared by every list operation.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, Tuple, TypeVar

from sqlalchemy import func
from sqlmodel import Session, select

from app.config import settings

T = TypeVar("T")


def clamp_page(limit: Optional[int] = None, offset: Optional[int] = None) -> Tuple[int, int]:
    """Clamp limit to [1, pagination_max_limit] and offset to >= 0."""
    if limit is None:
        limit = settings.pagination_default_limit
    limit = max(1, min(int(limit), settings.pagination_max_limit))
    offset = max(0, int(offset or 0))
    return limit, offset


@dataclass
class Page(Generic[T]):
    """One page of results plus the unpaged total."""
    items: List[T] = field(default_factory=list)
    total: int = 0
    limit: int = 0
    offset: int = 0


def paginate(
    session: Session,
    stmt: Any,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> Page:
    """Run *stmt* (an ordered select) for one page and count the full result."""
    limit, offset = clamp_page(limit, offset)
    total = session.exec(select(func.count()).select_from(stmt.order_by(None).subquery())).one()
    rows = session.exec(stmt.offset(offset).limit(limit)).all()
    return Page(items=list(rows), total=total, limit=limit, offset=offset)
