from typing import List, Optional

from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.models import AuditLog


async def log_audit(db: AsyncSession, actor_id: Optional[str], action: str, object_type: str = None,
                    object_id: str = None, detail: dict = None) -> AuditLog:
    entry = AuditLog(actor_id=actor_id, action=action, object_type=object_type, object_id=object_id, detail=detail)
    db.add(entry)
    # caller owns the transaction
    return entry


async def list_audit_entries(db: AsyncSession, object_type: Optional[str] = None, object_id: Optional[str] = None,
                             limit: int = 100) -> List[AuditLog]:
    """Newest first."""
    stmt = sa_select(AuditLog)
    if object_type:
        stmt = stmt.where(AuditLog.object_type == object_type)
    if object_id:
        stmt = stmt.where(AuditLog.object_id == object_id)
    res = await db.execute(stmt.order_by(AuditLog.id.desc()).limit(limit))
    return list(res.scalars().all())
