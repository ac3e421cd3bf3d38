import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.models.admin_log_model import AdminLog

logger = logging.getLogger(__name__)


def log_admin_action(db: AsyncSession, admin_id: Optional[int], action: str, details: Dict[str, Any]) -> AdminLog:
    """
    Stage an audit entry in the caller's transaction.
    It commits (or rolls back) together with the mutation it describes.
    """
    entry = AdminLog(admin_id=admin_id, action=action, details=dict(details))
    db.add(entry)
    logger.info("admin action %s by %s: %s", action, admin_id, details)
    return entry


async def get_admin_logs(db: AsyncSession, page: int = 1, limit: int = 50, action: Optional[str] = None) -> Dict[str, Any]:
    filters = []
    if action:
        filters.append(AdminLog.action == action)

    total = int(
        (await db.execute(select(func.count(AdminLog.id)).where(*filters))).scalar_one() or 0
    )
    rows: List[AdminLog] = (
        await db.execute(
            select(AdminLog)
            .where(*filters)
            .order_by(AdminLog.created_at.desc(), AdminLog.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    ).scalars().all()
    return {"logs": rows, "total": total, "page": page, "limit": limit}
