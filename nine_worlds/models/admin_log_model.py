from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON

from nine_worlds.database import Base
from nine_worlds.utils.time_utils import utcnow


class AdminLog(Base):
    __tablename__ = "admin_logs"

    id = Column(Integer, primary_key=True, index=True)
    # NULL for system actions (expired bans lifted at login)
    admin_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(64), nullable=False, index=True)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
