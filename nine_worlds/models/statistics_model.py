from sqlalchemy import Column, Integer, DateTime, ForeignKey

from nine_worlds.database import Base
from nine_worlds.utils.time_utils import utcnow


class Statistics(Base):
    """Per-novel denormalized totals, maintained incrementally by services.statistics."""
    __tablename__ = "statistics"

    novel_id = Column(Integer, ForeignKey("novels.id", ondelete="CASCADE"), primary_key=True)
    total_views = Column(Integer, nullable=False, default=0)
    total_comments = Column(Integer, nullable=False, default=0)
    total_reactions = Column(Integer, nullable=False, default=0)
    total_chapters = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
