from sqlalchemy import Column, Integer, Text, Boolean, DateTime, ForeignKey, Index, Enum as SqlEnum

from nine_worlds.database import Base
from nine_worlds.models.target import Target, TargetKind
from nine_worlds.utils.time_utils import utcnow


class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (
        Index("ix_comments_target", "target_type", "target_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # novel or chapter, never a comment
    target_type = Column(
        SqlEnum(TargetKind, name="comment_target", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    target_id = Column(Integer, nullable=False)

    parent_comment_id = Column(
        Integer,
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    content = Column(Text, nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def target(self) -> Target:
        return Target(self.target_type, self.target_id)
