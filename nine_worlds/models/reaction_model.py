import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Index, Enum as SqlEnum

from nine_worlds.database import Base
from nine_worlds.models.target import Target, TargetKind
from nine_worlds.utils.time_utils import utcnow


class ReactionType(str, enum.Enum):
    LIKE = "like"
    LOVE = "love"
    LAUGH = "laugh"
    WOW = "wow"
    SAD = "sad"
    ANGRY = "angry"


class Reaction(Base):
    __tablename__ = "reactions"
    __table_args__ = (
        UniqueConstraint("user_id", "target_type", "target_id", "reaction_type", name="unique_user_reaction"),
        Index("ix_reactions_target", "target_type", "target_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    target_type = Column(
        SqlEnum(TargetKind, name="reaction_target", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    target_id = Column(Integer, nullable=False)
    reaction_type = Column(String(16), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def target(self) -> Target:
        return Target(self.target_type, self.target_id)
