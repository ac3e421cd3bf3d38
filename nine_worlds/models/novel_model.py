import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Enum as SqlEnum,
)

from nine_worlds.database import Base
from nine_worlds.utils.time_utils import utcnow


def _values(e):
    return [m.value for m in e]


class NovelStatus(enum.Enum):
    ONGOING = "ongoing"
    COMPLETED = "completed"
    HIATUS = "hiatus"


class NovelType(enum.Enum):
    ORIGINAL = "original"
    TRANSLATED = "translated"


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(64), unique=True, nullable=False)
    description = Column(String(255))


class NovelCategory(Base):
    __tablename__ = "novel_categories"
    __table_args__ = (
        UniqueConstraint("novel_id", "category_id", name="uq_novel_category"),
    )

    id = Column(Integer, primary_key=True, index=True)
    novel_id = Column(Integer, ForeignKey("novels.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True)


class Novel(Base):
    __tablename__ = "novels"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False, index=True)
    summary = Column(Text)
    cover_image = Column(String(2048))

    status = Column(
        SqlEnum(NovelStatus, name="novel_status", values_callable=_values),
        nullable=False,
        default=NovelStatus.ONGOING,
    )
    type = Column(
        SqlEnum(NovelType, name="novel_type", values_callable=_values),
        nullable=False,
        default=NovelType.ORIGINAL,
    )

    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    translator_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    views = Column(Integer, nullable=False, default=0)
    is_featured = Column(Boolean, nullable=False, default=False)
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class Chapter(Base):
    __tablename__ = "chapters"
    __table_args__ = (
        # numbers are handed out as max+1 and never reused
        UniqueConstraint("novel_id", "chapter_number", name="uq_chapter_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    novel_id = Column(Integer, ForeignKey("novels.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    chapter_number = Column(Integer, nullable=False)

    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    translator_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    views = Column(Integer, nullable=False, default=0)
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

