"""Per-user bookmarks and reading progress."""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.models.library_model import Bookmark, ReadingHistory
from nine_worlds.models.novel_model import Chapter, Novel
from nine_worlds.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


async def is_novel_in_library(db: AsyncSession, user_id: int, novel_id: int) -> bool:
    return (
        await db.execute(select(Bookmark.id).where(Bookmark.user_id == user_id, Bookmark.novel_id == novel_id))
    ).scalar_one_or_none() is not None


async def add_to_library(db: AsyncSession, user_id: int, novel_id: int) -> bool:
    """Idempotent. False only when the novel is missing or the write fails."""
    novel = (
        await db.execute(select(Novel.id).where(Novel.id == novel_id, Novel.is_deleted.is_(False)))
    ).scalar_one_or_none()
    if novel is None:
        return False
    if await is_novel_in_library(db, user_id, novel_id):
        return True

    try:
        db.add(Bookmark(user_id=user_id, novel_id=novel_id))
        await db.commit()
    except IntegrityError:
        # a concurrent add got there first
        await db.rollback()
        return True
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Bookmarking novel %s for user %s failed", novel_id, user_id)
        return False
    return True


async def remove_from_library(db: AsyncSession, user_id: int, novel_id: int) -> bool:
    bookmark = (
        await db.execute(select(Bookmark).where(Bookmark.user_id == user_id, Bookmark.novel_id == novel_id))
    ).scalar_one_or_none()
    if not bookmark:
        return False

    try:
        await db.delete(bookmark)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Removing bookmark %s failed", bookmark.id)
        return False
    return True


async def get_user_library(db: AsyncSession, user_id: int) -> List[Novel]:
    return (
        await db.execute(
            select(Novel)
            .join(Bookmark, Bookmark.novel_id == Novel.id)
            .where(Bookmark.user_id == user_id, Novel.is_deleted.is_(False))
            .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        )
    ).scalars().all()


async def save_reading_progress(
    db: AsyncSession,
    user_id: int,
    novel_id: int,
    chapter_id: int,
    position: int = 0,
) -> Optional[ReadingHistory]:
    """Upsert on (user, novel, chapter). The chapter has to belong to the novel."""
    chapter_novel = (
        await db.execute(select(Chapter.novel_id).where(Chapter.id == chapter_id, Chapter.is_deleted.is_(False)))
    ).scalar_one_or_none()
    if chapter_novel is None or chapter_novel != novel_id:
        return None

    entry = (
        await db.execute(
            select(ReadingHistory).where(
                ReadingHistory.user_id == user_id,
                ReadingHistory.novel_id == novel_id,
                ReadingHistory.chapter_id == chapter_id,
            )
        )
    ).scalar_one_or_none()

    try:
        if entry:
            entry.position = position
            entry.updated_at = utcnow()
        else:
            entry = ReadingHistory(user_id=user_id, novel_id=novel_id, chapter_id=chapter_id, position=position)
            db.add(entry)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Saving progress of user %s in chapter %s failed", user_id, chapter_id)
        return None

    await db.refresh(entry)
    return entry


async def get_reading_progress(
    db: AsyncSession,
    user_id: int,
    novel_id: int,
    chapter_id: Optional[int] = None,
) -> Optional[ReadingHistory]:
    """Progress in one chapter, or the most recent entry for the novel."""
    stmt = select(ReadingHistory).where(ReadingHistory.user_id == user_id, ReadingHistory.novel_id == novel_id)
    if chapter_id is not None:
        stmt = stmt.where(ReadingHistory.chapter_id == chapter_id)
    stmt = stmt.order_by(ReadingHistory.updated_at.desc(), ReadingHistory.id.desc()).limit(1)
    return (await db.execute(stmt)).scalars().first()


async def get_user_reading_history(db: AsyncSession, user_id: int, limit: int = 20):
    """Latest entries with their novel and chapter, newest first."""
    return (
        await db.execute(
            select(ReadingHistory, Novel.title, Chapter.title, Chapter.chapter_number)
            .join(Novel, Novel.id == ReadingHistory.novel_id)
            .join(Chapter, Chapter.id == ReadingHistory.chapter_id)
            .where(ReadingHistory.user_id == user_id, Novel.is_deleted.is_(False))
            .order_by(ReadingHistory.updated_at.desc(), ReadingHistory.id.desc())
            .limit(limit)
        )
    ).all()
