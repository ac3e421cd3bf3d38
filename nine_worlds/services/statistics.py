"""
Denormalized per-novel counters.

Every counted mutation (comment, reaction, chapter, view) calls ``apply_delta``
inside the same transaction as the row it changes, so a counter never
outlives a rolled-back write. ``recount_novel_statistics`` is the source of
truth the counters must always agree with.
"""
import enum
import logging
from typing import Dict, Optional

from sqlalchemy import select, update, func, or_, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.models.comment_model import Comment
from nine_worlds.models.novel_model import Chapter, Novel
from nine_worlds.models.reaction_model import Reaction
from nine_worlds.models.statistics_model import Statistics
from nine_worlds.models.target import Target, TargetKind
from nine_worlds.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class CounterKind(enum.Enum):
    VIEWS = "total_views"
    COMMENTS = "total_comments"
    REACTIONS = "total_reactions"
    CHAPTERS = "total_chapters"


async def resolve_novel_id(db: AsyncSession, target: Target) -> Optional[int]:
    """Follow chapter -> novel and comment -> (novel | chapter -> novel)."""
    if target.kind is TargetKind.NOVEL:
        return (
            await db.execute(select(Novel.id).where(Novel.id == target.id))
        ).scalar_one_or_none()

    if target.kind is TargetKind.CHAPTER:
        return (
            await db.execute(select(Chapter.novel_id).where(Chapter.id == target.id))
        ).scalar_one_or_none()

    row = (
        await db.execute(select(Comment.target_type, Comment.target_id).where(Comment.id == target.id))
    ).first()
    if row is None:
        return None
    return await resolve_novel_id(db, Target(row.target_type, row.target_id))


async def apply_delta(db: AsyncSession, novel_id: Optional[int], kind: CounterKind, delta: int) -> bool:
    """
    Add ``delta`` to one counter of a novel's statistics row.
    Does not commit. Returns False (and changes nothing) when the novel
    has no statistics row; the caller's own write still goes through.
    """
    if novel_id is None:
        logger.warning("Skipping %s %+d: owning novel could not be resolved", kind.value, delta)
        return False
    if delta == 0:
        return True

    column = getattr(Statistics, kind.value)
    result = await db.execute(
        update(Statistics)
        .where(Statistics.novel_id == novel_id)
        .values({column: column + delta, Statistics.updated_at: utcnow()})
        .execution_options(synchronize_session="evaluate")
    )
    if result.rowcount == 0:
        logger.warning("Skipping %s %+d: no statistics row for novel %s", kind.value, delta, novel_id)
        return False
    return True


async def get_novel_statistics(db: AsyncSession, novel_id: int) -> Optional[Statistics]:
    return (
        await db.execute(
            select(Statistics)
            .where(Statistics.novel_id == novel_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()


def _chapter_ids(novel_id: int):
    return select(Chapter.id).where(Chapter.novel_id == novel_id)


def _comment_ids(novel_id: int):
    return select(Comment.id).where(
        or_(
            and_(Comment.target_type == TargetKind.NOVEL, Comment.target_id == novel_id),
            and_(Comment.target_type == TargetKind.CHAPTER, Comment.target_id.in_(_chapter_ids(novel_id))),
        )
    )


async def recount_novel_statistics(db: AsyncSession, novel_id: int) -> Dict[str, int]:
    """Fresh counts straight from the source rows."""
    chapters = (
        await db.execute(
            select(func.count(Chapter.id)).where(Chapter.novel_id == novel_id, Chapter.is_deleted.is_(False))
        )
    ).scalar_one()

    comments = (
        await db.execute(
            select(func.count(Comment.id)).where(
                Comment.id.in_(_comment_ids(novel_id)),
                Comment.is_deleted.is_(False),
            )
        )
    ).scalar_one()

    reactions = (
        await db.execute(
            select(func.count(Reaction.id)).where(
                or_(
                    and_(Reaction.target_type == TargetKind.NOVEL, Reaction.target_id == novel_id),
                    and_(Reaction.target_type == TargetKind.CHAPTER, Reaction.target_id.in_(_chapter_ids(novel_id))),
                    and_(Reaction.target_type == TargetKind.COMMENT, Reaction.target_id.in_(_comment_ids(novel_id))),
                )
            )
        )
    ).scalar_one()

    novel_views = (
        await db.execute(select(Novel.views).where(Novel.id == novel_id))
    ).scalar_one_or_none() or 0
    chapter_views = (
        await db.execute(select(func.coalesce(func.sum(Chapter.views), 0)).where(Chapter.novel_id == novel_id))
    ).scalar_one()

    return {
        "total_views": int(novel_views) + int(chapter_views or 0),
        "total_comments": int(comments or 0),
        "total_reactions": int(reactions or 0),
        "total_chapters": int(chapters or 0),
    }


async def reconcile_novel_statistics(db: AsyncSession, novel_id: int) -> Optional[Statistics]:
    """Overwrite (or create) a novel's statistics row with a fresh recount."""
    novel = await db.get(Novel, novel_id)
    if not novel:
        return None

    try:
        counts = await recount_novel_statistics(db, novel_id)
        stats = await get_novel_statistics(db, novel_id)
        if stats is None:
            stats = Statistics(novel_id=novel_id)
            db.add(stats)
        for field, value in counts.items():
            setattr(stats, field, value)
        stats.updated_at = utcnow()
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Reconciling statistics for novel %s failed", novel_id)
        return None

    await db.refresh(stats)
    return stats


async def get_user_statistics(db: AsyncSession, user_id: int) -> Dict[str, int]:
    """Per-user rollup, computed on read."""

    async def count(stmt) -> int:
        return int((await db.execute(stmt)).scalar_one() or 0)

    live_novel = Novel.is_deleted.is_(False)
    live_chapter = Chapter.is_deleted.is_(False)

    novels = await count(select(func.count(Novel.id)).where(Novel.author_id == user_id, live_novel))
    translated_novels = await count(select(func.count(Novel.id)).where(Novel.translator_id == user_id, live_novel))
    chapters = await count(select(func.count(Chapter.id)).where(Chapter.author_id == user_id, live_chapter))
    translated_chapters = await count(
        select(func.count(Chapter.id)).where(Chapter.translator_id == user_id, live_chapter)
    )
    comments = await count(
        select(func.count(Comment.id)).where(Comment.user_id == user_id, Comment.is_deleted.is_(False))
    )
    reactions = await count(select(func.count(Reaction.id)).where(Reaction.user_id == user_id))

    owned = or_(Novel.author_id == user_id, Novel.translator_id == user_id)
    novel_views = await count(select(func.coalesce(func.sum(Novel.views), 0)).where(owned, live_novel))
    chapter_views = await count(
        select(func.coalesce(func.sum(Chapter.views), 0)).where(
            or_(Chapter.author_id == user_id, Chapter.translator_id == user_id), live_chapter
        )
    )
    comments_received = await count(
        select(func.count(Comment.id))
        .join(Novel, and_(Comment.target_type == TargetKind.NOVEL, Comment.target_id == Novel.id))
        .where(owned, Comment.is_deleted.is_(False))
    )
    reactions_received = await count(
        select(func.count(Reaction.id))
        .join(Novel, and_(Reaction.target_type == TargetKind.NOVEL, Reaction.target_id == Novel.id))
        .where(owned)
    )

    return {
        "novels": novels,
        "translated_novels": translated_novels,
        "chapters": chapters,
        "translated_chapters": translated_chapters,
        "comments": comments,
        "reactions": reactions,
        "views": novel_views + chapter_views,
        "comments_received": comments_received,
        "reactions_received": reactions_received,
    }
