"""
Search and leaderboards. Deleted novels never appear.
"""
import logging
from typing import Any, Dict, List

from sqlalchemy import select, func, case, or_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.models.comment_model import Comment
from nine_worlds.models.novel_model import Category, Novel, NovelCategory
from nine_worlds.models.reaction_model import Reaction
from nine_worlds.models.statistics_model import Statistics
from nine_worlds.models.user_model import User

logger = logging.getLogger(__name__)

RANKING_COLUMNS = {
    "views": Statistics.total_views,
    "comments": Statistics.total_comments,
    "reactions": Statistics.total_reactions,
}


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _live():
    return Novel.is_deleted.is_(False)


async def search_novels(db: AsyncSession, query: str, limit: int = 20) -> List[Novel]:
    term = (query or "").strip()
    if not term:
        return []

    escaped = _escape_like(term)
    starts = f"{escaped}%"
    contains = f"%{escaped}%"

    rank = case(
        (Novel.title.ilike(starts, escape="\\"), 0),
        (Novel.title.ilike(contains, escape="\\"), 1),
        else_=2,
    )
    stmt = (
        select(Novel)
        .where(
            _live(),
            or_(Novel.title.ilike(contains, escape="\\"), Novel.summary.ilike(contains, escape="\\")),
        )
        .order_by(rank, Novel.views.desc(), Novel.id.desc())
        .limit(limit)
    )
    return (await db.execute(stmt)).scalars().all()


async def search_by_category(db: AsyncSession, category_id: int, limit: int = 20) -> List[Novel]:
    return (
        await db.execute(
            select(Novel)
            .join(NovelCategory, NovelCategory.novel_id == Novel.id)
            .where(NovelCategory.category_id == category_id, _live())
            .order_by(Novel.views.desc(), Novel.id.desc())
            .limit(limit)
        )
    ).scalars().all()


async def search_by_author(db: AsyncSession, query: str, limit: int = 20) -> List[Novel]:
    term = (query or "").strip()
    if not term:
        return []
    contains = f"%{_escape_like(term)}%"
    return (
        await db.execute(
            select(Novel)
            .join(User, User.id == Novel.author_id)
            .where(
                _live(),
                or_(User.username.ilike(contains, escape="\\"), User.display_name.ilike(contains, escape="\\")),
            )
            .order_by(Novel.views.desc(), Novel.id.desc())
            .limit(limit)
        )
    ).scalars().all()


async def get_related_novels(db: AsyncSession, novel_id: int, limit: int = 5) -> List[Novel]:
    """Novels sharing the most categories with this one."""
    own_categories = select(NovelCategory.category_id).where(NovelCategory.novel_id == novel_id)
    shared = func.count(NovelCategory.category_id)
    return (
        await db.execute(
            select(Novel)
            .join(NovelCategory, NovelCategory.novel_id == Novel.id)
            .where(NovelCategory.category_id.in_(own_categories), Novel.id != novel_id, _live())
            .group_by(Novel.id)
            .order_by(desc(shared), Novel.views.desc(), Novel.id.desc())
            .limit(limit)
        )
    ).scalars().all()


async def get_featured_novels(db: AsyncSession, limit: int = 10) -> List[Novel]:
    return (
        await db.execute(
            select(Novel)
            .where(Novel.is_featured.is_(True), _live())
            .order_by(Novel.updated_at.desc(), Novel.id.desc())
            .limit(limit)
        )
    ).scalars().all()


async def get_top_novels(db: AsyncSession, by: str = "views", limit: int = 10) -> List[Novel]:
    column = RANKING_COLUMNS.get(by)
    if column is None:
        raise ValueError(f"Unknown ranking: {by}")
    return (
        await db.execute(
            select(Novel)
            .join(Statistics, Statistics.novel_id == Novel.id)
            .where(_live())
            .order_by(column.desc(), Novel.id.desc())
            .limit(limit)
        )
    ).scalars().all()


async def get_top_novels_by_views(db: AsyncSession, limit: int = 10) -> List[Novel]:
    return await get_top_novels(db, "views", limit)


async def get_top_novels_by_comments(db: AsyncSession, limit: int = 10) -> List[Novel]:
    return await get_top_novels(db, "comments", limit)


async def get_top_novels_by_reactions(db: AsyncSession, limit: int = 10) -> List[Novel]:
    return await get_top_novels(db, "reactions", limit)


async def _top_contributors(db: AsyncSession, user_column, limit: int) -> List[Dict[str, Any]]:
    novel_count = func.count(Novel.id).label("novel_count")
    total_views = func.coalesce(func.sum(Statistics.total_views), 0).label("total_views")
    rows = (
        await db.execute(
            select(User.id, User.username, User.display_name, novel_count, total_views)
            .join(Novel, user_column == User.id)
            .join(Statistics, Statistics.novel_id == Novel.id, isouter=True)
            .where(_live())
            .group_by(User.id, User.username, User.display_name)
            .order_by(desc(total_views), desc(novel_count), User.id)
            .limit(limit)
        )
    ).all()
    return [
        {
            "id": r.id,
            "username": r.username,
            "display_name": r.display_name,
            "novel_count": int(r.novel_count),
            "total_views": int(r.total_views or 0),
        }
        for r in rows
    ]


async def get_top_authors(db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
    return await _top_contributors(db, Novel.author_id, limit)


async def get_top_translators(db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
    return await _top_contributors(db, Novel.translator_id, limit)


async def get_top_users(db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
    """Most active commenters and reactors."""
    comments = (
        select(func.count(Comment.id))
        .where(Comment.user_id == User.id, Comment.is_deleted.is_(False))
        .correlate(User)
        .scalar_subquery()
    )
    reactions = (
        select(func.count(Reaction.id))
        .where(Reaction.user_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    activity = (comments + reactions).label("activity")
    rows = (
        await db.execute(
            select(User.id, User.username, User.display_name, comments.label("comments"),
                   reactions.label("reactions"), activity)
            .where(User.is_banned.is_(False))
            .order_by(desc(activity), User.id)
            .limit(limit)
        )
    ).all()
    return [
        {
            "id": r.id,
            "username": r.username,
            "display_name": r.display_name,
            "comments": int(r.comments or 0),
            "reactions": int(r.reactions or 0),
        }
        for r in rows
        if r.activity
    ]


async def get_category_by_id(db: AsyncSession, category_id: int):
    return await db.get(Category, category_id)
