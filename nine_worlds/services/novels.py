"""
Content store: novels, chapters and categories.

Mutations check permissions first (``AuthorizationError`` propagates), then
write and adjust the novel's statistics in the same transaction. Reads hide
soft-deleted rows.
"""
import logging
from typing import List, Optional, Sequence

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.models.novel_model import Category, Chapter, Novel, NovelCategory, NovelStatus, NovelType
from nine_worlds.models.statistics_model import Statistics
from nine_worlds.models.target import Target
from nine_worlds.services import permissions
from nine_worlds.services.permissions import Action, AuthorizationError
from nine_worlds.services.statistics import CounterKind, apply_delta
from nine_worlds.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


async def _require_on(db: AsyncSession, user_id: int, action: Action, target: Target) -> None:
    if not await permissions.authorize_on(db, user_id, action, target):
        raise AuthorizationError(f"Not allowed to {action.value.replace('_', ' ')} on this {target.kind.value}")


async def _set_categories(db: AsyncSession, novel_id: int, category_ids: Sequence[int]) -> None:
    for category_id in dict.fromkeys(category_ids):
        db.add(NovelCategory(novel_id=novel_id, category_id=category_id))


async def create_novel(
    db: AsyncSession,
    actor_id: int,
    title: str,
    summary: str,
    translator_id: Optional[int] = None,
    cover_image: Optional[str] = None,
    category_ids: Optional[Sequence[int]] = None,
) -> Optional[Novel]:
    """Novel, its categories and its zeroed statistics row commit together."""
    permissions.require(await permissions.get_role_name(db, actor_id), Action.CREATE_NOVEL)

    try:
        novel = Novel(
            title=title,
            summary=summary,
            author_id=actor_id,
            translator_id=translator_id,
            cover_image=cover_image,
            type=NovelType.TRANSLATED if translator_id else NovelType.ORIGINAL,
            status=NovelStatus.ONGOING,
        )
        db.add(novel)
        await db.flush()  # get novel.id

        await _set_categories(db, novel.id, category_ids or [])
        db.add(Statistics(novel_id=novel.id))
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Creating novel %r failed", title)
        return None

    await db.refresh(novel)
    return novel


async def get_novel_by_id(db: AsyncSession, novel_id: int) -> Optional[Novel]:
    return (
        await db.execute(select(Novel).where(Novel.id == novel_id, Novel.is_deleted.is_(False)))
    ).scalar_one_or_none()


async def get_novel_categories(db: AsyncSession, novel_id: int) -> List[Category]:
    return (
        await db.execute(
            select(Category)
            .join(NovelCategory, NovelCategory.category_id == Category.id)
            .where(NovelCategory.novel_id == novel_id)
            .order_by(Category.name)
        )
    ).scalars().all()


async def update_novel(
    db: AsyncSession,
    actor_id: int,
    novel_id: int,
    title: Optional[str] = None,
    summary: Optional[str] = None,
    cover_image: Optional[str] = None,
    status: Optional[NovelStatus] = None,
    category_ids: Optional[Sequence[int]] = None,
) -> Optional[Novel]:
    novel = await get_novel_by_id(db, novel_id)
    if not novel:
        return None
    await _require_on(db, actor_id, Action.EDIT_OWN_NOVEL, Target.novel(novel_id))

    try:
        if title is not None:
            novel.title = title
        if summary is not None:
            novel.summary = summary
        if cover_image is not None:
            novel.cover_image = cover_image
        if status is not None:
            novel.status = status
        # None leaves categories alone; an empty list clears them
        if category_ids is not None:
            await db.execute(delete(NovelCategory).where(NovelCategory.novel_id == novel_id))
            await _set_categories(db, novel_id, category_ids)
        novel.updated_at = utcnow()
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Updating novel %s failed", novel_id)
        return None

    await db.refresh(novel)
    return novel


async def delete_novel(db: AsyncSession, actor_id: int, novel_id: int) -> bool:
    novel = await get_novel_by_id(db, novel_id)
    if not novel:
        return False
    await _require_on(db, actor_id, Action.DELETE_OWN_NOVEL, Target.novel(novel_id))

    try:
        novel.is_deleted = True
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Deleting novel %s failed", novel_id)
        return False
    return True


async def set_featured(db: AsyncSession, actor_id: int, novel_id: int, featured: bool) -> Optional[Novel]:
    permissions.require(await permissions.get_role_name(db, actor_id), Action.FEATURE_NOVEL)

    novel = await get_novel_by_id(db, novel_id)
    if not novel:
        return None
    try:
        novel.is_featured = bool(featured)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Featuring novel %s failed", novel_id)
        return None

    await db.refresh(novel)
    return novel


async def create_chapter(
    db: AsyncSession,
    actor_id: int,
    novel_id: int,
    title: str,
    content: str,
) -> Optional[Chapter]:
    """
    Numbered max+1 within the novel, in the same transaction as the insert.
    The novel row is locked first (no-op on sqlite) and the
    (novel_id, chapter_number) unique constraint catches anything that slips by.
    """
    novel = await get_novel_by_id(db, novel_id)
    if not novel:
        return None
    await _require_on(db, actor_id, Action.EDIT_OWN_NOVEL, Target.novel(novel_id))

    try:
        await db.execute(select(Novel.id).where(Novel.id == novel_id).with_for_update())
        last_number = (
            await db.execute(select(func.max(Chapter.chapter_number)).where(Chapter.novel_id == novel_id))
        ).scalar_one()

        chapter = Chapter(
            novel_id=novel_id,
            title=title,
            content=content,
            chapter_number=(last_number or 0) + 1,
            author_id=novel.author_id,
            translator_id=novel.translator_id,
        )
        db.add(chapter)
        await db.flush()

        await apply_delta(db, novel_id, CounterKind.CHAPTERS, +1)
        novel.updated_at = utcnow()
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Creating chapter for novel %s failed", novel_id)
        return None

    await db.refresh(chapter)
    return chapter


def _live_chapters(*columns):
    # a chapter dies with its novel
    return (
        select(*columns)
        .join(Novel, Novel.id == Chapter.novel_id)
        .where(Chapter.is_deleted.is_(False), Novel.is_deleted.is_(False))
    )


async def get_chapter_by_id(db: AsyncSession, chapter_id: int) -> Optional[Chapter]:
    return (await db.execute(_live_chapters(Chapter).where(Chapter.id == chapter_id))).scalar_one_or_none()


async def get_chapters_by_novel_id(db: AsyncSession, novel_id: int) -> List[Chapter]:
    return (
        await db.execute(
            _live_chapters(Chapter)
            .where(Chapter.novel_id == novel_id)
            .order_by(Chapter.chapter_number.asc())
        )
    ).scalars().all()


async def update_chapter(
    db: AsyncSession,
    actor_id: int,
    chapter_id: int,
    title: Optional[str] = None,
    content: Optional[str] = None,
) -> Optional[Chapter]:
    chapter = await get_chapter_by_id(db, chapter_id)
    if not chapter:
        return None
    await _require_on(db, actor_id, Action.EDIT_OWN_NOVEL, Target.chapter(chapter_id))

    try:
        if title is not None:
            chapter.title = title
        if content is not None:
            chapter.content = content
        chapter.updated_at = utcnow()
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Updating chapter %s failed", chapter_id)
        return None

    await db.refresh(chapter)
    return chapter


async def delete_chapter(db: AsyncSession, actor_id: int, chapter_id: int) -> bool:
    chapter = await get_chapter_by_id(db, chapter_id)
    if not chapter:
        return False
    await _require_on(db, actor_id, Action.DELETE_OWN_NOVEL, Target.chapter(chapter_id))

    try:
        chapter.is_deleted = True
        await apply_delta(db, chapter.novel_id, CounterKind.CHAPTERS, -1)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Deleting chapter %s failed", chapter_id)
        return False
    return True


async def increment_novel_views(db: AsyncSession, novel_id: int) -> bool:
    try:
        result = await db.execute(
            update(Novel)
            .where(Novel.id == novel_id, Novel.is_deleted.is_(False))
            .values(views=Novel.views + 1)
            .execution_options(synchronize_session="evaluate")
        )
        if result.rowcount == 0:
            await db.rollback()
            return False
        await apply_delta(db, novel_id, CounterKind.VIEWS, +1)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Recording a view of novel %s failed", novel_id)
        return False
    return True


async def increment_chapter_views(db: AsyncSession, chapter_id: int) -> bool:
    try:
        novel_id = (
            await db.execute(_live_chapters(Chapter.novel_id).where(Chapter.id == chapter_id))
        ).scalar_one_or_none()
        if novel_id is None:
            await db.rollback()
            return False

        await db.execute(
            update(Chapter)
            .where(Chapter.id == chapter_id)
            .values(views=Chapter.views + 1)
            .execution_options(synchronize_session="evaluate")
        )
        await apply_delta(db, novel_id, CounterKind.VIEWS, +1)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Recording a view of chapter %s failed", chapter_id)
        return False
    return True


async def get_all_categories(db: AsyncSession) -> List[Category]:
    return (await db.execute(select(Category).order_by(Category.name))).scalars().all()


async def create_category(db: AsyncSession, actor_id: int, name: str, description: Optional[str] = None) -> Optional[Category]:
    permissions.require(await permissions.get_role_name(db, actor_id), Action.MODERATE_CONTENT)

    try:
        category = Category(name=name.strip(), description=description)
        db.add(category)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Creating category %r failed", name)
        return None

    await db.refresh(category)
    return category


def _live_novels():
    return select(Novel).where(Novel.is_deleted.is_(False))


async def get_latest_novels(db: AsyncSession, limit: int = 10) -> List[Novel]:
    return (
        await db.execute(_live_novels().order_by(Novel.updated_at.desc(), Novel.id.desc()).limit(limit))
    ).scalars().all()


async def get_popular_novels(db: AsyncSession, limit: int = 10) -> List[Novel]:
    return (
        await db.execute(
            _live_novels()
            .join(Statistics, Statistics.novel_id == Novel.id)
            .order_by(Statistics.total_views.desc(), Novel.id.desc())
            .limit(limit)
        )
    ).scalars().all()


async def get_novels_by_category(db: AsyncSession, category_id: int, limit: int = 10) -> List[Novel]:
    return (
        await db.execute(
            _live_novels()
            .join(NovelCategory, NovelCategory.novel_id == Novel.id)
            .where(NovelCategory.category_id == category_id)
            .order_by(Novel.updated_at.desc())
            .limit(limit)
        )
    ).scalars().all()


async def get_novels_by_author(db: AsyncSession, author_id: int) -> List[Novel]:
    return (
        await db.execute(_live_novels().where(Novel.author_id == author_id).order_by(Novel.updated_at.desc()))
    ).scalars().all()


async def get_novels_by_translator(db: AsyncSession, translator_id: int) -> List[Novel]:
    return (
        await db.execute(
            _live_novels().where(Novel.translator_id == translator_id).order_by(Novel.updated_at.desc())
        )
    ).scalars().all()
