import logging
from typing import List, Optional

from sqlalchemy import select, update, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.models.comment_model import Comment
from nine_worlds.models.novel_model import Chapter, Novel
from nine_worlds.models.target import COMMENTABLE_KINDS, Target, TargetKind
from nine_worlds.services import permissions
from nine_worlds.services.permissions import Action, AuthorizationError
from nine_worlds.services.statistics import CounterKind, apply_delta, resolve_novel_id
from nine_worlds.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


async def target_is_live(db: AsyncSession, target: Target) -> bool:
    if target.kind is TargetKind.NOVEL:
        stmt = select(Novel.id).where(Novel.id == target.id, Novel.is_deleted.is_(False))
    elif target.kind is TargetKind.CHAPTER:
        stmt = (
            select(Chapter.id)
            .join(Novel, Novel.id == Chapter.novel_id)
            .where(Chapter.id == target.id, Chapter.is_deleted.is_(False), Novel.is_deleted.is_(False))
        )
    else:
        return False
    return (await db.execute(stmt)).scalar_one_or_none() is not None


async def get_comment_by_id(db: AsyncSession, comment_id: int) -> Optional[Comment]:
    return (
        await db.execute(select(Comment).where(Comment.id == comment_id, Comment.is_deleted.is_(False)))
    ).scalar_one_or_none()


async def create_comment(
    db: AsyncSession,
    user_id: int,
    target: Target,
    content: str,
    parent_comment_id: Optional[int] = None,
) -> Optional[Comment]:
    """
    Attach a comment to a live novel or chapter. A reply's parent must hang
    off the same target. Returns None when either check fails.
    """
    permissions.require(await permissions.get_role_name(db, user_id), Action.COMMENT)

    if target.kind not in COMMENTABLE_KINDS or not await target_is_live(db, target):
        return None

    if parent_comment_id is not None:
        parent = await get_comment_by_id(db, parent_comment_id)
        if parent is None or parent.target != target:
            return None

    try:
        comment = Comment(
            user_id=user_id,
            target_type=target.kind,
            target_id=target.id,
            parent_comment_id=parent_comment_id,
            content=content,
        )
        db.add(comment)
        await db.flush()

        await apply_delta(db, await resolve_novel_id(db, target), CounterKind.COMMENTS, +1)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Creating comment on %s %s failed", target.kind.value, target.id)
        return None

    await db.refresh(comment)
    return comment


async def get_comments_for(db: AsyncSession, target: Target, limit: int = 50, offset: int = 0) -> List[Comment]:
    """Top-level comments, newest first."""
    return (
        await db.execute(
            select(Comment)
            .where(
                Comment.target_type == target.kind,
                Comment.target_id == target.id,
                Comment.parent_comment_id.is_(None),
                Comment.is_deleted.is_(False),
            )
            .order_by(Comment.created_at.desc(), Comment.id.desc())
            .offset(offset)
            .limit(limit)
        )
    ).scalars().all()


async def get_comment_replies(db: AsyncSession, comment_id: int) -> List[Comment]:
    return (
        await db.execute(
            select(Comment)
            .where(Comment.parent_comment_id == comment_id, Comment.is_deleted.is_(False))
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        )
    ).scalars().all()


async def update_comment(db: AsyncSession, user_id: int, comment_id: int, content: str) -> Optional[Comment]:
    comment = await get_comment_by_id(db, comment_id)
    if not comment:
        return None
    if not await permissions.can_user_edit_comment(db, user_id, comment_id):
        raise AuthorizationError("Not allowed to edit this comment")

    try:
        comment.content = content
        comment.updated_at = utcnow()
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Updating comment %s failed", comment_id)
        return None

    await db.refresh(comment)
    return comment


async def delete_comment(db: AsyncSession, user_id: int, comment_id: int) -> bool:
    """Soft-deletes the comment and its direct replies; the counter drops by the rows flipped."""
    comment = await get_comment_by_id(db, comment_id)
    if not comment:
        return False
    if not await permissions.can_user_edit_comment(db, user_id, comment_id):
        raise AuthorizationError("Not allowed to delete this comment")

    try:
        result = await db.execute(
            update(Comment)
            .where(
                or_(Comment.id == comment_id, Comment.parent_comment_id == comment_id),
                Comment.is_deleted.is_(False),
            )
            .values(is_deleted=True, updated_at=utcnow())
            .execution_options(synchronize_session="evaluate")
        )
        flipped = result.rowcount or 0
        await apply_delta(db, await resolve_novel_id(db, comment.target), CounterKind.COMMENTS, -flipped)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Deleting comment %s failed", comment_id)
        return False
    return True
