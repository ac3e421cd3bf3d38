import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.models.comment_model import Comment
from nine_worlds.models.reaction_model import Reaction, ReactionType
from nine_worlds.models.target import Target, TargetKind
from nine_worlds.services import permissions
from nine_worlds.services.comments import target_is_live
from nine_worlds.services.permissions import Action
from nine_worlds.services.statistics import CounterKind, apply_delta, resolve_novel_id

logger = logging.getLogger(__name__)


@dataclass
class ReactionState:
    reacted: bool
    count: int


async def _reactable(db: AsyncSession, target: Target) -> bool:
    if target.kind is TargetKind.COMMENT:
        return (
            await db.execute(select(Comment.id).where(Comment.id == target.id, Comment.is_deleted.is_(False)))
        ).scalar_one_or_none() is not None
    return await target_is_live(db, target)


def _match(user_id: int, target: Target, reaction_type: ReactionType):
    return (
        Reaction.user_id == user_id,
        Reaction.target_type == target.kind,
        Reaction.target_id == target.id,
        Reaction.reaction_type == reaction_type.value,
    )


async def get_reaction_count(db: AsyncSession, target: Target, reaction_type: Optional[ReactionType] = None) -> int:
    stmt = select(func.count(Reaction.id)).where(
        Reaction.target_type == target.kind,
        Reaction.target_id == target.id,
    )
    if reaction_type is not None:
        stmt = stmt.where(Reaction.reaction_type == reaction_type.value)
    return int((await db.execute(stmt)).scalar_one() or 0)


async def has_user_reacted(db: AsyncSession, user_id: int, target: Target, reaction_type: ReactionType) -> bool:
    return (
        await db.execute(select(Reaction.id).where(*_match(user_id, target, reaction_type)))
    ).scalar_one_or_none() is not None


async def toggle_reaction(
    db: AsyncSession,
    user_id: int,
    target: Target,
    reaction_type: ReactionType,
) -> Optional[ReactionState]:
    """Adds the reaction, or removes it if the user already has it. None if the target is gone."""
    permissions.require(await permissions.get_role_name(db, user_id), Action.COMMENT)

    if not await _reactable(db, target):
        return None

    try:
        existing = (
            await db.execute(select(Reaction).where(*_match(user_id, target, reaction_type)))
        ).scalar_one_or_none()

        novel_id = await resolve_novel_id(db, target)
        if existing:
            await db.delete(existing)
            await apply_delta(db, novel_id, CounterKind.REACTIONS, -1)
            reacted = False
        else:
            db.add(Reaction(
                user_id=user_id,
                target_type=target.kind,
                target_id=target.id,
                reaction_type=reaction_type.value,
            ))
            await apply_delta(db, novel_id, CounterKind.REACTIONS, +1)
            reacted = True
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Toggling %s on %s %s failed", reaction_type.value, target.kind.value, target.id)
        return None

    return ReactionState(reacted=reacted, count=await get_reaction_count(db, target, reaction_type))
