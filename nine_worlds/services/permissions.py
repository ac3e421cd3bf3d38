"""
Role-based access control.

Every write path asks ``authorize``/``require`` before touching the database.
Roles map to capability sets in ``ROLE_CAPABILITIES``; the table is built once
at import and never mutated. Ownership (author/translator of record, or the
commenter) is resolved by ``resolve_ownership`` so novel, chapter and comment
paths all check it the same way.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.models.comment_model import Comment
from nine_worlds.models.novel_model import Chapter, Novel
from nine_worlds.models.target import Target, TargetKind
from nine_worlds.models.user_model import OWNER_ROLE_ID, User, UserRole

logger = logging.getLogger(__name__)


class AuthorizationError(Exception):
    """Actor lacks the role or ownership for an action. Surfaces as HTTP 403."""

    def __init__(self, message: str = "Not allowed"):
        super().__init__(message)
        self.message = message


class Action(str, enum.Enum):
    READ = "read"
    COMMENT = "comment"  # comments and reactions
    CREATE_NOVEL = "create_novel"
    EDIT_OWN_NOVEL = "edit_own_novel"
    DELETE_OWN_NOVEL = "delete_own_novel"
    MODERATE_CONTENT = "moderate_content"
    FEATURE_NOVEL = "feature_novel"
    VIEW_ADMIN_LOGS = "view_admin_logs"
    RECONCILE_STATISTICS = "reconcile_statistics"
    MANAGE_USERS = "manage_users"


OWNER_ONLY = frozenset({Action.MANAGE_USERS})
ADMIN_ONLY = frozenset({Action.FEATURE_NOVEL, Action.VIEW_ADMIN_LOGS, Action.RECONCILE_STATISTICS})
OWNERSHIP_REQUIRED = frozenset({Action.EDIT_OWN_NOVEL, Action.DELETE_OWN_NOVEL})

_ALL = frozenset(Action)
_CREATOR = frozenset({
    Action.READ,
    Action.COMMENT,
    Action.CREATE_NOVEL,
    Action.EDIT_OWN_NOVEL,
    Action.DELETE_OWN_NOVEL,
})

ROLE_CAPABILITIES = {
    "owner": _ALL,
    "admin": _ALL - OWNER_ONLY,
    "moderator": _ALL - OWNER_ONLY - ADMIN_ONLY,
    "author": _CREATOR,
    "translator": _CREATOR,
    "reader": frozenset({Action.READ, Action.COMMENT}),
}

# roles whose *_own_* capabilities only reach their own resources
OWNERSHIP_SCOPED_ROLES = frozenset({"author", "translator"})


@dataclass(frozen=True)
class Ownership:
    """Who holds rights over a resource, relative to one actor."""
    actor_id: int
    owner_ids: frozenset

    @property
    def is_owner(self) -> bool:
        return self.actor_id in self.owner_ids


def authorize(role_name: Optional[str], action: Action, ownership: Optional[Ownership] = None) -> bool:
    capabilities = ROLE_CAPABILITIES.get((role_name or "").lower())
    if capabilities is None or action not in capabilities:
        return False

    if role_name.lower() in OWNERSHIP_SCOPED_ROLES and action in OWNERSHIP_REQUIRED:
        return ownership is not None and ownership.is_owner

    return True


def require(role_name: Optional[str], action: Action, ownership: Optional[Ownership] = None) -> None:
    if not authorize(role_name, action, ownership):
        raise AuthorizationError(f"Role '{role_name or 'anonymous'}' may not {action.value.replace('_', ' ')}")


async def get_role_name(db: AsyncSession, user_id: int) -> Optional[str]:
    """Reads the role straight from the users table; never trusts a token claim."""
    return (
        await db.execute(
            select(UserRole.name)
            .join(User, User.role_id == UserRole.id)
            .where(User.id == user_id)
        )
    ).scalar_one_or_none()


async def verify_owner_access(db: AsyncSession, user_id: int) -> None:
    role_id = (
        await db.execute(select(User.role_id).where(User.id == user_id))
    ).scalar_one_or_none()
    if role_id != OWNER_ROLE_ID:
        logger.warning("Owner-only operation refused for user %s", user_id)
        raise AuthorizationError("Only the site owner may do this")


async def resolve_ownership(db: AsyncSession, actor_id: int, target: Target) -> Optional[Ownership]:
    """
    novel   -> its author and translator
    chapter -> the chapter's author/translator plus its novel's
    comment -> the commenter
    Returns None when the target row does not exist.
    """
    if target.kind is TargetKind.NOVEL:
        row = (
            await db.execute(select(Novel.author_id, Novel.translator_id).where(Novel.id == target.id))
        ).first()
        if row is None:
            return None
        ids = set(row)
    elif target.kind is TargetKind.CHAPTER:
        row = (
            await db.execute(
                select(Chapter.author_id, Chapter.translator_id, Novel.author_id, Novel.translator_id)
                .join(Novel, Novel.id == Chapter.novel_id)
                .where(Chapter.id == target.id)
            )
        ).first()
        if row is None:
            return None
        ids = set(row)
    else:
        user_id = (
            await db.execute(select(Comment.user_id).where(Comment.id == target.id))
        ).scalar_one_or_none()
        if user_id is None:
            return None
        ids = {user_id}

    ids.discard(None)
    return Ownership(actor_id=actor_id, owner_ids=frozenset(ids))


async def authorize_on(db: AsyncSession, user_id: int, action: Action, target: Target) -> bool:
    """Role lookup + ownership join for one concrete resource."""
    role_name = await get_role_name(db, user_id)
    if role_name is None:
        return False
    ownership = await resolve_ownership(db, user_id, target)
    if ownership is None:
        return False
    return authorize(role_name, action, ownership)


async def can_user_edit_novel(db: AsyncSession, user_id: int, novel_id: int) -> bool:
    return await authorize_on(db, user_id, Action.EDIT_OWN_NOVEL, Target.novel(novel_id))


async def can_user_edit_chapter(db: AsyncSession, user_id: int, chapter_id: int) -> bool:
    return await authorize_on(db, user_id, Action.EDIT_OWN_NOVEL, Target.chapter(chapter_id))


async def can_user_edit_comment(db: AsyncSession, user_id: int, comment_id: int) -> bool:
    role_name = await get_role_name(db, user_id)
    if role_name is None:
        return False
    if authorize(role_name, Action.MODERATE_CONTENT):
        return True
    ownership = await resolve_ownership(db, user_id, Target.comment(comment_id))
    return ownership is not None and ownership.is_owner and authorize(role_name, Action.COMMENT)
