"""
Owner console: account listing, role changes, bans and approvals.

Every entry point first calls ``verify_owner_access``, which re-reads the
actor's role from the database. Denials raise ``AuthorizationError``;
a missing target or a failed write returns None/False. Notifications go out
after commit and cannot undo the change.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from nine_worlds.config import APP_URL, CONTACT_EMAIL
from nine_worlds.email_service import send_email_notification
from nine_worlds.models.comment_model import Comment
from nine_worlds.models.novel_model import Chapter, Novel
from nine_worlds.models.user_model import User, UserRole, ApprovalStatus, ADMIN_ROLE_ID, OWNER_ROLE_ID
from nine_worlds.services.admin_log import log_admin_action
from nine_worlds.services.permissions import AuthorizationError, verify_owner_access
from nine_worlds.utils.time_utils import expiry_from_duration

logger = logging.getLogger(__name__)

DEFAULT_ROLE_CHANGE_NOTE = "Your role was changed by the site administration."
PERMANENT = "permanent"


def _user_totals():
    """Correlated per-user counts used by the owner listings."""
    total_novels = (
        select(func.count(Novel.id))
        .where(or_(Novel.author_id == User.id, Novel.translator_id == User.id))
        .correlate(User)
        .scalar_subquery()
    )
    total_chapters = (
        select(func.count(Chapter.id))
        .where(or_(Chapter.author_id == User.id, Chapter.translator_id == User.id))
        .correlate(User)
        .scalar_subquery()
    )
    total_comments = (
        select(func.count(Comment.id))
        .where(Comment.user_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    return (
        total_novels.label("total_novels"),
        total_chapters.label("total_chapters"),
        total_comments.label("total_comments"),
    )


def _user_row(user: User, role: Optional[UserRole], **extra) -> Dict[str, Any]:
    row = {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "display_name": user.display_name,
        "role_id": user.role_id,
        "role_name": role.name if role else None,
        "role_description": role.description if role else None,
        "is_active": user.is_active,
        "is_banned": user.is_banned,
        "ban_reason": user.ban_reason,
        "ban_expiry": user.ban_expiry,
        "approval_status": user.approval_status.value if user.approval_status else None,
        "approved_by": user.approved_by,
        "created_at": user.created_at,
        "last_login": user.last_login,
    }
    row.update(extra)
    return row


async def get_all_users(db: AsyncSession, owner_id: int, page: int = 1, limit: int = 50) -> Optional[Dict[str, Any]]:
    await verify_owner_access(db, owner_id)

    try:
        total = int((await db.execute(select(func.count(User.id)))).scalar_one() or 0)
        pages = (total + limit - 1) // limit

        rows = (
            await db.execute(
                select(User, UserRole, *_user_totals())
                .join(UserRole, UserRole.id == User.role_id, isouter=True)
                .order_by(User.created_at.desc(), User.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
        ).all()
    except SQLAlchemyError:
        logger.exception("Listing users failed")
        return None

    users = [
        _user_row(u, r, total_novels=n, total_chapters=c, total_comments=m)
        for (u, r, n, c, m) in rows
    ]
    return {"users": users, "total": total, "pages": pages}


async def get_user_details(db: AsyncSession, owner_id: int, target_user_id: int) -> Optional[Dict[str, Any]]:
    await verify_owner_access(db, owner_id)

    approver = aliased(User)
    row = (
        await db.execute(
            select(User, UserRole, *_user_totals(), approver.username.label("approved_by_username"))
            .join(UserRole, UserRole.id == User.role_id, isouter=True)
            .join(approver, approver.id == User.approved_by, isouter=True)
            .where(User.id == target_user_id)
        )
    ).first()
    if row is None:
        return None

    u, r, n, c, m, approved_by_username = row
    return _user_row(
        u, r,
        total_novels=n,
        total_chapters=c,
        total_comments=m,
        approved_by_username=approved_by_username,
    )


async def get_user_stats(db: AsyncSession, owner_id: int) -> Dict[str, Any]:
    await verify_owner_access(db, owner_id)

    total, active, banned, pending = (
        await db.execute(
            select(
                func.count(User.id),
                func.count(User.id).filter(User.is_active.is_(True)),
                func.count(User.id).filter(User.is_banned.is_(True)),
                func.count(User.id).filter(User.approval_status == ApprovalStatus.PENDING),
            )
        )
    ).one()

    by_role_rows = (
        await db.execute(
            select(UserRole.name, func.count(User.id))
            .join(User, User.role_id == UserRole.id, isouter=True)
            .group_by(UserRole.id, UserRole.name)
        )
    ).all()

    return {
        "total_users": int(total or 0),
        "active_users": int(active or 0),
        "banned_users": int(banned or 0),
        "pending_users": int(pending or 0),
        "by_role": {name: int(count) for name, count in by_role_rows},
    }


async def search_users(
    db: AsyncSession,
    owner_id: int,
    query: str,
    role_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    is_banned: Optional[bool] = None,
    limit: int = 100,
) -> List[Dict[str, Any]]:
    await verify_owner_access(db, owner_id)

    like = f"%{(query or '').strip()}%"
    stmt = (
        select(User, UserRole)
        .join(UserRole, UserRole.id == User.role_id, isouter=True)
        .where(or_(User.username.ilike(like), User.email.ilike(like), User.display_name.ilike(like)))
    )
    if role_id is not None:
        stmt = stmt.where(User.role_id == role_id)
    if is_active is not None:
        stmt = stmt.where(User.is_active.is_(is_active))
    if is_banned is not None:
        stmt = stmt.where(User.is_banned.is_(is_banned))

    rows = (
        await db.execute(stmt.order_by(User.created_at.desc(), User.id.desc()).limit(limit))
    ).all()
    return [_user_row(u, r) for (u, r) in rows]


async def change_user_role(
    db: AsyncSession,
    owner_id: int,
    target_user_id: int,
    new_role_id: int,
    reason: Optional[str] = None,
) -> bool:
    await verify_owner_access(db, owner_id)

    user = await db.get(User, target_user_id)
    new_role = await db.get(UserRole, new_role_id)
    if not user or not new_role:
        return False

    if user.role_id == OWNER_ROLE_ID:
        if owner_id != target_user_id:
            raise AuthorizationError("The owner's role cannot be changed")
        if new_role_id != OWNER_ROLE_ID:
            raise AuthorizationError("The owner role can only be handed over by transferring it")
        return True

    if new_role_id == OWNER_ROLE_ID:
        return await transfer_ownership(db, owner_id, target_user_id, reason)

    old_role_id = user.role_id
    try:
        user.role_id = new_role_id
        log_admin_action(db, owner_id, "change_user_role", {
            "target_user_id": target_user_id,
            "old_role_id": old_role_id,
            "new_role_id": new_role_id,
            "reason": reason,
        })
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Changing role of user %s failed", target_user_id)
        return False

    await db.refresh(user)
    send_email_notification(
        to=user.email,
        subject="Your role on Nine Worlds has changed",
        template="role_changed",
        data={
            "display_name": user.display_name,
            "new_role": new_role.name,
            "notes": reason or DEFAULT_ROLE_CHANGE_NOTE,
        },
    )
    return True


async def transfer_ownership(
    db: AsyncSession,
    owner_id: int,
    target_user_id: int,
    reason: Optional[str] = None,
) -> bool:
    """
    Hands the owner role to another account. The target is promoted and the
    current owner drops to admin in one commit, under one audit row, so there
    is always exactly one owner.
    """
    await verify_owner_access(db, owner_id)

    if owner_id == target_user_id:
        return True

    actor = await db.get(User, owner_id)
    user = await db.get(User, target_user_id)
    if not user:
        return False
    if user.is_banned or not user.is_active:
        logger.info("Refused to transfer ownership to inactive user %s", target_user_id)
        return False

    old_role_id = user.role_id
    try:
        user.role_id = OWNER_ROLE_ID
        actor.role_id = ADMIN_ROLE_ID
        log_admin_action(db, owner_id, "transfer_ownership", {
            "target_user_id": target_user_id,
            "old_role_id": old_role_id,
            "previous_owner_new_role_id": ADMIN_ROLE_ID,
            "reason": reason,
        })
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Transferring ownership to user %s failed", target_user_id)
        return False

    await db.refresh(user)
    send_email_notification(
        to=user.email,
        subject="You are now the owner of Nine Worlds",
        template="role_changed",
        data={
            "display_name": user.display_name,
            "new_role": "owner",
            "notes": reason or DEFAULT_ROLE_CHANGE_NOTE,
        },
    )
    return True


async def ban_user(
    db: AsyncSession,
    owner_id: int,
    target_user_id: int,
    reason: str,
    duration: Optional[str] = None,
) -> bool:
    """``duration`` is "<n> day(s)" or "<n> month(s)"; None bans permanently."""
    await verify_owner_access(db, owner_id)

    user = await db.get(User, target_user_id)
    if not user:
        return False

    if user.role_id == OWNER_ROLE_ID:
        raise AuthorizationError("The owner cannot be banned")

    try:
        ban_expiry = expiry_from_duration(duration)
    except ValueError:
        logger.info("Rejected ban of user %s with bad duration %r", target_user_id, duration)
        return False

    try:
        user.is_banned = True
        user.is_active = False
        user.ban_reason = reason
        user.ban_expiry = ban_expiry
        log_admin_action(db, owner_id, "ban_user", {
            "target_user_id": target_user_id,
            "reason": reason,
            "duration": duration,
            "ban_expiry": ban_expiry.isoformat() if ban_expiry else None,
        })
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Banning user %s failed", target_user_id)
        return False

    await db.refresh(user)
    send_email_notification(
        to=user.email,
        subject="Your Nine Worlds account has been suspended",
        template="account_banned",
        data={
            "display_name": user.display_name,
            "ban_reason": reason,
            "ban_duration": duration or PERMANENT,
            "contact_email": CONTACT_EMAIL,
        },
    )
    return True


async def unban_user(db: AsyncSession, owner_id: int, target_user_id: int) -> bool:
    await verify_owner_access(db, owner_id)

    user = await db.get(User, target_user_id)
    if not user:
        return False

    try:
        user.is_banned = False
        user.ban_reason = None
        user.ban_expiry = None
        # pending accounts stay inactive until approved
        user.is_active = user.approval_status == ApprovalStatus.APPROVED
        log_admin_action(db, owner_id, "unban_user", {"target_user_id": target_user_id})
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Unbanning user %s failed", target_user_id)
        return False

    await db.refresh(user)
    send_email_notification(
        to=user.email,
        subject="Your Nine Worlds account has been reinstated",
        template="account_unbanned",
        data={"display_name": user.display_name, "login_url": f"{APP_URL}/auth/login"},
    )
    return True


async def approve_user(db: AsyncSession, owner_id: int, target_user_id: int) -> bool:
    await verify_owner_access(db, owner_id)

    user = await db.get(User, target_user_id)
    if not user:
        return False
    if user.approval_status == ApprovalStatus.APPROVED:
        return True

    try:
        user.approval_status = ApprovalStatus.APPROVED
        user.approved_by = owner_id
        if not user.is_banned:
            user.is_active = True
        log_admin_action(db, owner_id, "approve_user", {"target_user_id": target_user_id})
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Approving user %s failed", target_user_id)
        return False

    await db.refresh(user)
    send_email_notification(
        to=user.email,
        subject="Your Nine Worlds account is approved",
        template="account_approved",
        data={"display_name": user.display_name, "login_url": f"{APP_URL}/auth/login"},
    )
    return True
