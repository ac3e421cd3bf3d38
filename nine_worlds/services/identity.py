import logging
from typing import Optional

from passlib.hash import bcrypt
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.config import BCRYPT_ROUNDS, REQUIRE_APPROVAL
from nine_worlds.models.user_model import User, ApprovalStatus, READER_ROLE_ID
from nine_worlds.services.admin_log import log_admin_action
from nine_worlds.utils.time_utils import as_aware, utcnow

logger = logging.getLogger(__name__)

_hasher = bcrypt.using(rounds=BCRYPT_ROUNDS)
_dummy_hash: Optional[str] = None


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _hasher.verify(password, password_hash)
    except ValueError:
        # malformed or empty stored hash
        return False


def _burn_password_check(password: str) -> None:
    """Same bcrypt work as a real check, so unknown identifiers take as long as wrong passwords."""
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = _hasher.hash("nine-worlds-dummy-password")
    _hasher.verify(password, _dummy_hash)


async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    return await db.get(User, user_id)


async def create_user(
    db: AsyncSession,
    email: str,
    username: str,
    password: str,
    display_name: Optional[str] = None,
) -> Optional[User]:
    """
    Registers a reader. Returns None when the email or username is taken
    or the insert fails.
    """
    username_norm = username.strip()
    email_norm = str(email).strip().lower()

    existing = (
        await db.execute(
            select(User.id).where(
                (User.username == username_norm) | (func.lower(User.email) == email_norm)
            )
        )
    ).first()
    if existing:
        return None

    pending = REQUIRE_APPROVAL
    new_user = User(
        email=email_norm,
        username=username_norm,
        password_hash=hash_password(password),
        display_name=(display_name or "").strip() or username_norm,
        role_id=READER_ROLE_ID,
        is_active=not pending,
        approval_status=ApprovalStatus.PENDING if pending else ApprovalStatus.APPROVED,
    )

    try:
        db.add(new_user)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("Registration raced on a duplicate email/username: %s", username_norm)
        return None
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Creating user %s failed", username_norm)
        return None

    await db.refresh(new_user)
    return new_user


async def _lift_expired_ban(db: AsyncSession, user: User) -> None:
    expiry = as_aware(user.ban_expiry)
    if not (user.is_banned and expiry is not None and expiry <= utcnow()):
        return

    user.is_banned = False
    user.ban_reason = None
    user.ban_expiry = None
    user.is_active = user.approval_status == ApprovalStatus.APPROVED
    log_admin_action(db, None, "auto_unban_user", {"target_user_id": user.id, "expired_at": expiry.isoformat()})
    logger.info("Ban for user %s expired at %s; lifted at login", user.id, expiry)


async def authenticate_user(db: AsyncSession, identifier: str, password: str) -> Optional[User]:
    """
    Email-or-username login. Returns the user (whatever its ban/active
    state, so the caller can explain a refusal) or None on bad credentials.
    """
    ident = (identifier or "").strip()
    if not ident or not password:
        return None

    user = (
        await db.execute(
            select(User).where(or_(func.lower(User.email) == ident.lower(), User.username == ident))
        )
    ).scalars().first()

    if user is None:
        _burn_password_check(password)
        return None

    if not verify_password(password, user.password_hash):
        return None

    try:
        await _lift_expired_ban(db, user)
        user.last_login = utcnow()
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Updating login state for user %s failed", user.id)
        return None

    await db.refresh(user)
    return user
