from datetime import timedelta

from sqlalchemy import select

from nine_worlds.models.admin_log_model import AdminLog
from nine_worlds.models.user_model import ApprovalStatus, READER_ROLE_ID
from nine_worlds.services import identity
from nine_worlds.utils.time_utils import utcnow

from conftest import PASSWORD


async def test_create_user_defaults_to_reader(db):
    user = await identity.create_user(db, "Ann@Example.com", " ann ", PASSWORD, display_name="Ann")
    assert user.email == "ann@example.com"
    assert user.username == "ann"
    assert user.role_id == READER_ROLE_ID
    assert user.role_name == "reader"
    assert user.approval_status == ApprovalStatus.APPROVED
    assert user.password_hash != PASSWORD


async def test_duplicate_email_or_username_returns_none(db):
    assert await identity.create_user(db, "a@example.com", "ann", PASSWORD)
    assert await identity.create_user(db, "A@example.com", "other", PASSWORD) is None
    assert await identity.create_user(db, "b@example.com", "ann", PASSWORD) is None


async def test_authenticate_by_username_or_email(db, reader):
    assert (await identity.authenticate_user(db, "reader", PASSWORD)).id == reader.id
    assert (await identity.authenticate_user(db, "READER@example.com", PASSWORD)).id == reader.id
    assert await identity.authenticate_user(db, "reader", "wrong-password") is None
    assert await identity.authenticate_user(db, "nobody", PASSWORD) is None

    await db.refresh(reader)
    assert reader.last_login is not None


async def test_expired_ban_is_lifted_at_login(db, reader):
    reader.is_banned = True
    reader.is_active = False
    reader.ban_reason = "spam"
    reader.ban_expiry = utcnow() - timedelta(minutes=1)
    await db.commit()

    user = await identity.authenticate_user(db, "reader", PASSWORD)
    assert not user.is_banned
    assert user.is_active
    assert user.ban_expiry is None

    (entry,) = (
        await db.execute(select(AdminLog).where(AdminLog.action == "auto_unban_user"))
    ).scalars().all()
    assert entry.admin_id is None
    assert entry.details["target_user_id"] == reader.id


async def test_expired_ban_leaves_pending_account_inactive(db, reader):
    reader.approval_status = ApprovalStatus.PENDING
    reader.is_banned = True
    reader.is_active = False
    reader.ban_expiry = utcnow() - timedelta(minutes=1)
    await db.commit()

    user = await identity.authenticate_user(db, "reader", PASSWORD)
    assert not user.is_banned
    assert not user.is_active


async def test_active_ban_survives_login(db, reader):
    reader.is_banned = True
    reader.is_active = False
    reader.ban_expiry = utcnow() + timedelta(days=3)
    await db.commit()

    user = await identity.authenticate_user(db, "reader", PASSWORD)
    assert user.is_banned
