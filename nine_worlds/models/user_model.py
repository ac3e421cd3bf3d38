import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Enum as SqlEnum
from sqlalchemy.orm import relationship

from nine_worlds.database import Base
from nine_worlds.utils.time_utils import utcnow

# Reserved role ids, seeded at startup in this order.
READER_ROLE_ID = 1
AUTHOR_ROLE_ID = 2
TRANSLATOR_ROLE_ID = 3
MODERATOR_ROLE_ID = 4
ADMIN_ROLE_ID = 5
OWNER_ROLE_ID = 6

DEFAULT_ROLES = [
    (READER_ROLE_ID, "reader", "Reads, comments and reacts"),
    (AUTHOR_ROLE_ID, "author", "Publishes original novels"),
    (TRANSLATOR_ROLE_ID, "translator", "Publishes translated novels"),
    (MODERATOR_ROLE_ID, "moderator", "Moderates content"),
    (ADMIN_ROLE_ID, "admin", "Site administration"),
    (OWNER_ROLE_ID, "owner", "Site owner"),
]


class ApprovalStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"


class UserRole(Base):
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(32), unique=True, nullable=False)
    description = Column(String(255))


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(320), unique=True, index=True, nullable=False)
    username = Column(String(64), unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    display_name = Column(String(120))
    bio = Column(Text)
    role_id = Column(Integer, ForeignKey("user_roles.id"), nullable=False, default=READER_ROLE_ID)

    is_active = Column(Boolean, nullable=False, default=True)
    is_banned = Column(Boolean, nullable=False, default=False)
    ban_reason = Column(Text)
    ban_expiry = Column(DateTime(timezone=True))

    approval_status = Column(
        SqlEnum(ApprovalStatus, name="approval_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ApprovalStatus.APPROVED,
    )
    approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    last_login = Column(DateTime(timezone=True), nullable=True)

    role = relationship("UserRole", lazy="joined")

    @property
    def role_name(self) -> str:
        return self.role.name if self.role else ""
