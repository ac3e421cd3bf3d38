from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from nine_worlds.utils.time_utils import is_valid_duration


class AdminUserOut(BaseModel):
    id: int
    email: str
    username: str
    display_name: Optional[str] = None
    role_id: int
    role_name: Optional[str] = None
    role_description: Optional[str] = None
    is_active: bool
    is_banned: bool
    ban_reason: Optional[str] = None
    ban_expiry: Optional[datetime] = None
    approval_status: Optional[str] = None
    approved_by: Optional[int] = None
    approved_by_username: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    total_novels: Optional[int] = None
    total_chapters: Optional[int] = None
    total_comments: Optional[int] = None


class AdminUserPage(BaseModel):
    users: List[AdminUserOut]
    total: int
    pages: int


class UserStatsOut(BaseModel):
    total_users: int
    active_users: int
    banned_users: int
    pending_users: int
    by_role: Dict[str, int]


class RoleChange(BaseModel):
    role_id: int = Field(ge=1)
    reason: Optional[str] = None


class BanRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=1000)
    # "<n> day(s)" / "<n> month(s)"; omitted = permanent
    duration: Optional[str] = None

    @field_validator("duration")
    @classmethod
    def duration_format(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v.strip() and not is_valid_duration(v):
            raise ValueError("Duration must look like '7 days' or '1 month'")
        return v.strip() if v and v.strip() else None


class AdminLogOut(BaseModel):
    id: int
    admin_id: Optional[int] = None
    action: str
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = {
        "from_attributes": True
    }


class AdminLogPage(BaseModel):
    logs: List[AdminLogOut]
    total: int
    page: int
    limit: int
