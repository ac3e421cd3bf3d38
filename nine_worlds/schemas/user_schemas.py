from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=8, max_length=128)
    email: EmailStr
    display_name: Optional[str] = Field(default=None, max_length=120)

    @field_validator("username")
    @classmethod
    def username_charset(cls, v: str) -> str:
        v = v.strip()
        if not v.replace("_", "").replace("-", "").replace(".", "").isalnum():
            raise ValueError("Username may only contain letters, digits, '.', '_' and '-'")
        return v


class UserLogin(BaseModel):
    # username or email
    identifier: str
    password: str


class UserOut(BaseModel):
    id: int
    username: str
    email: EmailStr
    display_name: Optional[str] = None
    role: str
    approval_status: str
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> "UserOut":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            display_name=user.display_name,
            role=user.role_name,
            approval_status=user.approval_status.value,
            created_at=user.created_at,
            last_login=user.last_login,
        )


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class SignupResponse(BaseModel):
    message: str
    user: UserOut


class UserStatisticsOut(BaseModel):
    novels: int
    translated_novels: int
    chapters: int
    translated_chapters: int
    comments: int
    reactions: int
    views: int
    comments_received: int
    reactions_received: int
