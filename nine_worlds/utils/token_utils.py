import logging
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, AUTH_COOKIE_NAME
from nine_worlds.database import get_async_session
from nine_worlds.models.user_model import User
from nine_worlds.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


def _get_secret_key() -> str:
    if not SECRET_KEY:
        raise RuntimeError("SECRET_KEY is not configured")
    if len(SECRET_KEY) < 32:
        raise RuntimeError("SECRET_KEY is too short; use at least 32 characters")
    return SECRET_KEY


def create_access_token(user: User) -> str:
    expire = utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "id": user.id,
        "sub": user.username,
        "email": user.email,
        # informational only; permission checks re-read the role
        "role": user.role_name,
        "exp": expire,
    }
    return jwt.encode(to_encode, _get_secret_key(), algorithm=ALGORITHM)


def _read_token(request: Request, bearer: Optional[str]) -> Optional[str]:
    # an explicit header wins over the browser cookie
    return bearer or request.cookies.get(AUTH_COOKIE_NAME)


async def _user_from_token(token: str, session: AsyncSession) -> Optional[User]:
    try:
        payload = jwt.decode(token, _get_secret_key(), algorithms=[ALGORITHM])
    except JWTError:
        return None
    user_id = payload.get("id")
    if user_id is None:
        return None
    return await session.get(User, user_id)


async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_async_session),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    raw = _read_token(request, token)
    if not raw:
        raise credentials_exception

    user = await _user_from_token(raw, session)
    if not user:
        raise credentials_exception

    if user.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is banned")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is not active")
    return user


async def get_current_user_optional(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_async_session),
) -> Optional[User]:
    """Same as get_current_user, but anonymous (or unusable) sessions yield None."""
    raw = _read_token(request, token)
    if not raw:
        return None
    user = await _user_from_token(raw, session)
    if not user or user.is_banned or not user.is_active:
        return None
    return user
