import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.config import ACCESS_TOKEN_EXPIRE_MINUTES, AUTH_COOKIE_NAME, COOKIE_SECURE
from nine_worlds.database import get_async_session
from nine_worlds.email_service import send_email_notification
from nine_worlds.limiter import limiter
from nine_worlds.models.user_model import ApprovalStatus, User
from nine_worlds.schemas.user_schemas import LoginResponse, SignupResponse, UserCreate, UserLogin, UserOut
from nine_worlds.services import identity
from nine_worlds.utils.token_utils import create_access_token, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def register(request: Request, payload: UserCreate, db: AsyncSession = Depends(get_async_session)):
    user = await identity.create_user(
        db,
        email=payload.email,
        username=payload.username,
        password=payload.password,
        display_name=payload.display_name,
    )
    if user is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email or username already exists")

    send_email_notification(
        to=user.email,
        subject="Welcome to Nine Worlds",
        template="welcome",
        data={"display_name": user.display_name},
    )

    if user.approval_status == ApprovalStatus.PENDING:
        message = "Account created. It will be usable once approved."
    else:
        message = "Account created."
    return SignupResponse(message=message, user=UserOut.from_user(user))


@router.post("/login", response_model=LoginResponse)
@limiter.limit("5/minute")
async def login(
    request: Request,
    response: Response,
    payload: UserLogin,
    db: AsyncSession = Depends(get_async_session),
):
    user = await identity.authenticate_user(db, payload.identifier, payload.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    if user.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is banned")
    if user.approval_status == ApprovalStatus.PENDING:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is awaiting approval")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is not active")

    access_token = create_access_token(user)
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    logger.info("User %s logged in", user.id)
    return LoginResponse(access_token=access_token, user=UserOut.from_user(user))


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(AUTH_COOKIE_NAME)
    return {"message": "Logged out"}


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    return UserOut.from_user(user)
