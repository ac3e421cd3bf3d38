from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.database import get_async_session
from nine_worlds.deps.auth import require_action, require_owner
from nine_worlds.models.user_model import User
from nine_worlds.schemas.admin_schemas import (
    AdminLogPage,
    AdminUserOut,
    AdminUserPage,
    BanRequest,
    RoleChange,
    UserStatsOut,
)
from nine_worlds.schemas.novel_schemas import StatisticsOut
from nine_worlds.services import admin_log, statistics, user_management
from nine_worlds.services.permissions import Action

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=AdminUserPage)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_async_session),
):
    result = await user_management.get_all_users(db, owner.id, page, limit)
    if result is None:
        raise HTTPException(status_code=500, detail="Users could not be listed")
    return result


@router.get("/users/search", response_model=List[AdminUserOut])
async def search_users(
    q: str = Query("", max_length=100),
    role_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    is_banned: Optional[bool] = None,
    limit: int = Query(100, ge=1, le=500),
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_async_session),
):
    return await user_management.search_users(
        db, owner.id, q, role_id=role_id, is_active=is_active, is_banned=is_banned, limit=limit
    )


@router.get("/users/stats", response_model=UserStatsOut)
async def user_stats(owner: User = Depends(require_owner), db: AsyncSession = Depends(get_async_session)):
    return await user_management.get_user_stats(db, owner.id)


@router.get("/users/{user_id}", response_model=AdminUserOut)
async def user_details(
    user_id: int,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_async_session),
):
    details = await user_management.get_user_details(db, owner.id, user_id)
    if details is None:
        raise HTTPException(status_code=404, detail="User not found")
    return details


@router.patch("/users/{user_id}/role")
async def change_role(
    user_id: int,
    payload: RoleChange,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_async_session),
):
    if not await user_management.change_user_role(db, owner.id, user_id, payload.role_id, payload.reason):
        raise HTTPException(status_code=404, detail="User or role not found")
    return {"message": "Role updated"}


@router.post("/users/{user_id}/ban")
async def ban(
    user_id: int,
    payload: BanRequest,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_async_session),
):
    if not await user_management.ban_user(db, owner.id, user_id, payload.reason, payload.duration):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User banned"}


@router.post("/users/{user_id}/unban")
async def unban(
    user_id: int,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_async_session),
):
    if not await user_management.unban_user(db, owner.id, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User unbanned"}


@router.post("/users/{user_id}/approve")
async def approve(
    user_id: int,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_async_session),
):
    if not await user_management.approve_user(db, owner.id, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User approved"}


@router.get("/logs", response_model=AdminLogPage)
async def logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    action: Optional[str] = None,
    _: User = Depends(require_action(Action.VIEW_ADMIN_LOGS)),
    db: AsyncSession = Depends(get_async_session),
):
    return await admin_log.get_admin_logs(db, page, limit, action)


@router.post("/novels/{novel_id}/statistics/reconcile", response_model=StatisticsOut, status_code=status.HTTP_200_OK)
async def reconcile(
    novel_id: int,
    _: User = Depends(require_action(Action.RECONCILE_STATISTICS)),
    db: AsyncSession = Depends(get_async_session),
):
    stats = await statistics.reconcile_novel_statistics(db, novel_id)
    if stats is None:
        raise HTTPException(status_code=404, detail="Novel not found")
    return stats
