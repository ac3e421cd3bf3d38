from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.database import get_async_session
from nine_worlds.models.user_model import User
from nine_worlds.schemas.library_schemas import (
    LibraryStatus,
    ReadingHistoryItem,
    ReadingProgressIn,
    ReadingProgressOut,
)
from nine_worlds.schemas.novel_schemas import NovelOut
from nine_worlds.schemas.user_schemas import UserStatisticsOut
from nine_worlds.services import identity, library, statistics
from nine_worlds.utils.token_utils import get_current_user

router = APIRouter(tags=["library"])


@router.get("/library", response_model=List[NovelOut])
async def my_library(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_async_session)):
    return await library.get_user_library(db, user.id)


@router.get("/library/{novel_id}", response_model=LibraryStatus)
async def library_status(
    novel_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return LibraryStatus(novel_id=novel_id, in_library=await library.is_novel_in_library(db, user.id, novel_id))


@router.post("/library/{novel_id}", response_model=LibraryStatus)
async def add_to_library(
    novel_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not await library.add_to_library(db, user.id, novel_id):
        raise HTTPException(status_code=404, detail="Novel not found")
    return LibraryStatus(novel_id=novel_id, in_library=True)


@router.delete("/library/{novel_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_library(
    novel_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not await library.remove_from_library(db, user.id, novel_id):
        raise HTTPException(status_code=404, detail="Novel not in library")


@router.post("/reading-history", response_model=ReadingProgressOut)
async def save_progress(
    payload: ReadingProgressIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    entry = await library.save_reading_progress(db, user.id, payload.novel_id, payload.chapter_id, payload.position)
    if not entry:
        raise HTTPException(status_code=400, detail="Chapter does not belong to this novel")
    return entry


@router.get("/reading-history", response_model=List[ReadingHistoryItem])
async def reading_history(
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    rows = await library.get_user_reading_history(db, user.id, limit)
    return [
        ReadingHistoryItem(
            novel_id=entry.novel_id,
            chapter_id=entry.chapter_id,
            position=entry.position,
            updated_at=entry.updated_at,
            novel_title=novel_title,
            chapter_title=chapter_title,
            chapter_number=chapter_number,
        )
        for entry, novel_title, chapter_title, chapter_number in rows
    ]


@router.get("/reading-history/{novel_id}", response_model=ReadingProgressOut)
async def reading_progress(
    novel_id: int,
    chapter_id: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    entry = await library.get_reading_progress(db, user.id, novel_id, chapter_id)
    if not entry:
        raise HTTPException(status_code=404, detail="No reading progress")
    return entry


@router.get("/users/{user_id}/statistics", response_model=UserStatisticsOut)
async def user_statistics(user_id: int, db: AsyncSession = Depends(get_async_session)):
    if not await identity.get_user_by_id(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return await statistics.get_user_statistics(db, user_id)
