from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.database import get_async_session
from nine_worlds.schemas.novel_schemas import ActiveUserOut, ContributorOut, NovelOut
from nine_worlds.services import search

router = APIRouter(tags=["search"])


@router.get("/search", response_model=List[NovelOut])
async def search_novels(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
):
    return await search.search_novels(db, q, limit)


@router.get("/search/author", response_model=List[NovelOut])
async def search_by_author(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
):
    return await search.search_by_author(db, q, limit)


@router.get("/search/category/{category_id}", response_model=List[NovelOut])
async def search_by_category(
    category_id: int,
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
):
    if not await search.get_category_by_id(db, category_id):
        raise HTTPException(status_code=404, detail="Category not found")
    return await search.search_by_category(db, category_id, limit)


@router.get("/rankings/novels", response_model=List[NovelOut])
async def top_novels(
    by: str = Query("views", pattern="^(views|comments|reactions)$"),
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_async_session),
):
    return await search.get_top_novels(db, by, limit)


@router.get("/rankings/authors", response_model=List[ContributorOut])
async def top_authors(limit: int = Query(10, ge=1, le=50), db: AsyncSession = Depends(get_async_session)):
    return await search.get_top_authors(db, limit)


@router.get("/rankings/translators", response_model=List[ContributorOut])
async def top_translators(limit: int = Query(10, ge=1, le=50), db: AsyncSession = Depends(get_async_session)):
    return await search.get_top_translators(db, limit)


@router.get("/rankings/users", response_model=List[ActiveUserOut])
async def top_users(limit: int = Query(10, ge=1, le=50), db: AsyncSession = Depends(get_async_session)):
    return await search.get_top_users(db, limit)
