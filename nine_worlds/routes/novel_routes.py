import logging
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds import s3
from nine_worlds.database import get_async_session
from nine_worlds.models.user_model import User
from nine_worlds.moderation.profanity import ProfanityError, ensure_clean
from nine_worlds.schemas.novel_schemas import (
    CategoryCreate,
    CategoryOut,
    ChapterCreate,
    ChapterOut,
    ChapterSummaryOut,
    ChapterUpdate,
    FeaturedUpdate,
    NovelCreate,
    NovelDetailOut,
    NovelOut,
    NovelUpdate,
    StatisticsOut,
)
from nine_worlds.services import novels, search, statistics
from nine_worlds.services.permissions import can_user_edit_novel, AuthorizationError
from nine_worlds.utils.token_utils import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["novels"])

ALLOWED_COVER_TYPES = {"image/jpeg", "image/png", "image/webp"}
MAX_COVER_BYTES = 5 * 1024 * 1024


def _clean(text, field):
    try:
        ensure_clean(text, field)
    except ProfanityError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


async def _detail(db: AsyncSession, novel) -> NovelDetailOut:
    out = NovelDetailOut.model_validate(novel)
    out.categories = [CategoryOut.model_validate(c) for c in await novels.get_novel_categories(db, novel.id)]
    return out


# static paths first, before /novels/{novel_id}

@router.get("/novels/latest", response_model=List[NovelOut])
async def latest_novels(limit: int = Query(10, ge=1, le=50), db: AsyncSession = Depends(get_async_session)):
    return await novels.get_latest_novels(db, limit)


@router.get("/novels/popular", response_model=List[NovelOut])
async def popular_novels(limit: int = Query(10, ge=1, le=50), db: AsyncSession = Depends(get_async_session)):
    return await novels.get_popular_novels(db, limit)


@router.get("/novels/featured", response_model=List[NovelOut])
async def featured_novels(limit: int = Query(10, ge=1, le=50), db: AsyncSession = Depends(get_async_session)):
    return await search.get_featured_novels(db, limit)


@router.post("/novels", response_model=NovelDetailOut, status_code=status.HTTP_201_CREATED)
async def create_novel(
    payload: NovelCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    _clean(payload.title, "Title")
    novel = await novels.create_novel(
        db,
        actor_id=user.id,
        title=payload.title.strip(),
        summary=payload.summary,
        translator_id=payload.translator_id,
        category_ids=payload.category_ids,
    )
    if not novel:
        raise HTTPException(status_code=400, detail="Novel could not be created")
    return await _detail(db, novel)


@router.get("/novels/{novel_id}", response_model=NovelDetailOut)
async def get_novel(novel_id: int, db: AsyncSession = Depends(get_async_session)):
    if not await novels.increment_novel_views(db, novel_id):
        raise HTTPException(status_code=404, detail="Novel not found")
    novel = await novels.get_novel_by_id(db, novel_id)
    if not novel:
        raise HTTPException(status_code=404, detail="Novel not found")
    return await _detail(db, novel)


@router.put("/novels/{novel_id}", response_model=NovelDetailOut)
async def update_novel(
    novel_id: int,
    payload: NovelUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    if payload.title is not None:
        _clean(payload.title, "Title")
    novel = await novels.update_novel(
        db,
        actor_id=user.id,
        novel_id=novel_id,
        title=payload.title,
        summary=payload.summary,
        status=payload.status,
        category_ids=payload.category_ids,
    )
    if not novel:
        raise HTTPException(status_code=404, detail="Novel not found")
    return await _detail(db, novel)


@router.delete("/novels/{novel_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_novel(
    novel_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not await novels.delete_novel(db, user.id, novel_id):
        raise HTTPException(status_code=404, detail="Novel not found")


@router.patch("/novels/{novel_id}/featured", response_model=NovelOut)
async def feature_novel(
    novel_id: int,
    payload: FeaturedUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    novel = await novels.set_featured(db, user.id, novel_id, payload.featured)
    if not novel:
        raise HTTPException(status_code=404, detail="Novel not found")
    return novel


@router.post("/novels/{novel_id}/cover", response_model=NovelOut)
async def upload_cover(
    novel_id: int,
    cover: UploadFile = File(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    novel = await novels.get_novel_by_id(db, novel_id)
    if not novel:
        raise HTTPException(status_code=404, detail="Novel not found")
    if not await can_user_edit_novel(db, user.id, novel_id):
        raise AuthorizationError("Not allowed to change this novel's cover")

    if cover.content_type not in ALLOWED_COVER_TYPES:
        raise HTTPException(status_code=400, detail="Cover must be a JPEG, PNG or WebP image")
    data = await cover.read()
    if len(data) > MAX_COVER_BYTES:
        raise HTTPException(status_code=400, detail="Cover is larger than 5 MB")

    old_cover = novel.cover_image
    url = s3.upload_cover(data, cover.filename, cover.content_type, novel_id)

    updated = await novels.update_novel(db, actor_id=user.id, novel_id=novel_id, cover_image=url)
    if not updated:
        raise HTTPException(status_code=400, detail="Cover could not be saved")

    if old_cover:
        try:
            s3.delete_cover(old_cover)
        except Exception:
            logger.warning("Old cover %s of novel %s not deleted", old_cover, novel_id, exc_info=True)
    return updated


@router.get("/novels/{novel_id}/statistics", response_model=StatisticsOut)
async def novel_statistics(novel_id: int, db: AsyncSession = Depends(get_async_session)):
    stats = await statistics.get_novel_statistics(db, novel_id)
    if not stats:
        raise HTTPException(status_code=404, detail="Statistics not found")
    return stats


@router.get("/novels/{novel_id}/related", response_model=List[NovelOut])
async def related_novels(
    novel_id: int,
    limit: int = Query(5, ge=1, le=20),
    db: AsyncSession = Depends(get_async_session),
):
    return await search.get_related_novels(db, novel_id, limit)


@router.get("/novels/{novel_id}/chapters", response_model=List[ChapterSummaryOut])
async def list_chapters(novel_id: int, db: AsyncSession = Depends(get_async_session)):
    if not await novels.get_novel_by_id(db, novel_id):
        raise HTTPException(status_code=404, detail="Novel not found")
    return await novels.get_chapters_by_novel_id(db, novel_id)


@router.post("/novels/{novel_id}/chapters", response_model=ChapterOut, status_code=status.HTTP_201_CREATED)
async def create_chapter(
    novel_id: int,
    payload: ChapterCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    _clean(payload.title, "Title")
    chapter = await novels.create_chapter(db, user.id, novel_id, payload.title.strip(), payload.content)
    if not chapter:
        raise HTTPException(status_code=404, detail="Novel not found")
    return chapter


@router.get("/chapters/{chapter_id}", response_model=ChapterOut)
async def get_chapter(chapter_id: int, db: AsyncSession = Depends(get_async_session)):
    if not await novels.increment_chapter_views(db, chapter_id):
        raise HTTPException(status_code=404, detail="Chapter not found")
    chapter = await novels.get_chapter_by_id(db, chapter_id)
    if not chapter:
        raise HTTPException(status_code=404, detail="Chapter not found")
    return chapter


@router.put("/chapters/{chapter_id}", response_model=ChapterOut)
async def update_chapter(
    chapter_id: int,
    payload: ChapterUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    if payload.title is not None:
        _clean(payload.title, "Title")
    chapter = await novels.update_chapter(db, user.id, chapter_id, payload.title, payload.content)
    if not chapter:
        raise HTTPException(status_code=404, detail="Chapter not found")
    return chapter


@router.delete("/chapters/{chapter_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chapter(
    chapter_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not await novels.delete_chapter(db, user.id, chapter_id):
        raise HTTPException(status_code=404, detail="Chapter not found")


@router.get("/categories", response_model=List[CategoryOut])
async def list_categories(db: AsyncSession = Depends(get_async_session)):
    return await novels.get_all_categories(db)


@router.post("/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    category = await novels.create_category(db, user.id, payload.name, payload.description)
    if not category:
        raise HTTPException(status_code=409, detail="Category already exists")
    return category


@router.get("/categories/{category_id}/novels", response_model=List[NovelOut])
async def novels_in_category(
    category_id: int,
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
):
    if not await search.get_category_by_id(db, category_id):
        raise HTTPException(status_code=404, detail="Category not found")
    return await novels.get_novels_by_category(db, category_id, limit)


@router.get("/users/{user_id}/novels", response_model=List[NovelOut])
async def novels_by_user(
    user_id: int,
    role: str = Query("author", pattern="^(author|translator)$"),
    db: AsyncSession = Depends(get_async_session),
):
    if role == "translator":
        return await novels.get_novels_by_translator(db, user_id)
    return await novels.get_novels_by_author(db, user_id)
