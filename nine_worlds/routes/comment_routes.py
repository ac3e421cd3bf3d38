from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from nine_worlds.database import get_async_session
from nine_worlds.limiter import limiter
from nine_worlds.models.reaction_model import ReactionType
from nine_worlds.models.target import Target, TargetKind
from nine_worlds.models.user_model import User
from nine_worlds.moderation.profanity import ProfanityError, ensure_clean
from nine_worlds.schemas.engagement_schemas import (
    CommentCreate,
    CommentOut,
    CommentUpdate,
    ReactionCountOut,
    ReactionStateOut,
    ReactionToggle,
)
from nine_worlds.services import comments, reactions
from nine_worlds.utils.token_utils import get_current_user, get_current_user_optional

router = APIRouter(tags=["engagement"])


def _clean_comment(text: str) -> None:
    try:
        ensure_clean(text, "Comment")
    except ProfanityError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/novels/{novel_id}/comments", response_model=List[CommentOut])
async def novel_comments(
    novel_id: int,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_session),
):
    return await comments.get_comments_for(db, Target.novel(novel_id), limit, offset)


@router.get("/chapters/{chapter_id}/comments", response_model=List[CommentOut])
async def chapter_comments(
    chapter_id: int,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_session),
):
    return await comments.get_comments_for(db, Target.chapter(chapter_id), limit, offset)


@router.get("/comments/{comment_id}/replies", response_model=List[CommentOut])
async def comment_replies(comment_id: int, db: AsyncSession = Depends(get_async_session)):
    return await comments.get_comment_replies(db, comment_id)


@router.post("/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_comment(
    request: Request,
    payload: CommentCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    if payload.target_type is TargetKind.COMMENT:
        raise HTTPException(status_code=400, detail="Reply with parent_comment_id instead")
    _clean_comment(payload.content)

    comment = await comments.create_comment(
        db,
        user_id=user.id,
        target=Target(payload.target_type, payload.target_id),
        content=payload.content.strip(),
        parent_comment_id=payload.parent_comment_id,
    )
    if not comment:
        raise HTTPException(status_code=404, detail="Target or parent comment not found")
    return comment


@router.put("/comments/{comment_id}", response_model=CommentOut)
async def update_comment(
    comment_id: int,
    payload: CommentUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    _clean_comment(payload.content)
    comment = await comments.update_comment(db, user.id, comment_id, payload.content.strip())
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    return comment


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not await comments.delete_comment(db, user.id, comment_id):
        raise HTTPException(status_code=404, detail="Comment not found")


@router.post("/reactions", response_model=ReactionStateOut)
@limiter.limit("30/minute")
async def toggle_reaction(
    request: Request,
    payload: ReactionToggle,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    state = await reactions.toggle_reaction(
        db, user.id, Target(payload.target_type, payload.target_id), payload.reaction_type
    )
    if state is None:
        raise HTTPException(status_code=404, detail="Target not found")
    return ReactionStateOut(reacted=state.reacted, count=state.count)


@router.get("/reactions/count", response_model=ReactionCountOut)
async def reaction_count(
    target_type: TargetKind,
    target_id: int,
    reaction_type: Optional[ReactionType] = None,
    user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_async_session),
):
    target = Target(target_type, target_id)
    count = await reactions.get_reaction_count(db, target, reaction_type)
    reacted = None
    if user is not None and reaction_type is not None:
        reacted = await reactions.has_user_reacted(db, user.id, target, reaction_type)
    return ReactionCountOut(
        target_type=target_type,
        target_id=target_id,
        reaction_type=reaction_type,
        count=count,
        reacted=reacted,
    )
