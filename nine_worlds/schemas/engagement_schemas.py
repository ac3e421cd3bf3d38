from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from nine_worlds.models.reaction_model import ReactionType
from nine_worlds.models.target import TargetKind


class CommentCreate(BaseModel):
    target_type: TargetKind
    target_id: int
    content: str = Field(min_length=1, max_length=5000)
    parent_comment_id: Optional[int] = None


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)


class CommentOut(BaseModel):
    id: int
    user_id: int
    target_type: TargetKind
    target_id: int
    parent_comment_id: Optional[int] = None
    content: str
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True
    }


class ReactionToggle(BaseModel):
    target_type: TargetKind
    target_id: int
    reaction_type: ReactionType = ReactionType.LIKE


class ReactionStateOut(BaseModel):
    reacted: bool
    count: int


class ReactionCountOut(BaseModel):
    target_type: TargetKind
    target_id: int
    reaction_type: Optional[ReactionType] = None
    count: int
    reacted: Optional[bool] = None
