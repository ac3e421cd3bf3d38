from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from nine_worlds.models.novel_model import NovelStatus, NovelType


class CategoryOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    model_config = {
        "from_attributes": True
    }


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    description: Optional[str] = None


class NovelCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    summary: str = Field(min_length=1)
    translator_id: Optional[int] = None
    category_ids: List[int] = []


class NovelUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    summary: Optional[str] = None
    status: Optional[NovelStatus] = None
    category_ids: Optional[List[int]] = None


class NovelOut(BaseModel):
    id: int
    title: str
    summary: Optional[str] = None
    cover_image: Optional[str] = None
    status: NovelStatus
    type: NovelType
    author_id: int
    translator_id: Optional[int] = None
    views: int
    is_featured: bool
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True
    }


class NovelDetailOut(NovelOut):
    categories: List[CategoryOut] = []


class FeaturedUpdate(BaseModel):
    featured: bool


class ChapterCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)


class ChapterUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1)


class ChapterSummaryOut(BaseModel):
    id: int
    novel_id: int
    title: str
    chapter_number: int
    views: int
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True
    }


class ChapterOut(ChapterSummaryOut):
    content: str
    author_id: int
    translator_id: Optional[int] = None


class StatisticsOut(BaseModel):
    novel_id: int
    total_views: int
    total_comments: int
    total_reactions: int
    total_chapters: int
    updated_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }


class ContributorOut(BaseModel):
    id: int
    username: str
    display_name: Optional[str] = None
    novel_count: int
    total_views: int


class ActiveUserOut(BaseModel):
    id: int
    username: str
    display_name: Optional[str] = None
    comments: int
    reactions: int
