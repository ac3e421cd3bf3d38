from datetime import datetime

from pydantic import BaseModel, Field


class LibraryStatus(BaseModel):
    novel_id: int
    in_library: bool


class ReadingProgressIn(BaseModel):
    novel_id: int
    chapter_id: int
    position: int = Field(default=0, ge=0)


class ReadingProgressOut(BaseModel):
    novel_id: int
    chapter_id: int
    position: int
    updated_at: datetime

    model_config = {
        "from_attributes": True
    }


class ReadingHistoryItem(ReadingProgressOut):
    novel_title: str
    chapter_title: str
    chapter_number: int
