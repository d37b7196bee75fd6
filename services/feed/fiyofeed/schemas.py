"""
Pydantic request / response schemas for the API layer.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from fiyofeed.engine.types import ContentRow


# ──────────────────────────── Contents ────────────────────────────────────

class ContentCreate(BaseModel):
    user_id: str
    media_key: Optional[str] = None
    collabs: list[str] = Field(default_factory=list)
    caption: Optional[str] = None
    description: Optional[str] = None
    hashtags: list[str] = Field(default_factory=list)
    track: Optional[str] = None


class ContentUpdate(BaseModel):
    """Only these fields can be edited after creation."""
    user_id: str
    collabs: Optional[list[str]] = None
    caption: Optional[str] = None
    description: Optional[str] = None
    hashtags: Optional[list[str]] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={"user_id"})


class ContentResponse(BaseModel):
    id: str
    user_id: str
    media_key: Optional[str] = None
    collabs: list[str] = Field(default_factory=list)
    caption: Optional[str] = None
    description: Optional[str] = None
    hashtags: list[str] = Field(default_factory=list)
    track: Optional[str] = None
    likes_count: int = 0
    comments_count: int = 0
    shares_count: int = 0
    created_at: datetime

    @classmethod
    def from_row(cls, row: ContentRow) -> "ContentResponse":
        return cls(
            id=row.id,
            user_id=row.author_id,
            media_key=row.media_key,
            collabs=list(row.collabs),
            caption=row.caption,
            description=row.description,
            hashtags=list(row.hashtags),
            track=row.track,
            likes_count=row.likes_count,
            comments_count=row.comments_count,
            shares_count=row.shares_count,
            created_at=row.created_at,
        )


# ──────────────────────────── Feed ────────────────────────────────────────

class FeedResponse(BaseModel):
    user_id: str
    content_type: str
    content_ids: list[str]


class FeedContentsResponse(BaseModel):
    user_id: str
    content_type: str
    contents: list[ContentResponse]


class PrecomputeResponse(BaseModel):
    user_id: str
    content_type: str
    content_ids: list[str]
