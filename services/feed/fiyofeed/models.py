"""
SQLAlchemy ORM models for TiDB.

Tables:
  users             : user profiles + interest tags
  mates             : mutual connections (one row per pair, either order)
  followers         : one-directional follow edges (follower → followee)
  posts / clips     : content metadata, hashtags and engagement counters
  user_interactions : user × content engagement events (like, hide, ...)
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from fiyofeed.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(255))
    avatar: Mapped[Optional[str]] = mapped_column(String(500))
    # JSON list[str], ordered by the user's preference
    interest_tags: Mapped[Optional[list]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )


class Mate(Base):
    __tablename__ = "mates"

    mater_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), primary_key=True
    )
    matee_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_mates_matee", "matee_id"),)


class Follower(Base):
    __tablename__ = "followers"

    follower_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), primary_key=True
    )
    followee_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_followers_followee", "followee_id"),)


class ContentMixin:
    """Columns shared by posts and clips."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    # MinIO/S3 object key of the media payload
    media_key: Mapped[Optional[str]] = mapped_column(String(500))
    collabs: Mapped[Optional[list]] = mapped_column(JSON)
    caption: Mapped[Optional[str]] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    hashtags: Mapped[Optional[list]] = mapped_column(JSON)
    track: Mapped[Optional[str]] = mapped_column(String(255))
    likes_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comments_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    shares_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )


class Post(ContentMixin, Base):
    __tablename__ = "posts"

    __table_args__ = (
        Index("idx_posts_user", "user_id"),
        Index("idx_posts_created", "created_at"),
        Index("idx_posts_engagement", "likes_count", "comments_count"),
    )


class Clip(ContentMixin, Base):
    __tablename__ = "clips"

    __table_args__ = (
        Index("idx_clips_user", "user_id"),
        Index("idx_clips_created", "created_at"),
        Index("idx_clips_engagement", "likes_count", "comments_count"),
    )


class UserInteraction(Base):
    __tablename__ = "user_interactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    content_id: Mapped[str] = mapped_column(String(36), nullable=False)
    content_type: Mapped[str] = mapped_column(String(10), nullable=False)  # 'post' | 'clip'
    action_type: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_interactions_user_recent", "user_id", "created_at"),
    )


CONTENT_MODELS = {"post": Post, "clip": Clip}
