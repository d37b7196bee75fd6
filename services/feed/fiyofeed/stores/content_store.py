"""
ContentStore backed by the posts / clips tables.

Rows come back as ContentRow value objects; the ORM never leaks into the
engine. Id-based fetches return rows in the order the ids were given, so the
second phase of a two-phase lookup keeps the ranking of the first.
"""
import json
import logging
from datetime import timedelta
from typing import Iterable, Optional

from sqlalchemy import delete, func, select, update

from fiyofeed.engine.types import ContentId, ContentMetrics, ContentRow, ContentType, Tag, UserId
from fiyofeed.models import CONTENT_MODELS, ContentMixin
from fiyofeed.stores.base import SqlStore, cutoff

logger = logging.getLogger(__name__)

# Only these columns may be changed through update_content
UPDATABLE_FIELDS = ("collabs", "caption", "description", "hashtags")


def _model(content_type: ContentType):
    return CONTENT_MODELS[content_type.value]


def to_row(obj: ContentMixin) -> ContentRow:
    return ContentRow(
        id=obj.id,
        author_id=obj.user_id,
        created_at=obj.created_at,
        media_key=obj.media_key,
        collabs=tuple(obj.collabs or ()),
        caption=obj.caption,
        description=obj.description,
        hashtags=tuple(obj.hashtags or ()),
        track=obj.track,
        likes_count=obj.likes_count or 0,
        comments_count=obj.comments_count or 0,
        shares_count=obj.shares_count or 0,
    )


class SqlContentStore(SqlStore):
    name = "content-store"

    # ── Retrieval queries (ContentStore protocol) ─────────────────────────

    async def query_by_authors(
        self,
        author_ids: Iterable[UserId],
        content_type: ContentType,
        since: Optional[timedelta],
        limit: Optional[int],
    ) -> list[ContentRow]:
        author_ids = list(author_ids)
        if not author_ids:
            return []
        model = _model(content_type)
        stmt = select(model).where(model.user_id.in_(author_ids))
        stmt = self._within(stmt, model, since).order_by(model.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.session("query_by_authors") as db:
            result = await db.execute(stmt)
            return [to_row(obj) for obj in result.scalars().all()]

    async def query_by_tag_intersection(
        self,
        tags: Iterable[Tag],
        content_type: ContentType,
        since: Optional[timedelta],
        limit: int,
    ) -> list[ContentId]:
        tags = list(tags)
        if not tags:
            return []
        model = _model(content_type)
        stmt = select(model.id).where(
            func.json_overlaps(model.hashtags, json.dumps(tags))
        )
        stmt = self._within(stmt, model, since).limit(limit)
        async with self.session("query_by_tag_intersection") as db:
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def query_ordered_by_engagement(
        self,
        content_type: ContentType,
        since: Optional[timedelta],
        limit: int,
    ) -> list[ContentId]:
        model = _model(content_type)
        stmt = self._within(select(model.id), model, since)
        stmt = stmt.order_by(model.likes_count.desc(), model.comments_count.desc()).limit(limit)
        async with self.session("query_ordered_by_engagement") as db:
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def query_recent(
        self,
        content_type: ContentType,
        since: Optional[timedelta],
        limit: int,
    ) -> list[ContentRow]:
        model = _model(content_type)
        stmt = self._within(select(model), model, since)
        stmt = stmt.order_by(
            model.created_at.desc(),
            model.likes_count.desc(),
            model.comments_count.desc(),
        ).limit(limit)
        async with self.session("query_recent") as db:
            result = await db.execute(stmt)
            return [to_row(obj) for obj in result.scalars().all()]

    async def fetch_by_ids(
        self,
        ids: Iterable[ContentId],
        content_type: ContentType,
        limit: Optional[int] = None,
    ) -> list[ContentRow]:
        ids = list(ids)
        if not ids:
            return []
        model = _model(content_type)
        async with self.session("fetch_by_ids") as db:
            result = await db.execute(select(model).where(model.id.in_(ids)))
            found = {obj.id: to_row(obj) for obj in result.scalars().all()}
        rows = [found[i] for i in dict.fromkeys(ids) if i in found]
        return rows if limit is None else rows[:limit]

    async def fetch_metrics(
        self,
        ids: Iterable[ContentId],
        content_type: ContentType,
    ) -> dict[ContentId, ContentMetrics]:
        ids = list(ids)
        if not ids:
            return {}
        model = _model(content_type)
        stmt = select(
            model.id,
            model.likes_count,
            model.comments_count,
            model.shares_count,
            model.hashtags,
        ).where(model.id.in_(ids))
        async with self.session("fetch_metrics") as db:
            result = await db.execute(stmt)
            return {
                row.id: ContentMetrics(
                    likes_count=row.likes_count or 0,
                    comments_count=row.comments_count or 0,
                    shares_count=row.shares_count or 0,
                    hashtags=tuple(row.hashtags or ()),
                )
                for row in result.all()
            }

    async def fetch_authors_of_content(
        self,
        ids: Iterable[ContentId],
        content_type: ContentType,
    ) -> set[UserId]:
        ids = list(ids)
        if not ids:
            return set()
        model = _model(content_type)
        stmt = select(model.user_id).where(model.id.in_(ids)).distinct()
        async with self.session("fetch_authors_of_content") as db:
            result = await db.execute(stmt)
            return set(result.scalars().all())

    # ── Content CRUD (used by the contents router) ────────────────────────

    async def get_content(self, content_id: ContentId, content_type: ContentType) -> Optional[ContentRow]:
        rows = await self.fetch_by_ids([content_id], content_type)
        return rows[0] if rows else None

    async def list_by_user(self, user_id: UserId, content_type: ContentType) -> list[ContentRow]:
        return await self.query_by_authors([user_id], content_type, None, None)

    async def create_content(
        self,
        user_id: UserId,
        content_type: ContentType,
        **fields,
    ) -> ContentRow:
        model = _model(content_type)
        async with self.session("create_content") as db:
            obj = model(user_id=user_id, **fields)
            db.add(obj)
            await db.flush()
            await db.refresh(obj)  # load server-generated created_at
            await db.commit()
            logger.info("Created %s %s by user %s", content_type.value, obj.id, user_id)
            return to_row(obj)

    async def update_content(
        self,
        content_id: ContentId,
        user_id: UserId,
        content_type: ContentType,
        changes: dict,
    ) -> bool:
        values = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        if not values:
            return False
        model = _model(content_type)
        stmt = (
            update(model)
            .where(model.id == content_id, model.user_id == user_id)
            .values(**values)
        )
        async with self.session("update_content") as db:
            result = await db.execute(stmt)
            await db.commit()
            return result.rowcount > 0

    async def delete_content(
        self, content_id: ContentId, user_id: UserId, content_type: ContentType
    ) -> bool:
        model = _model(content_type)
        stmt = delete(model).where(model.id == content_id, model.user_id == user_id)
        async with self.session("delete_content") as db:
            result = await db.execute(stmt)
            await db.commit()
            return result.rowcount > 0

    @staticmethod
    def _within(stmt, model, since: Optional[timedelta]):
        lower = cutoff(since)
        return stmt if lower is None else stmt.where(model.created_at > lower)
