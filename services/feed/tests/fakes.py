"""In-memory fakes for the engine's collaborators, with call recording."""
import json
from datetime import datetime, timedelta, timezone
from typing import Optional

from fiyofeed.engine.types import (
    ContentMetrics,
    ContentRow,
    ContentType,
    Interaction,
)
from fiyofeed.errors import StoreUnavailable

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def row(
    content_id: str,
    author: str,
    hours_ago: float = 1,
    hashtags=(),
    likes: int = 0,
    comments: int = 0,
    shares: int = 0,
) -> ContentRow:
    return ContentRow(
        id=content_id,
        author_id=author,
        created_at=NOW - timedelta(hours=hours_ago),
        hashtags=tuple(hashtags),
        likes_count=likes,
        comments_count=comments,
        shares_count=shares,
    )


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise StoreUnavailable(type(self).__name__, name)

    def called(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


class FakeContentStore(_Recorder):
    def __init__(self, rows: Optional[dict] = None, clock: Optional[FakeClock] = None) -> None:
        super().__init__()
        self.rows: dict[ContentType, list[ContentRow]] = {
            ContentType.POST: [],
            ContentType.CLIP: [],
        }
        for ctype, items in (rows or {}).items():
            self.rows[ContentType.parse(ctype)] = list(items)
        self.clock = clock or FakeClock()

    def add(self, content_type, *rows: ContentRow) -> None:
        self.rows[ContentType.parse(content_type)].extend(rows)

    def _window(self, content_type: ContentType, since: Optional[timedelta]) -> list[ContentRow]:
        rows = self.rows[content_type]
        if since is None:
            return list(rows)
        lower = self.clock() - since
        return [r for r in rows if r.created_at > lower]

    @staticmethod
    def _newest_first(rows: list[ContentRow]) -> list[ContentRow]:
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    async def query_by_authors(self, author_ids, content_type, since, limit):
        author_ids = set(author_ids)
        self._record("query_by_authors", frozenset(author_ids), content_type, since, limit)
        rows = [r for r in self._window(content_type, since) if r.author_id in author_ids]
        rows = self._newest_first(rows)
        return rows if limit is None else rows[:limit]

    async def query_by_tag_intersection(self, tags, content_type, since, limit):
        tags = set(tags)
        self._record("query_by_tag_intersection", frozenset(tags), content_type, since, limit)
        return [
            r.id for r in self._window(content_type, since) if tags & set(r.hashtags)
        ][:limit]

    async def query_ordered_by_engagement(self, content_type, since, limit):
        self._record("query_ordered_by_engagement", content_type, since, limit)
        rows = sorted(
            self._window(content_type, since),
            key=lambda r: (r.likes_count, r.comments_count),
            reverse=True,
        )
        return [r.id for r in rows][:limit]

    async def query_recent(self, content_type, since, limit):
        self._record("query_recent", content_type, since, limit)
        return self._newest_first(self._window(content_type, since))[:limit]

    async def fetch_by_ids(self, ids, content_type, limit=None):
        ids = list(ids)
        self._record("fetch_by_ids", tuple(ids), content_type, limit)
        by_id = {r.id: r for r in self.rows[content_type]}
        found = [by_id[i] for i in ids if i in by_id]
        return found if limit is None else found[:limit]

    async def fetch_metrics(self, ids, content_type):
        ids = list(ids)
        self._record("fetch_metrics", tuple(ids), content_type)
        by_id = {r.id: r for r in self.rows[content_type]}
        return {
            i: ContentMetrics(
                likes_count=by_id[i].likes_count,
                comments_count=by_id[i].comments_count,
                shares_count=by_id[i].shares_count,
                hashtags=by_id[i].hashtags,
            )
            for i in ids
            if i in by_id
        }

    async def fetch_authors_of_content(self, ids, content_type):
        ids = set(ids)
        self._record("fetch_authors_of_content", frozenset(ids), content_type)
        return {r.author_id for r in self.rows[content_type] if r.id in ids}

    # CRUD used by the contents router

    async def get_content(self, content_id, content_type):
        self._record("get_content", content_id, content_type)
        return next((r for r in self.rows[content_type] if r.id == content_id), None)

    async def list_by_user(self, user_id, content_type):
        self._record("list_by_user", user_id, content_type)
        return [r for r in self.rows[content_type] if r.author_id == user_id]

    async def create_content(self, user_id, content_type, **fields):
        self._record("create_content", user_id, content_type)
        new = ContentRow(
            id=f"{content_type.value}-{len(self.rows[content_type]) + 1}",
            author_id=user_id,
            created_at=self.clock(),
            media_key=fields.get("media_key"),
            collabs=tuple(fields.get("collabs") or ()),
            caption=fields.get("caption"),
            description=fields.get("description"),
            hashtags=tuple(fields.get("hashtags") or ()),
            track=fields.get("track"),
        )
        self.rows[content_type].append(new)
        return new

    async def update_content(self, content_id, user_id, content_type, changes):
        self._record("update_content", content_id, user_id, content_type, dict(changes))
        return any(
            r.id == content_id and r.author_id == user_id for r in self.rows[content_type]
        )

    async def delete_content(self, content_id, user_id, content_type):
        self._record("delete_content", content_id, user_id, content_type)
        before = len(self.rows[content_type])
        self.rows[content_type] = [
            r
            for r in self.rows[content_type]
            if not (r.id == content_id and r.author_id == user_id)
        ]
        return len(self.rows[content_type]) < before


class FakeInteractionStore(_Recorder):
    def __init__(
        self,
        mates: Optional[dict] = None,
        follows: Optional[dict] = None,
        interests: Optional[dict] = None,
        interactions: Optional[dict] = None,
    ) -> None:
        super().__init__()
        self.mates = mates or {}
        self.follows = follows or {}
        self.interests = interests or {}
        self.interactions = interactions or {}

    async def fetch_mates(self, user_id):
        self._record("fetch_mates", user_id)
        return set(self.mates.get(user_id, ()))

    async def fetch_follows(self, user_id):
        self._record("fetch_follows", user_id)
        return set(self.follows.get(user_id, ()))

    async def fetch_interests(self, user_id):
        self._record("fetch_interests", user_id)
        return list(self.interests.get(user_id, ()))

    async def fetch_recent_interactions(self, user_id, limit):
        self._record("fetch_recent_interactions", user_id, limit)
        events = sorted(
            self.interactions.get(user_id, ()), key=lambda e: e.created_at, reverse=True
        )
        return events[:limit]


def interaction(content_id: str, action: str, content_type="post", hours_ago: float = 1) -> Interaction:
    return Interaction(
        content_id=content_id,
        content_type=ContentType.parse(content_type),
        action_type=action,
        created_at=NOW - timedelta(hours=hours_ago),
    )


class FakeCache(_Recorder):
    """Key/value store with per-key expiry driven by a FakeClock."""

    def __init__(self, clock: Optional[FakeClock] = None) -> None:
        super().__init__()
        self.clock = clock or FakeClock()
        self.data: dict[str, tuple[str, Optional[datetime]]] = {}

    def _expiry(self, ttl: Optional[int]) -> Optional[datetime]:
        return None if ttl is None else self.clock() + timedelta(seconds=ttl)

    def _live(self, key: str) -> bool:
        if key not in self.data:
            return False
        _, expires_at = self.data[key]
        if expires_at is not None and self.clock() >= expires_at:
            del self.data[key]
            return False
        return True

    async def get(self, key):
        self._record("get", key)
        return self.data[key][0] if self._live(key) else None

    async def set(self, key, value, ttl=None):
        self._record("set", key, value, ttl)
        self.data[key] = (value, self._expiry(ttl))

    async def delete(self, key):
        self._record("delete", key)
        self.data.pop(key, None)

    async def expire(self, key, ttl):
        self._record("expire", key, ttl)
        if self._live(key):
            self.data[key] = (self.data[key][0], self._expiry(ttl))

    async def set_many(self, values, ttl):
        self._record("set_many", dict(values), ttl)
        for key, value in values.items():
            self.data[key] = (value, self._expiry(ttl))

    def ids(self, key: str) -> Optional[list]:
        return json.loads(self.data[key][0]) if self._live(key) else None
