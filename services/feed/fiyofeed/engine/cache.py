"""
Precomputed feed cache.

Per (user, content type) two keys share one TTL:

  feed:{user_id}:{table}             JSON list of content ids, ranked
  feed:{user_id}:{table}:timestamp   epoch millis of the computation

A list is "usable" only while it has more than `min_items` ids and its
timestamp is younger than the TTL. Bootstrap lists are written without a
timestamp, so they are served once but never count as fresh.
"""
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from fiyofeed.engine.ports import Cache
from fiyofeed.engine.types import CachedFeed, ContentType, UserId

logger = logging.getLogger(__name__)

FEED_KEY = "feed:{user_id}:{table}"
TIMESTAMP_SUFFIX = ":timestamp"

DEFAULT_TTL_SECONDS = 7200
DEFAULT_MIN_ITEMS = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def feed_key(user_id: UserId, content_type: ContentType) -> str:
    return FEED_KEY.format(user_id=user_id, table=content_type.table)


def timestamp_key(user_id: UserId, content_type: ContentType) -> str:
    return feed_key(user_id, content_type) + TIMESTAMP_SUFFIX


def _to_millis(ts: datetime) -> str:
    return str(int(ts.timestamp() * 1000))


def _from_millis(raw: Optional[str]) -> Optional[datetime]:
    if raw is None:
        return None
    try:
        return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed feed timestamp %r", raw)
        return None


def _decode_ids(raw: Optional[str]) -> Optional[tuple]:
    if raw is None:
        return None
    try:
        ids = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring malformed cached feed payload")
        return None
    if not isinstance(ids, list):
        return None
    return tuple(str(i) for i in ids)


class FeedCache:
    def __init__(
        self,
        cache: Cache,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        min_items: int = DEFAULT_MIN_ITEMS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._cache = cache
        self.ttl_seconds = ttl_seconds
        self.min_items = min_items
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.ttl_seconds)

    async def read(self, user_id: UserId, content_type: ContentType) -> Optional[CachedFeed]:
        raw_ids = await self._cache.get(feed_key(user_id, content_type))
        ids = _decode_ids(raw_ids)
        if ids is None:
            return None
        raw_ts = await self._cache.get(timestamp_key(user_id, content_type))
        return CachedFeed(content_ids=ids, computed_at=_from_millis(raw_ts))

    def is_usable(self, entry: Optional[CachedFeed]) -> bool:
        if entry is None:
            return False
        return entry.is_usable(self._clock(), self.ttl, self.min_items)

    async def read_usable(
        self, user_id: UserId, content_type: ContentType
    ) -> Optional[CachedFeed]:
        entry = await self.read(user_id, content_type)
        return entry if self.is_usable(entry) else None

    async def write(
        self,
        user_id: UserId,
        content_type: ContentType,
        content_ids: Iterable[str],
    ) -> CachedFeed:
        """Store the list and its computation time under one TTL, atomically."""
        entry = CachedFeed(content_ids=tuple(content_ids), computed_at=self._clock())
        await self._cache.set_many(
            {
                feed_key(user_id, content_type): json.dumps(list(entry.content_ids)),
                timestamp_key(user_id, content_type): _to_millis(entry.computed_at),
            },
            self.ttl_seconds,
        )
        logger.info(
            "Cached %d %s for user %s", len(entry.content_ids), content_type.table, user_id
        )
        return entry

    async def write_bootstrap(
        self,
        user_id: UserId,
        content_type: ContentType,
        content_ids: Iterable[str],
    ) -> CachedFeed:
        """Store a starter list without a timestamp: served, never fresh."""
        entry = CachedFeed(content_ids=tuple(content_ids))
        # A timestamp left over from an earlier computation would make the
        # starter list read as fresh.
        await self._cache.delete(timestamp_key(user_id, content_type))
        await self._cache.set(
            feed_key(user_id, content_type),
            json.dumps(list(entry.content_ids)),
            self.ttl_seconds,
        )
        return entry

    async def prune(
        self,
        user_id: UserId,
        content_type: ContentType,
        missing_ids: Iterable[str],
    ) -> Optional[CachedFeed]:
        """Drop dangling ids from the cached list, leaving the rest intact."""
        missing = set(missing_ids)
        entry = await self.read(user_id, content_type)
        if entry is None or not missing:
            return entry

        remaining = tuple(i for i in entry.content_ids if i not in missing)
        if remaining == entry.content_ids:
            return entry

        # The timestamp key is untouched, so freshness is still measured from
        # the first computation.
        await self._cache.set(
            feed_key(user_id, content_type),
            json.dumps(list(remaining)),
            self.ttl_seconds,
        )
        logger.info(
            "Pruned %d dangling %s from feed of user %s",
            len(entry.content_ids) - len(remaining),
            content_type.table,
            user_id,
        )
        return CachedFeed(content_ids=remaining, computed_at=entry.computed_at)
