"""
Capabilities the engine needs from the outside world.

The engine never reaches for a global client: a ContentStore, an
InteractionStore and a Cache are handed to FeedOrchestrator at construction.
Production adapters live in fiyofeed.stores and fiyofeed.clients.redis_client;
tests use in-memory fakes.
"""
from datetime import timedelta
from typing import Iterable, Optional, Protocol

from fiyofeed.engine.types import (
    ContentId,
    ContentMetrics,
    ContentRow,
    ContentType,
    Interaction,
    Tag,
    UserId,
)


class ContentStore(Protocol):
    async def query_by_authors(
        self,
        author_ids: Iterable[UserId],
        content_type: ContentType,
        since: Optional[timedelta],
        limit: Optional[int],
    ) -> list[ContentRow]: ...

    async def query_by_tag_intersection(
        self,
        tags: Iterable[Tag],
        content_type: ContentType,
        since: Optional[timedelta],
        limit: int,
    ) -> list[ContentId]: ...

    async def query_ordered_by_engagement(
        self,
        content_type: ContentType,
        since: Optional[timedelta],
        limit: int,
    ) -> list[ContentId]: ...

    async def query_recent(
        self,
        content_type: ContentType,
        since: Optional[timedelta],
        limit: int,
    ) -> list[ContentRow]: ...

    async def fetch_by_ids(
        self,
        ids: Iterable[ContentId],
        content_type: ContentType,
        limit: Optional[int] = None,
    ) -> list[ContentRow]: ...

    async def fetch_metrics(
        self,
        ids: Iterable[ContentId],
        content_type: ContentType,
    ) -> dict[ContentId, ContentMetrics]: ...

    async def fetch_authors_of_content(
        self,
        ids: Iterable[ContentId],
        content_type: ContentType,
    ) -> set[UserId]: ...


class InteractionStore(Protocol):
    # fetch_mates + fetch_follows together form the user's social edges;
    # they are separate calls so the resolver can run them concurrently.
    async def fetch_mates(self, user_id: UserId) -> set[UserId]: ...

    async def fetch_follows(self, user_id: UserId) -> set[UserId]: ...

    async def fetch_interests(self, user_id: UserId) -> list[Tag]: ...

    async def fetch_recent_interactions(
        self, user_id: UserId, limit: int
    ) -> list[Interaction]: ...


class Cache(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def expire(self, key: str, ttl: int) -> None: ...

    async def set_many(self, values: dict[str, str], ttl: int) -> None:
        """Set every key and apply the TTL as one atomic operation."""
        ...
