"""
Trending hashtags inside a user's network.

Every id is fetched by a per-content-type query, so its type travels with it
and the hashtag lookup is routed to the right table without guessing from the
shape of the id.
"""
import asyncio
import logging
from collections import Counter
from datetime import timedelta
from typing import Iterable

from fiyofeed.engine.ports import ContentStore
from fiyofeed.engine.types import ContentType, Tag, UserId

logger = logging.getLogger(__name__)

TRENDING_TAGS_LIMIT = 10


class TrendingTagAnalyzer:
    def __init__(self, content_store: ContentStore, limit: int = TRENDING_TAGS_LIMIT) -> None:
        self._content = content_store
        self._limit = limit

    async def trending_tags(
        self,
        network_ids: Iterable[UserId],
        timeframe_days: int = 7,
    ) -> list[Tag]:
        network_ids = list(network_ids)
        if not network_ids:
            return []

        since = timedelta(days=timeframe_days)
        rows_by_type = await asyncio.gather(
            *(
                self._content.query_by_authors(network_ids, content_type, since, None)
                for content_type in ContentType
            )
        )

        lookups = [
            (content_type, [row.id for row in rows])
            for content_type, rows in zip(ContentType, rows_by_type)
            if rows
        ]
        if not lookups:
            return []

        metrics_by_type = await asyncio.gather(
            *(
                self._content.fetch_metrics(ids, content_type)
                for content_type, ids in lookups
            )
        )

        # Counter keeps insertion order, and most_common() sorts stably, so
        # equal counts stay in first-seen order.
        counts: Counter = Counter()
        for (_, ids), metrics in zip(lookups, metrics_by_type):
            for content_id in ids:
                item = metrics.get(content_id)
                if item is None:
                    continue
                for tag in item.hashtags:
                    counts[tag] += 1

        trending = [tag for tag, _ in counts.most_common(self._limit)]
        logger.debug("Trending tags across %d network users: %s", len(network_ids), trending)
        return trending
