"""
Candidate retrieval.

A feed request is served from a fixed set of strategies built from the
user's context. Each strategy is an independent query against the content
store; all of them run concurrently and each one's rows are tagged with the
strategy's weight and name.

Strategy precedence (only added when their input is non-empty):

  name             selector            weight  limit
  ───────────────  ──────────────────  ──────  ─────
  mates            ByAuthors(mates)        50     15
  follows          ByAuthors(follows)      30     15
  interests        ByTags(interests)       20     15
  trending         ByTags(trending)        15     15
  liked_creators   ByAuthors(≤50 ids)      25     10
  popular          BySort(POPULAR)         15     15   (always)
  recent           BySort(RECENT)          10     15   (always)

A strategy that raises is logged and contributes nothing.
"""
import asyncio
import logging
from typing import Iterable

from opentelemetry import trace

from fiyofeed.engine.ports import ContentStore
from fiyofeed.engine.types import (
    ByAuthors,
    BySort,
    ByTags,
    Candidate,
    ContentRow,
    ContentType,
    SortBy,
    Strategy,
    Tag,
    UserContext,
)
from fiyofeed.telemetry import FEED_CANDIDATES_TOTAL, STRATEGY_ERRORS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

LIKED_CREATORS_CAP = 50

# Two-phase lookups over-fetch ids so the second phase can still fill `limit`
TWO_PHASE_OVERFETCH = 2


def build_strategies(
    context: UserContext,
    trending_tags: Iterable[Tag] = (),
    timeframe_days: int = 7,
    liked_creators_cap: int = LIKED_CREATORS_CAP,
) -> list[Strategy]:
    """Build the ordered strategy list for one feed computation."""
    trending_tags = tuple(trending_tags)
    strategies: list[Strategy] = []

    def add(name: str, weight: float, limit: int, selector) -> None:
        strategies.append(
            Strategy(
                name=name,
                weight=weight,
                limit=limit,
                selector=selector,
                timeframe_days=timeframe_days,
            )
        )

    if context.mates:
        add("mates", 50, 15, ByAuthors(context.mates))
    if context.follows:
        add("follows", 30, 15, ByAuthors(context.follows))
    if context.interests:
        add("interests", 20, 15, ByTags(tuple(context.interests)))
    if trending_tags:
        add("trending", 15, 15, ByTags(trending_tags))
    if context.liked_creators:
        # Keeps the lexicographically first ids
        capped = frozenset(sorted(context.liked_creators)[:liked_creators_cap])
        add("liked_creators", 25, 10, ByAuthors(capped))

    add("popular", 15, 15, BySort(SortBy.POPULAR))
    add("recent", 10, 15, BySort(SortBy.RECENT))
    return strategies


class CandidateRetriever:
    def __init__(self, content_store: ContentStore) -> None:
        self._content = content_store

    async def retrieve(
        self,
        strategies: list[Strategy],
        content_type: ContentType,
    ) -> list[Candidate]:
        """Run every strategy concurrently; concatenate in strategy order."""
        with tracer.start_as_current_span("retrieve_candidates") as span:
            span.set_attribute("strategies", [s.name for s in strategies])
            results = await asyncio.gather(
                *(self._run(strategy, content_type) for strategy in strategies)
            )

        candidates: list[Candidate] = []
        for strategy, rows in zip(strategies, results):
            FEED_CANDIDATES_TOTAL.labels(strategy=strategy.name).inc(len(rows))
            candidates.extend(Candidate.from_row(row, strategy) for row in rows)
        return candidates

    async def _run(self, strategy: Strategy, content_type: ContentType) -> list[ContentRow]:
        try:
            return await self.fetch(strategy, content_type)
        except Exception:
            STRATEGY_ERRORS_TOTAL.labels(strategy=strategy.name).inc()
            logger.exception(
                "Strategy '%s' failed for %s; treating as empty",
                strategy.name,
                content_type.table,
            )
            return []

    async def fetch(self, strategy: Strategy, content_type: ContentType) -> list[ContentRow]:
        """Resolve one strategy against the content store."""
        selector = strategy.selector
        since = strategy.window

        if isinstance(selector, ByAuthors):
            if not selector.user_ids:
                return []
            rows = await self._content.query_by_authors(
                selector.user_ids, content_type, since, strategy.limit
            )
            return rows[: strategy.limit]

        if isinstance(selector, ByTags):
            if not selector.tags:
                return []
            ids = await self._content.query_by_tag_intersection(
                selector.tags, content_type, since, strategy.limit * TWO_PHASE_OVERFETCH
            )
            return await self._refetch(ids, content_type, strategy.limit)

        if isinstance(selector, BySort) and selector.sort_by is SortBy.POPULAR:
            ids = await self._content.query_ordered_by_engagement(
                content_type, since, strategy.limit * TWO_PHASE_OVERFETCH
            )
            return await self._refetch(ids, content_type, strategy.limit)

        rows = await self._content.query_recent(content_type, since, strategy.limit)
        return rows[: strategy.limit]

    async def _refetch(self, ids: list, content_type: ContentType, limit: int) -> list[ContentRow]:
        if not ids:
            return []
        rows = await self._content.fetch_by_ids(ids, content_type, limit)
        return rows[:limit]
