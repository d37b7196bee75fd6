"""
Feed orchestration: "get or (re)compute" a user's feed.

  get_user_feed(user, type)
    │
    ├─ cache fresh (> min items, younger than TTL) ──────────► cached ids
    ├─ nothing cached (cold user) ─► starter feed (recent N) ─► starter ids
    └─ cached but stale / too short ─► generate_feed ─► write ► new ids

  Whatever was served from the cache or the starter path, if it holds
  min items or fewer a background refill is spawned and not awaited.

generate_feed runs the full pipeline:

  UserContextResolver ─► TrendingTagAnalyzer ─► build_strategies
    ─► CandidateRetriever (parallel) ─► deduplicate ─► fetch_metrics
    ─► RelevanceScorer.rank ─► top-N ids
"""
import logging
import time
from dataclasses import dataclass
from typing import Optional

from opentelemetry import trace

from fiyofeed.engine.background import BackgroundRefiller
from fiyofeed.engine.cache import FeedCache
from fiyofeed.engine.context import UserContextResolver
from fiyofeed.engine.dedup import deduplicate
from fiyofeed.engine.ports import ContentStore, InteractionStore
from fiyofeed.engine.retrieval import CandidateRetriever, build_strategies
from fiyofeed.engine.scoring import RelevanceScorer
from fiyofeed.engine.trending import TrendingTagAnalyzer
from fiyofeed.engine.types import ContentRow, ContentType, UserId
from fiyofeed.telemetry import (
    DANGLING_IDS_PRUNED_TOTAL,
    FEED_CACHE_LOOKUPS_TOTAL,
    FEED_LATENCY,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class FeedOptions:
    feed_size: int = 20
    starter_feed_size: int = 20
    interaction_history_limit: int = 50
    liked_creators_cap: int = 50
    trending_tags_limit: int = 10
    timeframe_days: int = 7

    @classmethod
    def from_settings(cls, settings) -> "FeedOptions":
        return cls(
            feed_size=settings.feed_size,
            starter_feed_size=settings.starter_feed_size,
            interaction_history_limit=settings.interaction_history_limit,
            liked_creators_cap=settings.liked_creators_cap,
            trending_tags_limit=settings.trending_tags_limit,
            timeframe_days=settings.default_timeframe_days,
        )


class FeedOrchestrator:
    def __init__(
        self,
        content_store: ContentStore,
        interaction_store: InteractionStore,
        feed_cache: FeedCache,
        options: Optional[FeedOptions] = None,
        scorer: Optional[RelevanceScorer] = None,
        refiller: Optional[BackgroundRefiller] = None,
    ) -> None:
        self.options = options or FeedOptions()
        self._content = content_store
        self.cache = feed_cache
        self.refiller = refiller or BackgroundRefiller()
        self._context = UserContextResolver(
            interaction_store,
            content_store,
            interaction_limit=self.options.interaction_history_limit,
        )
        self._trending = TrendingTagAnalyzer(
            content_store, limit=self.options.trending_tags_limit
        )
        self._retriever = CandidateRetriever(content_store)
        self._scorer = scorer or RelevanceScorer()

    # ── Public operations ─────────────────────────────────────────────────

    async def get_user_feed(self, user_id: UserId, content_type) -> list[str]:
        """Return the ranked content ids for a user, computing them if needed."""
        content_type = ContentType.parse(content_type)
        start = time.perf_counter()

        with tracer.start_as_current_span("get_user_feed") as span:
            span.set_attribute("user.id", user_id)
            span.set_attribute("feed.content_type", content_type.value)

            entry = await self.cache.read(user_id, content_type)

            if self.cache.is_usable(entry):
                FEED_CACHE_LOOKUPS_TOTAL.labels(result="fresh").inc()
                logger.info("Using cached %s feed for user %s", content_type.table, user_id)
                content_ids = list(entry.content_ids)
                self._maybe_refill(user_id, content_type, content_ids)
            elif entry is None:
                FEED_CACHE_LOOKUPS_TOTAL.labels(result="missing").inc()
                content_ids = await self.get_starter_feed(user_id, content_type)
                self._maybe_refill(user_id, content_type, content_ids)
            else:
                FEED_CACHE_LOOKUPS_TOTAL.labels(result="stale").inc()
                content_ids = await self._recompute(user_id, content_type)

            span.set_attribute("feed.size", len(content_ids))

        FEED_LATENCY.labels(content_type=content_type.value).observe(
            time.perf_counter() - start
        )
        return content_ids

    async def precompute_feed(
        self, user_id: UserId, content_type, force: bool = False
    ) -> Optional[list[str]]:
        """
        Recompute and cache the feed unless a usable one is already cached.

        Returns None when the cache was left as is.
        """
        content_type = ContentType.parse(content_type)
        if not force:
            entry = await self.cache.read_usable(user_id, content_type)
            if entry is not None:
                logger.info("Using cached %s feed for user %s", content_type.table, user_id)
                return None
        return await self._recompute(user_id, content_type)

    async def generate_feed(self, user_id: UserId, content_type) -> list[str]:
        """Run the full ranking pipeline without touching the cache."""
        content_type = ContentType.parse(content_type)
        opts = self.options

        with tracer.start_as_current_span("generate_feed") as span:
            context = await self._context.resolve(user_id)
            trending = await self._trending.trending_tags(
                context.network_ids, opts.timeframe_days
            )

            strategies = build_strategies(
                context,
                trending,
                timeframe_days=opts.timeframe_days,
                liked_creators_cap=opts.liked_creators_cap,
            )
            candidates = await self._retriever.retrieve(strategies, content_type)
            unique = deduplicate(candidates)
            span.set_attribute("candidates.total", len(candidates))
            span.set_attribute("candidates.unique", len(unique))

            if not unique:
                logger.info("No candidates for user %s (%s)", user_id, content_type.table)
                return []

            metrics = await self._content.fetch_metrics(
                [c.id for c in unique], content_type
            )
            ranked = self._scorer.rank(unique, context, metrics, limit=opts.feed_size)
            span.set_attribute("feed.size", len(ranked))
            return [item.id for item in ranked]

    async def get_starter_feed(self, user_id: UserId, content_type) -> list[str]:
        """Cold-start list: most recent items of the type, unscored."""
        content_type = ContentType.parse(content_type)
        rows = await self._content.query_recent(
            content_type, None, self.options.starter_feed_size
        )
        content_ids = [row.id for row in rows[: self.options.starter_feed_size]]
        await self.cache.write_bootstrap(user_id, content_type, content_ids)
        logger.info(
            "Generated and cached starter %s feed (%d items) for user %s",
            content_type.table,
            len(content_ids),
            user_id,
        )
        return content_ids

    async def get_feed_contents(self, user_id: UserId, content_type) -> list[ContentRow]:
        """
        Hydrate the user's feed into content rows, in feed order.

        Ids whose content no longer exists are dropped from the cached list;
        the rest of the list (and its freshness) is left alone.
        """
        content_type = ContentType.parse(content_type)
        content_ids = await self.get_user_feed(user_id, content_type)
        if not content_ids:
            return []

        rows = await self._content.fetch_by_ids(content_ids, content_type)
        by_id = {row.id: row for row in rows}
        missing = [cid for cid in content_ids if cid not in by_id]
        if missing:
            DANGLING_IDS_PRUNED_TOTAL.inc(len(missing))
            await self.cache.prune(user_id, content_type, missing)

        return [by_id[cid] for cid in content_ids if cid in by_id]

    async def shutdown(self) -> None:
        await self.refiller.drain()

    # ── Internals ─────────────────────────────────────────────────────────

    async def _recompute(self, user_id: UserId, content_type: ContentType) -> list[str]:
        logger.info("Generating fresh %s feed for user %s", content_type.table, user_id)
        content_ids = await self.generate_feed(user_id, content_type)
        await self.cache.write(user_id, content_type, content_ids)
        return content_ids

    def _maybe_refill(
        self, user_id: UserId, content_type: ContentType, served: list[str]
    ) -> None:
        if len(served) > self.cache.min_items:
            return
        spawned = self.refiller.spawn(
            (user_id, content_type.value),
            lambda: self.precompute_feed(user_id, content_type, force=True),
        )
        if spawned:
            logger.info(
                "Served only %d %s to user %s; refilling in background",
                len(served),
                content_type.table,
                user_id,
            )
