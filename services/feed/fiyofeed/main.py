"""
Feed Service: entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Create tables if not present (TiDB)
  3. Connect to Redis
  4. Build the content / interaction stores, the feed cache and the
     orchestrator, and attach them to app.state
  5. Expose Prometheus /metrics endpoint

Shutdown waits for in-flight background refills before closing Redis.
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from fiyofeed.config import settings
from fiyofeed.database import AsyncSessionLocal, engine, init_db
from fiyofeed.telemetry import setup_tracing, instrument_app
from fiyofeed.clients.redis_client import RedisCache, close_redis, init_redis
from fiyofeed.engine.cache import FeedCache
from fiyofeed.engine.orchestrator import FeedOptions, FeedOrchestrator
from fiyofeed.stores.content_store import SqlContentStore
from fiyofeed.stores.interaction_store import SqlInteractionStore
from fiyofeed.routers import contents, feed

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


def build_orchestrator(content_store, interaction_store, cache) -> FeedOrchestrator:
    feed_cache = FeedCache(
        cache,
        ttl_seconds=settings.feed_cache_ttl_seconds,
        min_items=settings.feed_min_cached_items,
    )
    return FeedOrchestrator(
        content_store,
        interaction_store,
        feed_cache,
        options=FeedOptions.from_settings(settings),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Feed Service (env=%s)", settings.environment)

    await init_db()
    redis = await init_redis()

    content_store = SqlContentStore(AsyncSessionLocal)
    interaction_store = SqlInteractionStore(AsyncSessionLocal)
    app.state.content_store = content_store
    app.state.orchestrator = build_orchestrator(
        content_store, interaction_store, RedisCache(redis)
    )

    logger.info("All services connected. Feed service ready.")
    yield

    logger.info("Shutting down...")
    await app.state.orchestrator.shutdown()
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Feed Service",
    description=(
        "Personalized post / clip feeds: multi-strategy candidate retrieval, "
        "relevance scoring and a time-boxed feed cache."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(feed.router, prefix="/feed", tags=["Feed"])
app.include_router(contents.router, prefix="/contents", tags=["Contents"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
# Mounted at /metrics, scraped by Prometheus
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
