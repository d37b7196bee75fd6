import os

# Keep the OTLP exporter out of test runs; must happen before fiyofeed.config
# is imported.
os.environ["OTEL_EXPORTER_OTLP_ENDPOINT"] = ""

import pytest

from fakes import FakeCache, FakeClock, FakeContentStore, FakeInteractionStore
from fiyofeed.engine.cache import FeedCache
from fiyofeed.engine.orchestrator import FeedOrchestrator
from fiyofeed.engine.scoring import RelevanceScorer


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def content_store(clock):
    return FakeContentStore(clock=clock)


@pytest.fixture
def interaction_store():
    return FakeInteractionStore()


@pytest.fixture
def cache(clock):
    return FakeCache(clock=clock)


@pytest.fixture
def feed_cache(cache, clock):
    return FeedCache(cache, ttl_seconds=7200, min_items=5, clock=clock)


@pytest.fixture
def orchestrator(content_store, interaction_store, feed_cache, clock):
    return FeedOrchestrator(
        content_store,
        interaction_store,
        feed_cache,
        scorer=RelevanceScorer(clock=clock),
    )
