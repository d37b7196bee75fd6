"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics for the feed pipeline (latency, cache hit ratio,
    candidates per strategy, contained failures)

Both are initialised once at startup and injected into FastAPI via middleware.
"""
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import Counter, Histogram

from fiyofeed.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
FEED_LATENCY = Histogram(
    "feed_latency_seconds",
    "End-to-end latency of get_user_feed",
    ["content_type"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

FEED_CACHE_LOOKUPS_TOTAL = Counter(
    "feed_cache_lookups_total",
    "Feed cache reads by outcome",
    ["result"],  # 'fresh' | 'stale' | 'missing'
)

FEED_CANDIDATES_TOTAL = Counter(
    "feed_candidates_total",
    "Candidates returned per retrieval strategy",
    ["strategy"],
)

STRATEGY_ERRORS_TOTAL = Counter(
    "feed_strategy_errors_total",
    "Retrieval strategies that failed and contributed zero candidates",
    ["strategy"],
)

BACKGROUND_REFILL_ERRORS_TOTAL = Counter(
    "feed_background_refill_errors_total",
    "Background feed refills that raised (logged, never surfaced)",
)

DANGLING_IDS_PRUNED_TOTAL = Counter(
    "feed_dangling_ids_pruned_total",
    "Cached content ids dropped because the content no longer exists",
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing() -> None:
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "deployment.environment": settings.environment,
        }
    )

    provider = TracerProvider(resource=resource)

    if not settings.otel_exporter_otlp_endpoint:
        logger.info("No OTLP endpoint configured; spans are not exported")
    else:
        try:
            otlp_exporter = OTLPSpanExporter(
                endpoint=settings.otel_exporter_otlp_endpoint,
                insecure=True,
            )
            provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
            logger.info(
                "OTel tracing configured → %s", settings.otel_exporter_otlp_endpoint
            )
        except Exception as exc:
            logger.warning("Could not connect to OTLP exporter: %s; traces disabled", exc)

    trace.set_tracer_provider(provider)

    # Auto-instrument the store drivers so their spans appear in traces
    RedisInstrumentor().instrument()
    SQLAlchemyInstrumentor().instrument()


def instrument_app(app) -> None:  # noqa: ANN001
    """Call after app is created to add FastAPI request spans."""
    FastAPIInstrumentor.instrument_app(app)
