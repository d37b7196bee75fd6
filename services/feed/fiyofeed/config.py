"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── TiDB (MySQL-protocol compatible) ───────────────────────────────────
    tidb_host: str = "tidb"
    tidb_port: int = 4000
    tidb_user: str = "root"
    tidb_password: str = ""
    tidb_database: str = "fiyofeed"

    @property
    def tidb_url(self) -> str:
        return (
            f"mysql+aiomysql://{self.tidb_user}:{self.tidb_password}"
            f"@{self.tidb_host}:{self.tidb_port}/{self.tidb_database}"
        )

    # ── Redis ──────────────────────────────────────────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379

    # ── Feed cache ─────────────────────────────────────────────────────────
    feed_cache_ttl_seconds: int = 7200   # 2h staleness window
    feed_min_cached_items: int = 5       # lists this short are never "usable"

    # ── Feed generation ────────────────────────────────────────────────────
    feed_size: int = 20                  # ids kept after ranking
    starter_feed_size: int = 20          # cold-start list length
    interaction_history_limit: int = 50  # recent interactions per context
    liked_creators_cap: int = 50
    trending_tags_limit: int = 10
    default_timeframe_days: int = 7

    # ── Observability ──────────────────────────────────────────────────────
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "feed-service"
    environment: str = "development"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
