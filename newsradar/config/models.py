"""Configuration models."""

from typing import List, Optional

from pydantic import BaseModel, Field


class PostgresConfig(BaseModel):
    """Postgres configuration."""

    host: str = Field("localhost", description="Database host")
    port: int = Field(5432, description="Database port")
    database: str = Field("newsradar", description="Database name")
    user: str = Field("newsradar", description="Database user")
    password: Optional[str] = Field(None, description="Database password")
    password_env: Optional[str] = Field("NEWSRADAR_DB_PASSWORD", description="Environment variable for password")
    min_pool_size: int = Field(1, ge=1)
    max_pool_size: int = Field(10, ge=1)


class RedisConfig(BaseModel):
    """Cache backend configuration."""

    enabled: bool = Field(False, description="Use Redis; otherwise an in-process cache")
    url: str = Field("redis://localhost:6379/0", description="Redis URL")
    ttl_html: int = Field(300, description="Seconds to keep fetched HTML", ge=0)
    ttl_selector: int = Field(3600, description="Seconds to keep selector validation", ge=0)
    ttl_metadata: int = Field(86400, description="Seconds to keep metadata and judge verdicts", ge=0)


class LLMConfig(BaseModel):
    """LLM provider configuration (any OpenAI-compatible endpoint)."""

    provider: str = Field("openai", description="LLM provider (openai)")
    model: str = Field("llama-3.3-70b", description="Model name")
    api_key_env: Optional[str] = Field("CEREBRAS_API_KEY", description="Environment variable for API key")
    api_key: Optional[str] = Field(None, description="API key (prefer api_key_env)")
    base_url: Optional[str] = Field("https://api.cerebras.ai/v1", description="Base URL for the API")
    timeout: float = Field(30.0, gt=0)


class CrawlerConfig(BaseModel):
    """Fetch and extraction settings."""

    http_timeout: float = Field(15.0, gt=0)
    feed_timeout: float = Field(30.0, gt=0)
    navigation_timeout: float = Field(30.0, gt=0)
    settle_delay: float = Field(2.0, ge=0, description="Seconds to wait after navigation")
    headless: bool = Field(True)
    max_detail_pages: int = Field(30, ge=1, description="Detail pages fetched per selector job")
    blocked_domains: List[str] = Field(
        default_factory=lambda: [
            "google-analytics.com",
            "googletagmanager.com",
            "doubleclick.net",
            "googlesyndication.com",
            "facebook.net",
            "scorecardresearch.com",
            "hotjar.com",
            "criteo.com",
            "adnxs.com",
            "taboola.com",
            "outbrain.com",
        ]
    )


class DedupConfig(BaseModel):
    """Duplicate detection thresholds."""

    similarity_threshold: float = Field(0.8, ge=0.0, le=1.0)
    prefilter_threshold: float = Field(0.15, ge=0.0, le=1.0)
    early_stop_similarity: float = Field(0.9, ge=0.0, le=1.0)
    max_days_back: int = Field(7, ge=1)
    max_candidates: int = Field(500, ge=1)
    call_delay: float = Field(0.5, ge=0, description="Seconds between judge calls")
    max_retries: int = Field(3, ge=1)
    retry_backoff: float = Field(2.0, ge=0, description="Linear backoff step on rate limits")
    max_consecutive_errors: int = Field(5, ge=1)


class WatchConfig(BaseModel):
    """Watch keyword analysis settings."""

    confidence_threshold: float = Field(0.7, ge=0.0, le=1.0)
    sweep_batch_size: int = Field(50, ge=1)
    sweep_window_minutes: int = Field(60, ge=1)


class SchedulerConfig(BaseModel):
    """Queue and periodic task settings."""

    concurrency: int = Field(2, ge=1)
    job_attempts: int = Field(3, ge=1)
    job_backoff: float = Field(5.0, ge=0, description="First retry delay, doubled per attempt")
    crawl_interval_minutes: int = Field(10, ge=1)
    watch_interval_minutes: int = Field(5, ge=1)
    housekeeping_interval_hours: int = Field(24, ge=1)
    night_mode: bool = Field(True, description="Only crawl at the top of the hour at night")
    timezone: str = Field("Europe/Istanbul")
    article_retention_days: int = Field(30, ge=1)
    job_retention_days: int = Field(7, ge=1)


class ConfigModel(BaseModel):
    """Main configuration model."""

    log_level: str = Field("INFO", description="Root log level")
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    crawler: CrawlerConfig = Field(default_factory=CrawlerConfig)
    dedup: DedupConfig = Field(default_factory=DedupConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
