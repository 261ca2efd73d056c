"""Configuration management for newsradar."""

from .loader import DEFAULT_CONFIG_PATH, Config, load_config, save_config
from .models import (
    ConfigModel,
    CrawlerConfig,
    DedupConfig,
    LLMConfig,
    PostgresConfig,
    RedisConfig,
    SchedulerConfig,
    WatchConfig,
)

__all__ = [
    "Config",
    "ConfigModel",
    "CrawlerConfig",
    "DEFAULT_CONFIG_PATH",
    "DedupConfig",
    "LLMConfig",
    "PostgresConfig",
    "RedisConfig",
    "SchedulerConfig",
    "WatchConfig",
    "load_config",
    "save_config",
]
