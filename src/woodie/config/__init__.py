"""Configuration package for Woodie Campus."""

from woodie.config.app_config import (
    AppConfig,
    ReviewConfig,
    SchedulerConfig,
    ServerConfig,
    clear_config_cache,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "ReviewConfig",
    "SchedulerConfig",
    "ServerConfig",
    "clear_config_cache",
    "load_app_config",
]
