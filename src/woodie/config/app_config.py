"""Application configuration loader.

Loads centralized configuration from data/config/woodie_config.yaml,
falling back to built-in defaults. A handful of environment variables
override the file so deployments and tests can redirect the database or
disable the batch scheduler without editing YAML.

Usage:
    from woodie.config.app_config import load_app_config

    config = load_app_config()
    intervals = config.review.intervals
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/woodie_config.yaml")

DEFAULT_INTERVALS: dict[int, int] = {1: 1, 2: 3, 3: 7, 4: 14}


@dataclass
class ReviewConfig:
    """Spaced-repetition settings."""

    intervals: dict[int, int] = field(default_factory=lambda: dict(DEFAULT_INTERVALS))
    timezone: str = "Asia/Seoul"
    default_page_size: int = 20


@dataclass
class SchedulerConfig:
    """Batch job settings."""

    enabled: bool = True
    retry_delay_seconds: float = 300.0
    jobs: dict[str, str] = field(default_factory=dict)
    schedule_retention_days: int = 30
    history_retention_days: int = 90
    stats_retention_days: int = 30


@dataclass
class ServerConfig:
    """HTTP server settings."""

    host: str = "127.0.0.1"
    port: int = 3001
    cors_origins: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class AppConfig:
    """Application-wide configuration."""

    db_path: Path = Path("db/woodie.db")
    review: ReviewConfig = field(default_factory=ReviewConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "db_path": "db/woodie.db",
        "review": {
            "intervals": dict(DEFAULT_INTERVALS),
            "timezone": "Asia/Seoul",
            "default_page_size": 20,
        },
        "scheduler": {
            "enabled": True,
            "retry_delay_seconds": 300,
            "jobs": {
                "daily-stats-reset": "0 0 * * *",
                "daily-review-calculation": "0 6 * * *",
                "cleanup-expired-schedules": "0 * * * *",
                "prepare-review-reminders": "0 21 * * *",
            },
            "schedule_retention_days": 30,
            "history_retention_days": 90,
            "stats_retention_days": 30,
        },
        "server": {
            "host": "127.0.0.1",
            "port": 3001,
            "cors_origins": ["*"],
        },
    }


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into a copy of base."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def _parse_intervals(raw: dict[Any, Any]) -> dict[int, int]:
    """Parse the interval table, keys are mastery levels 1..4."""
    intervals = {int(level): int(days) for level, days in raw.items()}
    for level in range(1, 5):
        if level not in intervals:
            raise ValueError(f"review.intervals is missing level {level}")
        if intervals[level] < 1:
            raise ValueError(f"review.intervals[{level}] must be at least 1 day")
    return intervals


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    review_data = data.get("review", {})
    review = ReviewConfig(
        intervals=_parse_intervals(review_data.get("intervals", DEFAULT_INTERVALS)),
        timezone=review_data.get("timezone", "Asia/Seoul"),
        default_page_size=int(review_data.get("default_page_size", 20)),
    )

    sched_data = data.get("scheduler", {})
    scheduler = SchedulerConfig(
        enabled=_as_bool(sched_data.get("enabled", True)),
        retry_delay_seconds=float(sched_data.get("retry_delay_seconds", 300)),
        jobs=dict(sched_data.get("jobs", {})),
        schedule_retention_days=int(sched_data.get("schedule_retention_days", 30)),
        history_retention_days=int(sched_data.get("history_retention_days", 90)),
        stats_retention_days=int(sched_data.get("stats_retention_days", 30)),
    )

    server_data = data.get("server", {})
    server = ServerConfig(
        host=server_data.get("host", "127.0.0.1"),
        port=int(server_data.get("port", 3001)),
        cors_origins=list(server_data.get("cors_origins", ["*"])),
    )

    return AppConfig(
        db_path=Path(data.get("db_path", "db/woodie.db")),
        review=review,
        scheduler=scheduler,
        server=server,
    )


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply WOODIE_* environment overrides."""
    if db_path := os.environ.get("WOODIE_DB_PATH"):
        data["db_path"] = db_path
    if tz := os.environ.get("WOODIE_TIMEZONE"):
        data.setdefault("review", {})["timezone"] = tz
    if enabled := os.environ.get("WOODIE_SCHEDULER_ENABLED"):
        data.setdefault("scheduler", {})["enabled"] = enabled
    return data


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    config_file = Path(os.environ.get("WOODIE_CONFIG_FILE", CONFIG_FILE))
    data = _get_defaults()

    if config_file.exists():
        logger.debug("config.loading", source=str(config_file))
        loaded = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
        data = _merge(data, loaded)
    else:
        logger.info("config.using_defaults")

    _cached_config = _parse_config(_apply_env_overrides(data))
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
