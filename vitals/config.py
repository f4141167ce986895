"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Timing constants of the derivation pipeline live here, not in the services
"""

import os
from functools import lru_cache
from typing import Any, Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class CacheConfig(BaseModel):
    """Effective value cache settings."""

    ttl_ms: int = Field(default=2000, gt=0, description="Lifetime of a cached effective value")


class NotifierConfig(BaseModel):
    """Outbound notification deduplication settings."""

    dedup_window_ms: int = Field(
        default=50, gt=0, description="Window in which identical notifications are suppressed"
    )
    max_fingerprints: int = Field(
        default=256, gt=0, description="Upper bound on remembered fingerprints"
    )


class ChannelConfig(BaseModel):
    """Notification channel (monitoring server) configuration."""

    protocol: Literal["ws", "wss"] = Field(default="ws", description="Transport scheme")
    host: str = Field(default="localhost", description="Monitoring server host")
    port: int = Field(default=8080, gt=0, lt=65536, description="Monitoring server port")
    test_mode: bool = Field(default=True, description="Record messages instead of sending")
    max_queue: int = Field(default=100, gt=0, description="Maximum number of queued messages")
    message_version: str = Field(default="1.0", description="Envelope version tag")

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Component configs
    cache: CacheConfig = Field(default_factory=CacheConfig)
    notifier: NotifierConfig = Field(default_factory=NotifierConfig)
    channel: ChannelConfig = Field(default_factory=ChannelConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    cache_config = CacheConfig(
        ttl_ms=int(os.getenv("EFFECTIVE_VALUES_TTL_MS", "2000")),
    )

    notifier_config = NotifierConfig(
        dedup_window_ms=int(os.getenv("NOTIFY_DEDUP_WINDOW_MS", "50")),
        max_fingerprints=int(os.getenv("NOTIFY_MAX_FINGERPRINTS", "256")),
    )

    # Channel config, the monitoring server listens on localhost:8080 by default
    channel_config = ChannelConfig(
        protocol="wss" if _parse_bool(os.getenv("CHANNEL_SECURE"), False) else "ws",
        host=os.getenv("CHANNEL_HOST", "localhost"),
        port=int(os.getenv("CHANNEL_PORT", "8080")),
        test_mode=_parse_bool(os.getenv("CHANNEL_TEST_MODE"), debug),
        max_queue=int(os.getenv("CHANNEL_MAX_QUEUE", "100")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        cache=cache_config,
        notifier=notifier_config,
        channel=channel_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def get_timing_config(config: AppConfig | None = None) -> dict[str, Any]:
    """Timing knobs of the pipeline in the units the services consume."""
    config = config or get_config()
    return {
        "cache_ttl_seconds": config.cache.ttl_ms / 1000.0,
        "dedup_window_seconds": config.notifier.dedup_window_ms / 1000.0,
        "max_fingerprints": config.notifier.max_fingerprints,
    }
