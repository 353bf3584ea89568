"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Defaults match the alerting behaviour users expect (1.2 s debounce, 30 s cool-down)
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class AlertingConfig(BaseModel):
    """Alert generation thresholds and timing."""

    debounce_seconds: float = Field(
        default=1.2, gt=0.0, description="Quiet period before a burst of BP readings is evaluated"
    )
    suppression_window_seconds: float = Field(
        default=30.0, ge=0.0, description="Minimum interval between alerts with the same title"
    )
    high_heart_rate_bpm: int = Field(default=120, gt=0, description="Heart rate above this is high")
    irregular_low_bpm: int = Field(default=40, gt=0, description="Heart rate below this is irregular")
    irregular_high_bpm: int = Field(
        default=180, gt=0, description="Heart rate above this is irregular"
    )
    suppress_bp_alerts: bool = Field(
        default=True, description="Apply the suppression cool-down to blood-pressure alerts too"
    )

    @model_validator(mode="after")
    def irregular_bounds_ordered(self) -> "AlertingConfig":
        if self.irregular_low_bpm >= self.irregular_high_bpm:
            raise ValueError("irregular_low_bpm must be below irregular_high_bpm")
        return self


class StorageConfig(BaseModel):
    """Persistence for readings and notifications."""

    backend: Literal["json", "memory"] = Field(default="json", description="Storage backend")
    data_dir: str = Field(default="./data", description="Directory for JSON documents")
    max_notifications: int = Field(
        default=500, gt=0, description="Notifications kept per user; oldest dropped first"
    )


class ProducerConfig(BaseModel):
    """Simulated producers."""

    vitals_interval_seconds: float = Field(
        default=2.0, gt=0.0, description="Interval between simulated heart-rate samples"
    )
    wearable_poll_interval_seconds: float = Field(
        default=60.0, gt=0.0, description="Interval between wearable polling attempts"
    )
    wearable_failure_rate: float = Field(
        default=0.05, ge=0.0, le=1.0, description="Probability a simulated device read fails"
    )


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
    user_id: str = Field(default="local-user", min_length=1, description="Single local user")

    # Component configs
    alerting: AlertingConfig = Field(default_factory=AlertingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    producers: ProducerConfig = Field(default_factory=ProducerConfig)
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

    alerting_config = AlertingConfig(
        debounce_seconds=float(os.getenv("DEBOUNCE_SECONDS", "1.2")),
        suppression_window_seconds=float(os.getenv("SUPPRESSION_WINDOW_SECONDS", "30.0")),
        high_heart_rate_bpm=int(os.getenv("HIGH_HEART_RATE_BPM", "120")),
        suppress_bp_alerts=_parse_bool(os.getenv("SUPPRESS_BP_ALERTS"), True),
    )

    storage_backend = os.getenv("STORAGE_BACKEND", "json").strip().lower()
    storage_config = StorageConfig(
        backend="memory" if storage_backend == "memory" else "json",
        data_dir=os.getenv("DATA_DIR", "./data"),
        max_notifications=int(os.getenv("MAX_NOTIFICATIONS", "500")),
    )

    producer_config = ProducerConfig(
        vitals_interval_seconds=float(os.getenv("VITALS_INTERVAL_SECONDS", "2.0")),
        wearable_poll_interval_seconds=float(os.getenv("WEARABLE_POLL_INTERVAL_SECONDS", "60.0")),
        wearable_failure_rate=float(os.getenv("WEARABLE_FAILURE_RATE", "0.05")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        user_id=os.getenv("PULSE_USER_ID", "local-user"),
        alerting=alerting_config,
        storage=storage_config,
        producers=producer_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def validate_config() -> None:
    """Validate configuration at startup."""
    try:
        config = get_config()
        print(f"Configuration loaded for {config.environment} environment")
        print(f"Storage backend: {config.storage.backend}")
    except Exception as e:
        print(f"Configuration validation failed: {e}")
        raise


def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\nCONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"User: {config.user_id}")
    print(f"Log Level: {config.logging.level}")

    print("\nALERTING")
    print(f"Debounce: {config.alerting.debounce_seconds}s")
    print(f"Suppression Window: {config.alerting.suppression_window_seconds}s")
    print(f"High Heart Rate: >{config.alerting.high_heart_rate_bpm} bpm")
    print(
        f"Irregular Heartbeat: <{config.alerting.irregular_low_bpm} or "
        f">{config.alerting.irregular_high_bpm} bpm"
    )

    print("\nSTORAGE")
    print(f"Backend: {config.storage.backend}")
    print(f"Data Dir: {config.storage.data_dir}")
    print(f"Max Notifications: {config.storage.max_notifications}")

    print("\nPRODUCERS")
    print(f"Vitals Interval: {config.producers.vitals_interval_seconds}s")
    print(f"Wearable Poll Interval: {config.producers.wearable_poll_interval_seconds}s")
    print(f"Wearable Failure Rate: {config.producers.wearable_failure_rate:.0%}")


if __name__ == "__main__":
    # Test configuration loading
    validate_config()
    print_config_summary()
