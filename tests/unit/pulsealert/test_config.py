"""
Tests for configuration management in `pulsealert/config.py`.

Covers:
- Environment parsing and debug defaults
- Logging level coercion to the expected Literal
- Alerting, storage and producer overrides
- get_config cache behavior
- AppConfig validation (debug only allowed in development)
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from pulsealert.config import AlertingConfig, AppConfig, ProducerConfig, get_config, load_config_from_env
from pulsealert.services.alert_pipeline import build_backend
from pulsealert.services.storage import InMemoryBackend, JsonFileBackend

_ENV_VARS = [
    "ENVIRONMENT",
    "PULSE_USER_ID",
    "DEBOUNCE_SECONDS",
    "SUPPRESSION_WINDOW_SECONDS",
    "HIGH_HEART_RATE_BPM",
    "SUPPRESS_BP_ALERTS",
    "STORAGE_BACKEND",
    "DATA_DIR",
    "MAX_NOTIFICATIONS",
    "VITALS_INTERVAL_SECONDS",
    "WEARABLE_POLL_INTERVAL_SECONDS",
    "WEARABLE_FAILURE_RATE",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate each test from the caller's environment and the config cache."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def test_load_config_dev_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "development")

    config = load_config_from_env()

    assert config.environment == "development"
    assert config.debug is True
    assert config.logging.format == "console"
    assert config.user_id == "local-user"
    assert config.alerting.debounce_seconds == 1.2
    assert config.alerting.suppression_window_seconds == 30.0
    assert config.alerting.high_heart_rate_bpm == 120
    assert config.alerting.suppress_bp_alerts is True
    assert config.storage.backend == "json"
    assert config.storage.max_notifications == 500


def test_production_uses_json_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "prod")

    config = load_config_from_env()

    assert config.environment == "production"
    assert config.debug is False
    assert config.logging.format == "json"


def test_logging_level_literal_coercion(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "staging")

    # Unknown level should coerce to INFO
    monkeypatch.setenv("LOG_LEVEL", "unknown")
    assert load_config_from_env().logging.level == "INFO"

    monkeypatch.setenv("LOG_LEVEL", "error")
    assert load_config_from_env().logging.level == "ERROR"


def test_alerting_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEBOUNCE_SECONDS", "0.5")
    monkeypatch.setenv("SUPPRESSION_WINDOW_SECONDS", "60")
    monkeypatch.setenv("HIGH_HEART_RATE_BPM", "110")
    monkeypatch.setenv("SUPPRESS_BP_ALERTS", "no")

    alerting = load_config_from_env().alerting

    assert alerting.debounce_seconds == 0.5
    assert alerting.suppression_window_seconds == 60.0
    assert alerting.high_heart_rate_bpm == 110
    assert alerting.suppress_bp_alerts is False


def test_storage_and_producer_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PULSE_USER_ID", "alice")
    monkeypatch.setenv("STORAGE_BACKEND", "Memory")
    monkeypatch.setenv("MAX_NOTIFICATIONS", "50")
    monkeypatch.setenv("WEARABLE_FAILURE_RATE", "0.25")
    monkeypatch.setenv("VITALS_INTERVAL_SECONDS", "1")

    config = load_config_from_env()

    assert config.user_id == "alice"
    assert config.storage.backend == "memory"
    assert config.storage.max_notifications == 50
    assert config.producers.wearable_failure_rate == 0.25
    assert config.producers.vitals_interval_seconds == 1.0


def test_invalid_values_fail_fast(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEBOUNCE_SECONDS", "0")

    with pytest.raises(ValueError):
        load_config_from_env()


def test_get_config_cache() -> None:
    c1 = get_config()
    c2 = get_config()
    assert c1 is c2  # same object due to lru_cache


def test_build_backend_follows_storage_setting(tmp_path: Path) -> None:
    memory = AppConfig.model_validate({"storage": {"backend": "memory"}})
    json_cfg = AppConfig.model_validate({"storage": {"backend": "json", "data_dir": str(tmp_path)}})

    assert isinstance(build_backend(memory), InMemoryBackend)
    backend = build_backend(json_cfg)
    assert isinstance(backend, JsonFileBackend)
    assert backend.data_dir == tmp_path


def test_app_config_debug_only_in_dev_validation() -> None:
    with pytest.raises(ValueError, match="debug mode is only allowed"):
        AppConfig(environment="production", debug=True)


def test_irregular_heart_rate_bounds_must_be_ordered() -> None:
    with pytest.raises(ValueError, match="irregular_low_bpm"):
        AlertingConfig(irregular_low_bpm=100, irregular_high_bpm=90)


def test_failure_rate_is_a_probability() -> None:
    with pytest.raises(ValueError):
        ProducerConfig(wearable_failure_rate=1.5)
