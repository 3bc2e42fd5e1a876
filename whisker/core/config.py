from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AppConfig:
    app_name: str
    app_version: str
    environment: str
    host: str
    port: int
    cat_facts_api_base_url: str
    cat_images_api_base_url: str
    upstream_timeout_seconds: float
    otel_collector_url: str | None
    otel_service_name: str
    enable_tracing: bool
    readiness_timeout_seconds: float
    readiness_attempt_timeout_seconds: float
    readiness_poll_interval_seconds: float
    startup_wait_seconds: float
    log_level: str


def _read_optional_env(name: str) -> str | None:
    value = os.getenv(name)
    if not value:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _read_str_env(name: str, default: str) -> str:
    return _read_optional_env(name) or default


def _read_bool_env(name: str, default: bool) -> bool:
    value = _read_optional_env(name)
    if value is None:
        return default
    normalized = value.lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _read_int_env(name: str, default: int) -> int:
    value = _read_optional_env(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_float_env(name: str, default: float) -> float:
    value = _read_optional_env(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def load_app_config() -> AppConfig:
    return AppConfig(
        app_name=_read_str_env("APP_NAME", "Whisker Cat API"),
        app_version=_read_str_env("APP_VERSION", "0.1.0"),
        environment=_read_str_env("APP_ENV", "development"),
        host=_read_str_env("HOST", "127.0.0.1"),
        port=_read_int_env("PORT", default=12345),
        cat_facts_api_base_url=_read_str_env(
            "CAT_FACTS_API_BASE_URL", "https://catfact.ninja"
        ),
        cat_images_api_base_url=_read_str_env(
            "CAT_IMAGES_API_BASE_URL", "https://api.thecatapi.com"
        ),
        upstream_timeout_seconds=_read_float_env(
            "UPSTREAM_TIMEOUT_SECONDS", default=10.0
        ),
        otel_collector_url=_read_optional_env("OTEL_COLLECTOR_URL"),
        otel_service_name=_read_str_env("OTEL_SERVICE_NAME", "whisker"),
        enable_tracing=_read_bool_env("ENABLE_TRACING", default=True),
        readiness_timeout_seconds=_read_float_env(
            "READINESS_TIMEOUT_SECONDS", default=2.0
        ),
        readiness_attempt_timeout_seconds=_read_float_env(
            "READINESS_ATTEMPT_TIMEOUT_SECONDS", default=1.0
        ),
        readiness_poll_interval_seconds=_read_float_env(
            "READINESS_POLL_INTERVAL_SECONDS", default=0.1
        ),
        startup_wait_seconds=_read_float_env("STARTUP_WAIT_SECONDS", default=0.0),
        log_level=_read_str_env("LOG_LEVEL", "INFO").upper(),
    )
