from __future__ import annotations

from dataclasses import dataclass
import os
from urllib.parse import urlparse


class SettingsError(ValueError):
    pass


DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
)


@dataclass(frozen=True)
class Settings:
    lean_app_id: str
    lean_app_key: str
    lean_master_key: str
    lean_server_url: str
    environment: str
    auth_disabled: bool
    notification_service_url: str
    notification_enabled: bool
    notification_timeout: float
    response_cache_enabled: bool
    response_cache_ttl_seconds: int
    cors_origins: tuple[str, ...]

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def _require_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise SettingsError(f"Missing required environment variable: {name}")
    return value


def _optional_env(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def _require_url(name: str, value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise SettingsError(f"Invalid URL for {name}: {value}")
    return value


def _bool_env(name: str, default: bool) -> bool:
    value = _optional_env(name)
    if value is None:
        return default
    if value.lower() in {"1", "true", "yes", "on"}:
        return True
    if value.lower() in {"0", "false", "no", "off"}:
        return False
    raise SettingsError(f"Invalid boolean for {name}: {value}")


def _number_env(name: str, default: float) -> float:
    value = _optional_env(name)
    if value is None:
        return default
    try:
        number = float(value)
    except ValueError as exc:
        raise SettingsError(f"Invalid number for {name}: {value}") from exc
    if number <= 0:
        raise SettingsError(f"{name} must be positive: {value}")
    return number


def load_settings() -> Settings:
    lean_app_id = _require_env("LEAN_APP_ID")
    lean_app_key = _require_env("LEAN_APP_KEY")
    lean_master_key = _require_env("LEAN_MASTER_KEY")
    lean_server_url = _require_url(
        "LEAN_SERVER_URL",
        os.getenv("LEAN_SERVER_URL", "https://api.leancloud.cn").strip(),
    )
    notification_service_url = _require_url(
        "NOTIFICATION_SERVICE_URL",
        _optional_env("NOTIFICATION_SERVICE_URL") or "http://localhost:5001",
    )
    cors_value = _optional_env("CORS_ORIGINS")
    cors_origins = (
        tuple(origin.strip() for origin in cors_value.split(",") if origin.strip())
        if cors_value
        else DEFAULT_CORS_ORIGINS
    )

    return Settings(
        lean_app_id=lean_app_id,
        lean_app_key=lean_app_key,
        lean_master_key=lean_master_key,
        lean_server_url=lean_server_url,
        environment=(_optional_env("APP_ENV") or "production").lower(),
        auth_disabled=_bool_env("AUTH_DISABLED", False),
        notification_service_url=notification_service_url.rstrip("/"),
        notification_enabled=_bool_env("NOTIFICATION_SERVICE_ENABLED", True),
        notification_timeout=_number_env("NOTIFICATION_SERVICE_TIMEOUT", 5.0),
        response_cache_enabled=_bool_env("RESPONSE_CACHE_ENABLED", False),
        response_cache_ttl_seconds=int(_number_env("RESPONSE_CACHE_TTL_SECONDS", 300)),
        cors_origins=cors_origins,
    )
