"""Environment configuration for Resellio Dashboard API."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
)


def _bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _list_env(name: str, default: list[str]) -> list[str]:
    value = os.getenv(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


class AppSettings(BaseModel):
    name: str = Field(
        default_factory=lambda: os.getenv("APP_NAME", "Resellio Dashboard").strip()
        or "Resellio Dashboard"
    )
    version: str = Field(
        default_factory=lambda: os.getenv("APP_VERSION", "0.1.0").strip() or "0.1.0"
    )
    debug: bool = Field(default_factory=lambda: _bool_env("DEBUG", False))
    log_level: str = Field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").strip().upper()
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: _list_env("CORS_ORIGINS", ["*"])
    )

    @model_validator(mode="after")
    def _validate(self) -> "AppSettings":
        if self.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(
                "LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL"
            )
        return self


class ServerSettings(BaseModel):
    host: str = Field(
        default_factory=lambda: os.getenv("HOST", "0.0.0.0").strip() or "0.0.0.0"
    )
    port: int = Field(default_factory=lambda: _int_env("PORT", 8000))


class RedisSettings(BaseModel):
    url: Optional[str] = Field(
        default_factory=lambda: os.getenv("REDIS_URL", "").strip() or None
    )
    key_prefix: str = Field(
        default_factory=lambda: os.getenv("REDIS_KEY_PREFIX", "resellio").strip()
        or "resellio"
    )

    @property
    def enabled(self) -> bool:
        return bool(self.url)


class MetaSettings(BaseModel):
    app_id: str = Field(default_factory=lambda: os.getenv("META_APP_ID", "").strip())
    app_secret: str = Field(
        default_factory=lambda: os.getenv("META_APP_SECRET", "").strip()
    )
    redirect_uri: Optional[str] = Field(
        default_factory=lambda: os.getenv("META_REDIRECT_URI", "").strip() or None
    )
    graph_version: str = Field(
        default_factory=lambda: os.getenv("META_GRAPH_VERSION", "v20.0").strip()
        or "v20.0"
    )
    graph_base_url: str = Field(
        default_factory=lambda: os.getenv(
            "META_GRAPH_BASE_URL", "https://graph.facebook.com"
        ).strip()
    )
    dialog_base_url: str = Field(
        default_factory=lambda: os.getenv(
            "META_DIALOG_BASE_URL", "https://www.facebook.com"
        ).strip()
    )
    scopes: Optional[str] = Field(
        default_factory=lambda: os.getenv("META_SCOPES", "").strip() or None
    )
    timeout: float = Field(default_factory=lambda: _float_env("META_HTTP_TIMEOUT", 20.0))

    @property
    def configured(self) -> bool:
        return bool(self.app_id and self.app_secret)

    @property
    def graph_api_url(self) -> str:
        return f"{self.graph_base_url.rstrip('/')}/{self.graph_version}"

    @property
    def dialog_url(self) -> str:
        return f"{self.dialog_base_url.rstrip('/')}/{self.graph_version}/dialog/oauth"


class SecuritySettings(BaseModel):
    encryption_key: str = Field(
        default_factory=lambda: os.getenv("OAUTH_ENCRYPTION_KEY", "").strip()
    )
    session_cookie_name: str = Field(
        default_factory=lambda: os.getenv("SESSION_COOKIE_NAME", "resellio_session").strip()
        or "resellio_session"
    )
    session_cookie_secure: bool = Field(
        default_factory=lambda: _bool_env("SESSION_COOKIE_SECURE", True)
    )

    @model_validator(mode="after")
    def _validate(self) -> "SecuritySettings":
        if not self.encryption_key:
            logger.warning(
                "OAUTH_ENCRYPTION_KEY is not set; generated a per-process key, "
                "stored Meta connections will not survive a restart."
            )
            self.encryption_key = Fernet.generate_key().decode("utf-8")
            return self
        try:
            Fernet(self.encryption_key)
        except ValueError as exc:
            raise ValueError("OAUTH_ENCRYPTION_KEY must be a valid Fernet key.") from exc
        return self


class ScrapeSettings(BaseModel):
    timeout: float = Field(default_factory=lambda: _float_env("SCRAPE_TIMEOUT", 10.0))
    user_agent: str = Field(
        default_factory=lambda: os.getenv("SCRAPE_USER_AGENT", "").strip()
        or DEFAULT_USER_AGENT
    )
    default_price: int = Field(
        default_factory=lambda: _int_env("SCRAPE_DEFAULT_PRICE", 120_000)
    )
    rate_limit: str = Field(
        default_factory=lambda: os.getenv("SCRAPE_RATE_LIMIT", "30/minute").strip()
        or "30/minute"
    )
    rate_limit_enabled: bool = Field(
        default_factory=lambda: _bool_env("RATE_LIMIT_ENABLED", True)
    )


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    meta: MetaSettings = Field(default_factory=MetaSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    scrape: ScrapeSettings = Field(default_factory=ScrapeSettings)

    model_config = dict(extra="ignore")

    # Compatibility helpers -------------------------------------------------
    @property
    def app_name(self) -> str:
        return self.app.name

    @property
    def app_version(self) -> str:
        return self.app.version

    @property
    def debug(self) -> bool:
        return self.app.debug

    @property
    def log_level(self) -> str:
        return self.app.log_level

    @property
    def host(self) -> str:
        return self.server.host

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def oauth_encryption_key(self) -> str:
        return self.security.encryption_key


@lru_cache
def get_settings() -> Settings:
    return Settings()
