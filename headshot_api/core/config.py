from functools import lru_cache
from typing import Any, List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:8081", "http://localhost:19006"]


def _parse_cors_origins(v: Any) -> List[str]:
    try:
        if v is None or v == "":
            return _DEFAULT_CORS.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return _DEFAULT_CORS.copy()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CORS.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or _DEFAULT_CORS.copy()
    except ValueError:
        return _DEFAULT_CORS.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    admin_token: str = Field(default="", alias="ADMIN_TOKEN")

    # Ledger persistence
    ledger_backend: Literal["mongo", "memory"] = Field(default="mongo", alias="LEDGER_BACKEND")
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="headshots", alias="MONGODB_DB_NAME")

    # Redis (request rate counters)
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # Replicate
    replicate_api_token: str = Field(default="", alias="REPLICATE_API_TOKEN")
    replicate_base_url: str = Field(default="https://api.replicate.com/v1", alias="REPLICATE_BASE_URL")
    replicate_model_version: str = Field(
        default="39ed52f2a78e934b3ba6e2a89f5b1c712de7dfea535525255b1aa35c5565e08b",
        alias="REPLICATE_MODEL_VERSION",
    )
    replicate_poll_interval_seconds: float = 2.0
    replicate_max_attempts: int = 60
    replicate_timeout_seconds: float = 30.0

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:8081,http://localhost:19006",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(getattr(self, "cors_origins_raw", None))

    # Credit ledger
    credits_baseline: int = 4
    credits_max: int = 8
    credits_daily_recovery_cap: int = 4
    credits_recovery_interval_seconds: int = 3600
    credits_timezone: str = Field(default="UTC", alias="CREDITS_TIMEZONE")

    # Pricing (credits)
    credits_per_use: int = 2
    credits_per_generation: int = 2

    # Requests per client per minute on /headshots; 0 disables
    rate_limit_per_minute: int = 10


@lru_cache
def get_settings() -> Settings:
    return Settings()
