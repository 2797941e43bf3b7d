"""SlotSwap settings, read from the environment.

Each section is its own ``BaseSettings`` with its own prefix, so a variable
such as ``REDIS_HOST`` can never leak into the Postgres section.

    from slotswap.config import get_settings
    pool_size = get_settings().postgres.pool_max_size
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_flag(v):
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "on")
    return bool(v)


class RedisSettings(BaseSettings):
    """Redis backs the swap notification channels."""

    model_config = SettingsConfigDict(env_prefix="REDIS_", extra="ignore")

    host: str = "redis"
    port: int = 6379
    password: str = ""
    max_connections: int = Field(default=200, description="Upper bound of the blocking pool")
    pool_timeout_sec: float = Field(default=5.0, description="Wait for a free pooled connection")
    health_check_interval: int = 30
    retry_on_timeout: bool = True
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0


class PostgresSettings(BaseSettings):
    """Postgres holds profiles, events and swap requests."""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_", extra="ignore", populate_by_name=True)

    host: str = "postgres"
    port: int = 5432
    user: str = "slotswap"
    password: str = ""
    # POSTGRES_DB matches the official image's variable name
    database: str = Field(default="slotswap", validation_alias="POSTGRES_DB")
    sslmode: str = "disable"
    pool_min_size: int = 2
    pool_max_size: int = 10
    pool_timeout: int = Field(default=30, description="Seconds to wait for a pooled connection")
    pool_max_lifetime: int = Field(default=1800, description="Recycle connections after this many seconds")
    pool_max_idle: int = Field(default=300, description="Close connections idle for this many seconds")

    def get_dsn(self) -> str:
        parts = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "dbname": self.database,
            "sslmode": self.sslmode,
        }
        return " ".join(f"{key}={value}" for key, value in parts.items())


class CorsSettings(BaseSettings):
    """Browser origins allowed to call the API (the calendar frontend)."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    origins_raw: str = Field(default="http://localhost:5173", validation_alias="CORS_ORIGINS")
    origins_regex: str = Field(default="", validation_alias="CORS_ORIGINS_REGEX")

    @property
    def origins(self) -> list[str]:
        return [o.strip() for o in self.origins_raw.split(",") if o.strip()]

    @property
    def allow_credentials(self) -> bool:
        # Browsers refuse credentials with a wildcard origin.
        return self.origins != ["*"] and not self.origins_regex


class AuthSettings(BaseSettings):
    """Identity propagated by the upstream auth gateway."""

    model_config = SettingsConfigDict(env_prefix="AUTH_", extra="ignore")

    profile_header: str = Field(
        default="X-Profile-Id",
        description="Header carrying the authenticated profile id",
    )


class DebugSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    request: bool = Field(default=False, alias="request_debug")
    websocket: bool = Field(default=False, alias="ws_debug")

    @field_validator("*", mode="before")
    @classmethod
    def parse_flag(cls, v):
        return _parse_flag(v)


class FeatureSettings(BaseSettings):
    """Switches for the optional backends."""

    model_config = SettingsConfigDict(extra="ignore")

    db: bool = Field(default=True, alias="enable_db")
    notifications: bool = Field(default=True, alias="enable_notifications")

    @field_validator("*", mode="before")
    @classmethod
    def parse_flag(cls, v):
        return _parse_flag(v)


class Settings:
    """All sections, each loaded independently with its own prefix."""

    def __init__(self) -> None:
        self.redis = RedisSettings()
        self.postgres = PostgresSettings()
        self.cors = CorsSettings()
        self.auth = AuthSettings()
        self.debug = DebugSettings()
        self.features = FeatureSettings()


@lru_cache
def get_settings() -> Settings:
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
