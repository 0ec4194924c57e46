"""
Configuration & Environment Management for the Event Booking API
"""

import logging
import secrets
from functools import lru_cache
from typing import List, Optional, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings as PydanticBaseSettings
from pydantic_settings import SettingsConfigDict

logger = logging.getLogger(__name__)

_COMMON_CONFIG = SettingsConfigDict(
    env_file=".env", case_sensitive=True, extra="ignore"
)


class DatabaseSettings(PydanticBaseSettings):
    """Database configuration settings"""

    DATABASE_URL: Optional[str] = None

    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_NAME: str = "eventbook"

    # Connection Pool Settings
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 30
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_POOL_PRE_PING: bool = True
    DB_ECHO: bool = False

    # Connection Timeouts
    DB_COMMAND_TIMEOUT: int = 60
    DB_STATEMENT_TIMEOUT: str = "60s"
    DB_LOCK_TIMEOUT: str = "5s"
    DB_IDLE_IN_TRANSACTION_TIMEOUT: str = "10min"

    # Seconds a SQLite connection waits for the database write lock
    SQLITE_BUSY_TIMEOUT: float = 20.0

    model_config = _COMMON_CONFIG

    @property
    def database_url(self) -> str:
        """Generate database URL for async connections"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"


class RedisSettings(PydanticBaseSettings):
    """Redis configuration settings"""

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_USERNAME: Optional[str] = None
    REDIS_SOCKET_TIMEOUT: float = 5.0

    model_config = _COMMON_CONFIG

    @property
    def redis_url(self) -> str:
        """Generate Redis URL"""
        auth = ""
        if self.REDIS_USERNAME and self.REDIS_PASSWORD:
            auth = f"{self.REDIS_USERNAME}:{self.REDIS_PASSWORD}@"
        elif self.REDIS_PASSWORD:
            auth = f":{self.REDIS_PASSWORD}@"

        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class SecuritySettings(PydanticBaseSettings):
    """Security and authentication settings"""

    JWT_SECRET_KEY: str = secrets.token_urlsafe(32)
    JWT_ALGORITHM: str = "HS512"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Password Security
    BCRYPT_ROUNDS: int = 12
    PASSWORD_MIN_LENGTH: int = 8
    PASSWORD_REQUIRE_UPPERCASE: bool = True
    PASSWORD_REQUIRE_NUMBERS: bool = True

    model_config = _COMMON_CONFIG


class BookingSettings(PydanticBaseSettings):
    """Seat reservation settings"""

    MAX_SEATS_PER_BOOKING: int = 10
    LOCK_MAX_ATTEMPTS: int = 3
    LOCK_RETRY_BACKOFF: float = 0.05  # seconds, multiplied by the attempt number

    model_config = _COMMON_CONFIG


class ScalabilitySettings(PydanticBaseSettings):
    """Rate limiting, caching and background task settings"""

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW: int = 15 * 60
    AUTH_RATE_LIMIT_REQUESTS: int = 5
    AUTH_RATE_LIMIT_WINDOW: int = 15 * 60
    BOOKING_RATE_LIMIT_REQUESTS: int = 3
    BOOKING_RATE_LIMIT_WINDOW: int = 60
    RATE_LIMIT_WHITELIST: List[str] = []

    # Caching
    CACHE_ENABLED: bool = True
    CACHE_TTL: int = 5 * 60
    CACHE_KEY_PREFIX: str = "eventbook:"

    # Background Tasks
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"
    CELERY_TASK_SERIALIZER: str = "json"
    CELERY_RESULT_SERIALIZER: str = "json"
    CELERY_ACCEPT_CONTENT: List[str] = ["json"]
    CELERY_TIMEZONE: str = "UTC"
    INVENTORY_RECONCILE_INTERVAL: int = 15 * 60  # seconds

    model_config = _COMMON_CONFIG


class MonitoringSettings(PydanticBaseSettings):
    """Monitoring and observability settings"""

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    ENABLE_PROMETHEUS: bool = True

    model_config = _COMMON_CONFIG


class Settings(PydanticBaseSettings):
    """Main application settings"""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    TESTING: bool = False
    VERSION: str = "1.0.0"

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Eventbook"

    # CORS Configuration
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")  # type: ignore
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, list):
            return v
        return []

    # Initial administrator, created on startup when both are set
    FIRST_ADMIN_EMAIL: Optional[str] = None
    FIRST_ADMIN_PASSWORD: Optional[str] = None

    # Component Settings
    database: DatabaseSettings = DatabaseSettings()
    redis: RedisSettings = RedisSettings()
    security: SecuritySettings = SecuritySettings()
    booking: BookingSettings = BookingSettings()
    scalability: ScalabilitySettings = ScalabilitySettings()
    monitoring: MonitoringSettings = MonitoringSettings()

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore", validate_assignment=True
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
