"""
Analytics Dashboard Service
Centralized Configuration Management

Pydantic settings with environment variable support. Each concern has its
own settings class and env prefix; `Settings` aggregates them.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from analytics_dashboard.domain.policy import DomainPolicy


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="analytics_dashboard", alias="database", description="Database name")
    user: str = Field(default="analytics", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    pool_size: int = Field(default=20, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Max overflow connections")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    echo: bool = Field(default=False, description="Echo SQL queries")
    create_tables: bool = Field(default=True, description="Create tables at startup")
    url: Optional[str] = Field(default=None, description="Full async URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL for asyncpg"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class RedisSettings(BaseSettings):
    """Redis Cache Configuration"""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[SecretStr] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    max_connections: int = Field(default=100, description="Max connections")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    decode_responses: bool = Field(default=True, description="Decode responses to strings")
    url: Optional[str] = Field(default=None, alias="REDIS_URL", description="Redis URL (overrides host/port)")

    def get_url(self) -> str:
        """Redis connection URL - uses REDIS_URL if set, otherwise builds from host/port"""
        if self.url:
            return self.url
        if self.password:
            return f"redis://:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class KafkaSettings(BaseSettings):
    """Kafka Event Bus Configuration"""

    model_config = SettingsConfigDict(env_prefix="KAFKA_")

    bootstrap_servers: str = Field(default="localhost:9092", description="Kafka bootstrap servers")
    consumer_group: str = Field(default="analytics-dashboard", description="Consumer group ID")
    auto_offset_reset: str = Field(default="latest", description="Auto offset reset policy")
    enable_auto_commit: bool = Field(default=True, description="Enable auto commit")
    topic_prefix: str = Field(default="analytics", description="Prefix for domain event topics")
    request_timeout_ms: int = Field(default=30000, description="Producer request timeout")

    def topic_for(self, event_type: str) -> str:
        return f"{self.topic_prefix}.{event_type}"


class EventBusSettings(BaseSettings):
    """Domain event transport selection"""

    model_config = SettingsConfigDict(env_prefix="EVENT_BUS_")

    backend: str = Field(default="memory", description="Event bus backend: memory or kafka")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        allowed = ["memory", "kafka"]
        if v.lower() not in allowed:
            raise ValueError(f"Event bus backend must be one of: {allowed}")
        return v.lower()


class CacheSettings(BaseSettings):
    """Aggregation result cache"""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    enabled: bool = Field(default=True, description="Cache aggregation results in Redis")
    aggregation_ttl: int = Field(default=60, description="Aggregation cache TTL in seconds")
    namespace: str = Field(default="analytics", description="Cache key namespace")


class SecuritySettings(BaseSettings):
    """HTTP surface security configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8088"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Monitoring and Observability Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")
    enable_metrics: bool = Field(default=True, alias="ENABLE_METRICS", description="Expose /metrics")


class DomainSettings(BaseSettings):
    """Aggregate defaults and bounds"""

    model_config = SettingsConfigDict(env_prefix="DOMAIN_")

    default_columns: int = Field(default=4, description="Default dashboard grid columns")
    default_rows: int = Field(default=3, description="Default dashboard grid rows")
    default_grid_size: int = Field(default=12, description="Default dashboard grid size")
    default_refresh_interval: int = Field(default=300, description="Default refresh in seconds")
    min_refresh_interval: int = Field(default=30, description="Minimum refresh in seconds")
    max_refresh_interval: int = Field(default=3600, description="Maximum refresh in seconds")
    min_formula_length: int = Field(default=3, description="Minimum calculation formula length")
    min_hourly_interval: int = Field(default=1, description="Minimum hourly schedule interval")
    max_hourly_interval: int = Field(default=24, description="Maximum hourly schedule interval")
    max_email_length: int = Field(default=255, description="Recipient address length limit")

    def to_policy(self) -> DomainPolicy:
        """Build the explicit policy handed to aggregates"""
        return DomainPolicy(
            default_columns=self.default_columns,
            default_rows=self.default_rows,
            default_grid_size=self.default_grid_size,
            default_refresh_interval=self.default_refresh_interval,
            min_refresh_interval=self.min_refresh_interval,
            max_refresh_interval=self.max_refresh_interval,
            min_formula_length=self.min_formula_length,
            min_hourly_interval=self.min_hourly_interval,
            max_hourly_interval=self.max_hourly_interval,
            max_email_length=self.max_email_length,
        )


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="analytics-dashboard", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")
    api_workers: int = Field(default=4, alias="API_WORKERS", description="API workers")
    api_reload: bool = Field(default=False, alias="API_RELOAD", description="Enable reload")

    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    kafka: KafkaSettings = Field(default_factory=KafkaSettings)
    event_bus: EventBusSettings = Field(default_factory=EventBusSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    domain: DomainSettings = Field(default_factory=DomainSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.
    """
    return Settings()


settings = get_settings()
