"""
Service request engine configuration using Pydantic Settings.

Provides centralized configuration for:
- API settings (name, prefix, CORS)
- Document store connection (MongoDB or in-memory)
- Collection names used by notifications, channels and provider lookup
- Side-effect timeouts (notification fan-out, channel provisioning)
- Logging and monitoring

All settings support environment variable overrides and .env file loading.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables with the
    prefix "SRQ_API_" (e.g., SRQ_API_MONGODB_URL).

    Environment variables are loaded from:
    1. System environment
    2. .env file in the current directory
    3. Default values defined below
    """

    # =========================================================================
    # API Settings
    # =========================================================================

    app_name: str = Field(
        default="Service Request Engine",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="API version"
    )
    api_prefix: str = Field(
        default="/api/v1",
        description="API URL prefix"
    )

    debug: bool = Field(
        default=False,
        description="Debug mode - enables verbose logging and error traces"
    )
    environment: str = Field(
        default="production",
        description="Environment: development|staging|production"
    )

    host: str = Field(
        default="0.0.0.0",
        description="API bind host"
    )
    port: int = Field(
        default=8000,
        description="API bind port",
        gt=0,
        lt=65536
    )

    # =========================================================================
    # Document Store Settings
    # =========================================================================

    store_backend: str = Field(
        default="mongodb",
        description="Document store backend: mongodb|memory"
    )
    mongodb_url: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URL"
    )
    mongodb_database: str = Field(
        default="service_requests",
        description="MongoDB database name"
    )
    mongodb_server_selection_timeout_ms: int = Field(
        default=5000,
        description="How long the driver waits for a reachable server (ms)",
        gt=0
    )

    # =========================================================================
    # Collection Settings
    # =========================================================================

    notifications_collection: str = Field(
        default="notifications",
        description="Collection holding notification records"
    )
    channels_collection: str = Field(
        default="chats",
        description="Collection holding two-party communication channels"
    )
    providers_collection: str = Field(
        default="providers",
        description="Collection of registered providers used for broadcast"
    )
    users_collection: str = Field(
        default="users",
        description="Collection of user profiles (channel participant details)"
    )

    # =========================================================================
    # Side-Effect Settings
    # =========================================================================

    notification_timeout_seconds: float = Field(
        default=5.0,
        description="Upper bound for a single notification send",
        gt=0
    )
    channel_timeout_seconds: float = Field(
        default=5.0,
        description="Upper bound for a single channel provisioning attempt",
        gt=0
    )
    history_enabled: bool = Field(
        default=True,
        description="Append a status history entry after each create/transition"
    )

    # =========================================================================
    # Order Settings
    # =========================================================================

    default_currency: str = Field(
        default="PKR",
        description="Currency recorded on orders that do not specify one",
        min_length=3,
        max_length=3
    )

    # =========================================================================
    # CORS Settings
    # =========================================================================

    cors_enabled: bool = Field(
        default=True,
        description="Enable CORS middleware"
    )
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    # =========================================================================
    # Monitoring and Observability
    # =========================================================================

    metrics_enabled: bool = Field(
        default=True,
        description="Enable Prometheus metrics"
    )
    metrics_endpoint: str = Field(
        default="/metrics",
        description="Metrics endpoint path"
    )

    # =========================================================================
    # Logging Settings
    # =========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG|INFO|WARNING|ERROR|CRITICAL"
    )
    log_format: str = Field(
        default="json",
        description="Log format: json|console"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got: {v}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed = ["development", "staging", "production"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        """Validate the document store backend name."""
        allowed = ["mongodb", "memory"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"store_backend must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: List[str]) -> List[str]:
        """Validate CORS origins are not empty."""
        if not v:
            return ["*"]
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        allowed = ["json", "console"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("default_currency")
    @classmethod
    def validate_default_currency(cls, v: str) -> str:
        """Normalise currency codes to upper case."""
        return v.upper()

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def json_logs(self) -> bool:
        """Whether logs are rendered as JSON."""
        return self.log_format == "json"

    # =========================================================================
    # Model Config
    # =========================================================================

    model_config = SettingsConfigDict(
        env_prefix="SRQ_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once and shared
    across the application. Settings are loaded from:
    1. Environment variables with SRQ_API_ prefix
    2. .env file in the current directory
    3. Default values

    Returns:
        Settings: Cached settings instance

    Example:
        >>> from api.src.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.mongodb_database)
        service_requests
    """
    return Settings()


def clear_settings_cache():
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.

    Example:
        >>> from api.src.config import get_settings, clear_settings_cache
        >>> os.environ['SRQ_API_STORE_BACKEND'] = 'memory'
        >>> clear_settings_cache()
        >>> settings = get_settings()
    """
    get_settings.cache_clear()
