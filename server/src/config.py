"""
Brief server configuration using Pydantic Settings.

Provides centralized configuration for:
- API settings (name, version, bind address, CORS)
- MongoDB connection (credentials, cluster host, database name, server API)
- Request correlation
- Logging

Application settings use the "BRIEF_API_" prefix. The MongoDB credentials
keep their deployment names (MONGO_USER_NAME, MONGO_USER_PASSWORD).
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are loaded from:
    1. System environment
    2. .env file in the current directory
    3. Default values defined below
    """

    # =========================================================================
    # API Settings
    # =========================================================================

    app_name: str = Field(
        default="brief-server",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="API version"
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
        default=5000,
        description="API bind port",
        gt=0,
        lt=65536
    )

    cors_origins: List[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    # =========================================================================
    # MongoDB Settings
    # =========================================================================

    mongo_user_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MONGO_USER_NAME", "mongo_user_name"),
        description="MongoDB user name"
    )
    mongo_user_password: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MONGO_USER_PASSWORD", "mongo_user_password"),
        description="MongoDB user password"
    )
    mongo_scheme: str = Field(
        default="mongodb+srv",
        description="Connection string scheme: mongodb|mongodb+srv"
    )
    mongo_cluster_host: str = Field(
        default="brief.5qwlb.mongodb.net",
        description="Cluster host (host[:port] for the plain mongodb scheme)"
    )
    mongo_database: str = Field(
        default="Brief",
        description="Application database name"
    )
    mongo_uri_options: str = Field(
        default="retryWrites=true&w=majority&appName=brief",
        description="Connection string query options"
    )
    mongo_server_api_version: str = Field(
        default="1",
        description="Pinned MongoDB Stable API version"
    )
    mongo_server_selection_timeout_ms: int = Field(
        default=30000,
        description="Driver server selection timeout (milliseconds)",
        gt=0
    )

    # =========================================================================
    # Request Correlation
    # =========================================================================

    request_id_max_length: int = Field(
        default=128,
        description="Longest inbound x-request-id accepted verbatim",
        gt=0,
        le=1024
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
        description="Log format: json|text"
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

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        allowed = ["json", "text"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("mongo_scheme")
    @classmethod
    def validate_mongo_scheme(cls, v: str) -> str:
        allowed = ["mongodb", "mongodb+srv"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"mongo_scheme must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("mongo_server_api_version")
    @classmethod
    def validate_mongo_server_api_version(cls, v: str) -> str:
        """Only Stable API versions known to the driver are accepted."""
        allowed = ["1"]
        if v not in allowed:
            raise ValueError(f"mongo_server_api_version must be one of {allowed}, got: {v}")
        return v

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: List[str]) -> List[str]:
        """Allow every origin when none are configured."""
        if not v:
            return ["*"]
        return v

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
        return self.log_format == "json"

    # =========================================================================
    # Model Config
    # =========================================================================

    model_config = SettingsConfigDict(
        env_prefix="BRIEF_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        validate_default=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache so settings are loaded once and shared across the
    application.

    Returns:
        Settings: Cached settings instance
    """
    return Settings()


def clear_settings_cache():
    """
    Clear the settings cache.

    Useful for testing when settings must be reloaded with different
    environment variables.
    """
    get_settings.cache_clear()
