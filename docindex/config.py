"""
Configuration management for the document indexing layer.
"""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict, field_validator
from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)
else:
    # Try loading from env.example if .env doesn't exist
    example_env_path = Path(__file__).parent.parent / "env.example"
    if example_env_path.exists():
        load_dotenv(example_env_path)


class RedisSettings(BaseSettings):
    """Redis Stack connection settings."""

    model_config = ConfigDict(extra="allow")

    url: str = Field(default="redis://localhost:6379", validation_alias="REDIS_URL")
    password: Optional[str] = Field(default=None, validation_alias="REDIS_PASSWORD")
    socket_timeout: float = Field(default=5.0, validation_alias="REDIS_SOCKET_TIMEOUT")
    connect_timeout: float = Field(default=5.0, validation_alias="REDIS_CONNECT_TIMEOUT")
    max_connections: int = Field(default=50, validation_alias="REDIS_MAX_CONNECTIONS")


class IndexingSettings(BaseSettings):
    """Schema flattening, index lifecycle and query paging settings."""

    model_config = ConfigDict(extra="allow")

    max_cascade_depth: int = Field(default=5, validation_alias="MAX_CASCADE_DEPTH")
    page_size: int = Field(default=100, validation_alias="QUERY_PAGE_SIZE")
    index_ready_timeout: float = Field(default=30.0, validation_alias="INDEX_READY_TIMEOUT")
    index_poll_interval: float = Field(default=0.1, validation_alias="INDEX_POLL_INTERVAL")
    meta_key_prefix: str = Field(default="docindex:index", validation_alias="INDEX_META_PREFIX")

    @field_validator("max_cascade_depth")
    @classmethod
    def validate_max_cascade_depth(cls, v):
        """Validate cascade depth bound."""
        if v < 0:
            raise ValueError("Maximum cascade depth cannot be negative")
        return v

    @field_validator("page_size")
    @classmethod
    def validate_page_size(cls, v):
        """Validate query page size."""
        if v <= 0:
            raise ValueError("Page size must be positive")
        if v > 10000:
            raise ValueError("Page size cannot exceed 10000")
        return v


class RetrySettings(BaseSettings):
    """Retry policy for transient backend failures."""

    model_config = ConfigDict(extra="allow")

    max_attempts: int = Field(default=3, validation_alias="RETRY_MAX_ATTEMPTS")
    base_delay: float = Field(default=0.1, validation_alias="RETRY_BASE_DELAY")
    max_delay: float = Field(default=2.0, validation_alias="RETRY_MAX_DELAY")
    jitter: bool = Field(default=True, validation_alias="RETRY_JITTER")

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, v):
        """Validate retry attempts."""
        if v < 1:
            raise ValueError("At least one attempt is required")
        if v > 10:
            raise ValueError("Retry attempts cannot exceed 10")
        return v


class MonitoringSettings(BaseSettings):
    """Monitoring and observability settings."""

    model_config = ConfigDict(extra="allow")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, validation_alias="LOG_FILE")


class DeploymentSettings(BaseSettings):
    """Deployment configuration settings."""

    model_config = ConfigDict(extra="allow")

    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    backend: str = Field(default="redis", validation_alias="DOCINDEX_BACKEND")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v):
        """Validate backend selection."""
        valid_backends = ["redis", "memory"]
        if v not in valid_backends:
            raise ValueError(f"Backend must be one of: {valid_backends}")
        return v


class Settings(BaseSettings):
    """Main application settings."""

    model_config = ConfigDict(extra="allow")

    # Component settings
    redis: RedisSettings = RedisSettings()
    indexing: IndexingSettings = IndexingSettings()
    retry: RetrySettings = RetrySettings()
    monitoring: MonitoringSettings = MonitoringSettings()
    deployment: DeploymentSettings = DeploymentSettings()


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def print_configuration():
    """Print the current configuration (without sensitive data)."""
    print("🔧 Current Configuration:")
    print(f"  Environment: {settings.deployment.environment}")
    print(f"  Backend: {settings.deployment.backend}")
    print(f"  Redis URL: {settings.redis.url}")
    print(f"  Redis Password: {'✅ Set' if settings.redis.password else '❌ Not Set'}")
    print(f"  Max Cascade Depth: {settings.indexing.max_cascade_depth}")
    print(f"  Query Page Size: {settings.indexing.page_size}")
    print(f"  Retry Attempts: {settings.retry.max_attempts}")


if __name__ == "__main__":
    # Print configuration when run directly
    print_configuration()
