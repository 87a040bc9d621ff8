"""
Configuration management for the queue dispatcher.

Supports configuration via environment variables and .env files.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Hard limits imposed by the SQS API
SQS_MAX_BATCH_SIZE = 10
SQS_MAX_DELAY_SECONDS = 900


class DispatcherConfig(BaseSettings):
    """
    Configuration settings for the queue dispatcher.

    All settings can be configured via environment variables with the DISPATCHER_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="DISPATCHER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # AWS settings
    aws_region: Optional[str] = Field(
        default=None,
        description="AWS region for the SQS client (falls back to the boto3 default chain)"
    )
    aws_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom SQS endpoint URL (e.g. LocalStack or ElasticMQ)"
    )
    aws_profile: Optional[str] = Field(
        default=None,
        description="Named AWS profile to build the boto3 session from"
    )

    # Batching parameters
    max_batch_size: int = Field(
        default=SQS_MAX_BATCH_SIZE,
        ge=1,
        le=SQS_MAX_BATCH_SIZE,
        description="Maximum number of messages in a single batch-send call"
    )
    max_concurrent_batches: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum number of batch-send calls in flight (unbounded if unset)"
    )
    default_delay_seconds: int = Field(
        default=0,
        ge=0,
        le=SQS_MAX_DELAY_SECONDS,
        description="Delivery delay applied to messages that do not set their own"
    )

    # Queue naming
    queue_name_prefix: str = Field(
        default="",
        description="Prefix added to every logical queue name before lookup"
    )
    queue_name_suffix: str = Field(
        default="",
        description="Suffix added to every logical queue name before lookup"
    )
    resolver_cache_enabled: bool = Field(
        default=True,
        description="Cache resolved queue URLs for the lifetime of the resolver"
    )

    # Worker pool for blocking SDK calls
    worker_threads: Optional[int] = Field(
        default=None,
        ge=1,
        description="Threads used for blocking SQS calls (ThreadPoolExecutor default if unset)"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    def queue_name(self, logical_name: str) -> str:
        """Apply the configured prefix and suffix to a logical queue name."""
        return f"{self.queue_name_prefix}{logical_name}{self.queue_name_suffix}"


# Global config instance
_config: Optional[DispatcherConfig] = None


def get_config() -> DispatcherConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = DispatcherConfig()
    return _config


def set_config(config: DispatcherConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
