"""
Module: settings.py
Description: Application configuration using pydantic-settings.

Configures all application settings from environment variables with
validation and defaults. Supports .env files for local development.
"""

import re
from typing import Dict, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application settings
    app_name: str = Field(default="Event Relay", description="Application name")
    app_version: str = Field(default="0.3.0", description="Application version")
    log_level: str = Field(default="INFO", description="Logging level")
    stage: str = Field(default="dev", description="Deployment stage")

    # Backend selection
    storage_backend: Literal["memory", "aws"] = Field(
        default="memory",
        description="'memory' for local runs and tests, 'aws' for DynamoDB/SQS"
    )
    aws_region: str = Field(default="us-east-1", description="AWS region")

    # DynamoDB settings
    subscriptions_table_name: str = Field(
        default="event-relay-subscriptions",
        description="DynamoDB table holding webhook subscriptions"
    )
    deliveries_table_name: str = Field(
        default="event-relay-deliveries",
        description="DynamoDB table holding the delivery ledger"
    )
    api_keys_table_name: str = Field(
        default="event-relay-api-keys",
        description="DynamoDB table holding API key hashes"
    )
    rate_limits_table_name: str = Field(
        default="event-relay-rate-limits",
        description="DynamoDB table holding rate limit counters"
    )
    usage_table_name: str = Field(
        default="event-relay-usage",
        description="DynamoDB table holding daily usage counters"
    )

    # SQS settings
    delivery_queue_url: Optional[str] = Field(
        default=None,
        description="URL of the SQS delivery queue (required for the aws backend)"
    )

    # Delivery settings
    delivery_timeout: int = Field(
        default=10,
        ge=1,
        le=30,
        description="HTTP timeout in seconds for delivery attempts"
    )
    worker_pool_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Number of concurrent delivery workers"
    )
    max_delivery_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Attempts before a delivery job is exhausted"
    )
    backoff_base_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Delay before the second attempt; doubles per attempt"
    )
    backoff_max_seconds: float = Field(
        default=900.0,
        gt=0,
        description="Upper bound on a single backoff delay"
    )
    lease_timeout_seconds: int = Field(
        default=60,
        ge=1,
        le=43200,
        description="Seconds a dequeued job stays invisible before it is re-delivered"
    )
    queue_wait_seconds: int = Field(
        default=20,
        ge=0,
        le=20,
        description="Long-poll wait per SQS receive call"
    )

    # Rate limiting
    rate_limit_points: int = Field(
        default=1000,
        ge=1,
        description="Default points per window per identity"
    )
    rate_limit_duration: int = Field(
        default=60,
        ge=1,
        description="Fixed window duration in seconds"
    )
    rate_limit_key_prefix: str = Field(default="rate", description="Counter key prefix")
    rate_limit_tiers: Dict[str, int] = Field(
        default_factory=lambda: {"free": 1000, "pro": 10000, "enterprise": 100000},
        description="Points per window by API key tier"
    )

    # Metrics
    metrics_enabled: bool = Field(default=False, description="Publish CloudWatch metrics")
    metrics_namespace: str = Field(default="EventRelay", description="CloudWatch namespace")

    @field_validator(
        'subscriptions_table_name',
        'deliveries_table_name',
        'api_keys_table_name',
        'rate_limits_table_name',
        'usage_table_name',
    )
    @classmethod
    def validate_table_names(cls, v: str) -> str:
        """Validate DynamoDB table names."""
        if not v or not isinstance(v, str):
            raise ValueError("Table name must be a non-empty string")

        if not re.match(r'^[a-zA-Z0-9_.-]+$', v):
            raise ValueError(
                "Table name must contain only letters, numbers, dots, hyphens, and underscores"
            )

        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @field_validator('rate_limit_tiers')
    @classmethod
    def validate_tiers(cls, v: Dict[str, int]) -> Dict[str, int]:
        """Tier budgets must be positive."""
        for tier, points in v.items():
            if points < 1:
                raise ValueError(f"rate limit for tier '{tier}' must be at least 1")
        return v


# Global settings instance
settings = Settings()
