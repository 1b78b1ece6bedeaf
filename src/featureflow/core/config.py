"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class PipelineConfig(BaseSettings):
    """Transition engine configuration."""

    model_config = {"env_prefix": "FEATUREFLOW_PIPELINE_"}

    schedule_path: str | None = None  # None uses the packaged default schedule
    escalation_threshold: int = 2
    max_write_retries: int = 3


class StoreConfig(BaseSettings):
    """Feature store backend selection."""

    model_config = {"env_prefix": "FEATUREFLOW_STORE_"}

    backend: Literal["memory", "dynamodb", "redis"] = "memory"


class DynamoDBConfig(BaseSettings):
    """DynamoDB configuration."""

    model_config = {"env_prefix": "FEATUREFLOW_DYNAMO_"}

    table_name: str = "featureflow-features"
    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override


class RedisConfig(BaseSettings):
    """Redis feature store configuration."""

    model_config = {"env_prefix": "FEATUREFLOW_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    key_prefix: str = "featureflow:"


class ActivityConfig(BaseSettings):
    """Best-effort activity feed and worker gateway notification."""

    model_config = {"env_prefix": "FEATUREFLOW_ACTIVITY_"}

    webhook_url: str | None = None
    webhook_token: str | None = None
    gateway_url: str | None = None
    gateway_token: str | None = None
    gateway_model: str = "orchestrator"
    timeout_seconds: float = 2.0
    max_workers: int = 4


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "FEATUREFLOW_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"
    log_json: bool = False

    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    dynamodb: DynamoDBConfig = Field(default_factory=DynamoDBConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    activity: ActivityConfig = Field(default_factory=ActivityConfig)
