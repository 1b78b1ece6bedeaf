"""Pluggable feature store backends behind the IFeatureStore protocol."""

from __future__ import annotations

from featureflow.core.config import AppSettings
from featureflow.core.protocols import IFeatureStore
from featureflow.persistence.memory_backend import MemoryFeatureStore


def create_feature_store(settings: AppSettings | None = None) -> IFeatureStore:
    """Create the configured feature store backend.

    Backend modules are imported lazily so a memory-only deployment does not
    need AWS or Redis client configuration.
    """
    if settings is None:
        settings = AppSettings()

    backend = settings.store.backend
    if backend == "dynamodb":
        from featureflow.persistence.dynamodb_backend import DynamoDBFeatureStore

        return DynamoDBFeatureStore(
            table_name=settings.dynamodb.table_name,
            table_suffix=settings.dynamodb.table_suffix,
            region=settings.dynamodb.region,
            endpoint_url=settings.dynamodb.endpoint_url,
        )
    if backend == "redis":
        from featureflow.persistence.redis_backend import RedisFeatureStore

        return RedisFeatureStore(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
            key_prefix=settings.redis.key_prefix,
        )
    return MemoryFeatureStore()
