"""Redis backend implementing IFeatureStore with WATCH/MULTI transactions."""

from __future__ import annotations

import json

import redis

from featureflow.core.exceptions import (
    ConflictError,
    DependencyError,
    FeatureAlreadyExists,
    FeatureNotFound,
)
from featureflow.models.feature import Feature


class RedisFeatureStore:
    """IFeatureStore backed by Redis, one JSON document per feature."""

    def __init__(self, host: str = "localhost", port: int = 6379, db: int = 0,
                 key_prefix: str = "featureflow:") -> None:
        self._host = host
        self._port = port
        self._db = db
        self._key_prefix = key_prefix
        self._client = redis.Redis(
            host=host, port=port, db=db, decode_responses=True,
        )

    def _key(self, feature_id: str) -> str:
        return f"{self._key_prefix}feature:{feature_id}"

    @staticmethod
    def _dump(feature: Feature) -> str:
        return json.dumps(feature.to_item())

    def create(self, feature: Feature) -> Feature:
        stored = feature.model_copy(update={"version": 1})
        try:
            created = self._client.set(self._key(feature.id), self._dump(stored), nx=True)
        except redis.RedisError as exc:
            raise DependencyError(f"Redis SET failed for feature {feature.id}: {exc}") from exc
        if not created:
            raise FeatureAlreadyExists(feature.id)
        return stored

    def get(self, feature_id: str) -> Feature:
        try:
            raw = self._client.get(self._key(feature_id))
        except redis.RedisError as exc:
            raise DependencyError(f"Redis GET failed for feature {feature_id}: {exc}") from exc
        if raw is None:
            raise FeatureNotFound(feature_id)
        return Feature.model_validate_json(raw)

    def read_for_update(self, feature_id: str) -> Feature:
        return self.get(feature_id)

    def write_if_unchanged(
        self, feature_id: str, expected_version: int, feature: Feature
    ) -> Feature:
        key = self._key(feature_id)
        stored = feature.model_copy(update={"version": expected_version + 1})
        try:
            with self._client.pipeline() as pipe:
                pipe.watch(key)
                raw = pipe.get(key)
                if raw is None:
                    raise FeatureNotFound(feature_id)
                if json.loads(raw).get("version") != expected_version:
                    raise ConflictError(feature_id, expected_version)
                pipe.multi()
                pipe.set(key, self._dump(stored))
                pipe.execute()
        except redis.WatchError as exc:
            raise ConflictError(feature_id, expected_version) from exc
        except redis.RedisError as exc:
            raise DependencyError(f"Redis write failed for feature {feature_id}: {exc}") from exc
        return stored

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False
