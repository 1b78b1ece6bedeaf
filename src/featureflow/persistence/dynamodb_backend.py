"""DynamoDB backend implementing IFeatureStore with conditional writes."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from featureflow.core.exceptions import (
    ConflictError,
    DependencyError,
    FeatureAlreadyExists,
    FeatureNotFound,
)
from featureflow.core.logging import get_logger, log_extra
from featureflow.models.feature import Feature

log = get_logger(__name__)

_CONDITION_FAILED = "ConditionalCheckFailedException"


def _decode_value(v: Any) -> Any:
    if isinstance(v, Decimal):
        return int(v) if v == int(v) else float(v)
    if isinstance(v, dict):
        return _decode_decimals(v)
    if isinstance(v, list):
        return [_decode_value(i) for i in v]
    return v


def _decode_decimals(item: dict[str, Any]) -> dict[str, Any]:
    """Convert Decimal values in a DynamoDB item to int/float."""
    return {k: _decode_value(v) for k, v in item.items()}


def _is_condition_failure(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") == _CONDITION_FAILED


class DynamoDBFeatureStore:
    """Production IFeatureStore backed by a single DynamoDB table.

    One item per feature (PK=FEATURE#{id}, SK=STATE). The transition log lives
    inside the item, so state and log are written by the same put.
    """

    def __init__(self, table_name: str = "featureflow-features", table_suffix: str = "",
                 region: str = "us-east-1", endpoint_url: str | None = None) -> None:
        self._table_name = f"{table_name}{table_suffix}"
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)
        self._table = self._ddb.Table(self._table_name)

    @property
    def table_name(self) -> str:
        return self._table_name

    @staticmethod
    def _key(feature_id: str) -> dict[str, str]:
        return {"PK": f"FEATURE#{feature_id}", "SK": "STATE"}

    def _to_item(self, feature: Feature) -> dict[str, Any]:
        return {**self._key(feature.id), **feature.to_item()}

    @staticmethod
    def _from_item(item: dict[str, Any]) -> Feature:
        data = _decode_decimals(item)
        data.pop("PK", None)
        data.pop("SK", None)
        return Feature.model_validate(data)

    def _fetch(self, feature_id: str) -> Feature | None:
        try:
            resp = self._table.get_item(Key=self._key(feature_id), ConsistentRead=True)
        except (ClientError, BotoCoreError) as exc:
            raise DependencyError(f"DynamoDB read failed for feature {feature_id}: {exc}") from exc
        item = resp.get("Item")
        return self._from_item(item) if item else None

    # ---- IFeatureStore methods ----

    def create(self, feature: Feature) -> Feature:
        stored = feature.model_copy(update={"version": 1})
        try:
            self._table.put_item(
                Item=self._to_item(stored),
                ConditionExpression="attribute_not_exists(PK)",
            )
        except ClientError as exc:
            if _is_condition_failure(exc):
                raise FeatureAlreadyExists(feature.id) from exc
            raise DependencyError(f"DynamoDB create failed for feature {feature.id}: {exc}") from exc
        except BotoCoreError as exc:
            raise DependencyError(f"DynamoDB create failed for feature {feature.id}: {exc}") from exc
        return stored

    def get(self, feature_id: str) -> Feature:
        feature = self._fetch(feature_id)
        if feature is None:
            raise FeatureNotFound(feature_id)
        return feature

    def read_for_update(self, feature_id: str) -> Feature:
        return self.get(feature_id)

    def write_if_unchanged(
        self, feature_id: str, expected_version: int, feature: Feature
    ) -> Feature:
        stored = feature.model_copy(update={"version": expected_version + 1})
        try:
            self._table.put_item(
                Item=self._to_item(stored),
                ConditionExpression="attribute_exists(PK) AND #v = :expected",
                ExpressionAttributeNames={"#v": "version"},
                ExpressionAttributeValues={":expected": expected_version},
            )
        except ClientError as exc:
            if not _is_condition_failure(exc):
                raise DependencyError(f"DynamoDB write failed for feature {feature_id}: {exc}") from exc
            if self._fetch(feature_id) is None:
                raise FeatureNotFound(feature_id) from exc
            log.debug(
                "Conditional write lost",
                extra=log_extra(feature_id=feature_id, version=expected_version),
            )
            raise ConflictError(feature_id, expected_version) from exc
        except BotoCoreError as exc:
            raise DependencyError(f"DynamoDB write failed for feature {feature_id}: {exc}") from exc
        return stored

    def ping(self) -> bool:
        try:
            self._table.load()
        except (ClientError, BotoCoreError):
            return False
        return True
