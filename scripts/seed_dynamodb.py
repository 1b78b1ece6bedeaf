"""Create the DynamoDB feature table and seed sample features.

Usage:
    python scripts/seed_dynamodb.py --endpoint-url http://localhost:4566
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

import boto3

from featureflow.audit.recorder import AuditRecorder
from featureflow.models.feature import Feature
from featureflow.models.schedule import load_schedule
from featureflow.pipeline import engine

TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {"name": "featureflow-features"},
]

SEED_PATH = Path(__file__).resolve().parent.parent / "config" / "sample_features.json"


def create_tables(ddb: Any, suffix: str = "") -> None:
    """Create the feature table(s). Skips if a table already exists."""
    client = ddb.meta.client
    existing = client.list_tables().get("TableNames", [])

    for defn in TABLE_DEFINITIONS:
        table_name = f"{defn['name']}{suffix}"
        if table_name in existing:
            print(f"  Table {table_name} already exists, skipping")
            continue
        client.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        print(f"  Created table {table_name}")


def build_seed_features(seed_path: Path = SEED_PATH, schedule_path: str | None = None) -> list[Feature]:
    """Load sample features; entries flagged ``submit`` enter the pipeline."""
    data = json.loads(seed_path.read_text())
    schedule = load_schedule(schedule_path)
    features: list[Feature] = []
    for entry in data["features"]:
        feature = Feature(id=entry["id"], title=entry.get("title", ""))
        if entry.get("submit"):
            transition = engine.submit(feature, schedule, "Seeded")
            feature = AuditRecorder.append(transition.feature, transition.record)
        features.append(feature.model_copy(update={"version": 1}))
    return features


def seed_features(
    ddb: Any, suffix: str = "", seed_path: Path = SEED_PATH, schedule_path: str | None = None
) -> int:
    """Write sample features into the feature table. Returns the count."""
    tbl = ddb.Table(f"featureflow-features{suffix}")
    features = build_seed_features(seed_path, schedule_path)
    with tbl.batch_writer() as batch:
        for feature in features:
            batch.put_item(Item={"PK": f"FEATURE#{feature.id}", "SK": "STATE", **feature.to_item()})
    print(f"  Seeded {len(features)} features")
    return len(features)


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed DynamoDB tables for featureflow")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    parser.add_argument("--schedule-path", default=None, help="Schedule JSON (defaults to the packaged schedule)")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, suffix=args.table_suffix)

    print("Seeding data...")
    seed_features(ddb, suffix=args.table_suffix, schedule_path=args.schedule_path)

    print("Done!")


if __name__ == "__main__":
    main()
