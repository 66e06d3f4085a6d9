from __future__ import annotations

import os
import time
import uuid

import boto3

from meetquery_py import (
    BatchMutator,
    BidirectionalScanner,
    ClientSettings,
    QueryPageSource,
    QuerySpec,
    RegularScanner,
    create_dynamodb_client,
    delete_all,
    unprocessed_requests,
)


def _client():
    session = boto3.session.Session(
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
    )
    settings = ClientSettings.from_env()
    if settings.endpoint_url is None:
        settings = ClientSettings(endpoint_url="http://localhost:8000", region=session.region_name)
    return create_dynamodb_client(settings, session=session)


def main() -> None:
    client = _client()
    table_name = f"meetquery_py_example_{uuid.uuid4().hex[:12]}"
    count = int(os.environ.get("ITEM_COUNT", "2000"))

    client.create_table(
        TableName=table_name,
        KeySchema=[
            {"AttributeName": "hash_key", "KeyType": "HASH"},
            {"AttributeName": "range_key", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "hash_key", "AttributeType": "S"},
            {"AttributeName": "range_key", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)

    try:
        mutator = BatchMutator(client)
        items = [
            {"hash_key": "P1", "range_key": f"{i:06d}", "description": "x" * 1024} for i in range(count)
        ]
        left = unprocessed_requests(mutator.insert_many(table_name, items))
        print(f"inserted {count - len(left)} items, {len(left)} unprocessed")

        source = QueryPageSource(client)
        spec = QuerySpec.for_partition(table_name, "hash_key", "P1")

        for label, scanner in (("regular", RegularScanner(source)), ("bidirectional", BidirectionalScanner(source))):
            start = time.monotonic()
            result = scanner.scan_with_stats(spec)
            print(
                f"{label}: items={len(result.items)} rounds={result.rounds} "
                f"requests={result.requests} seconds={time.monotonic() - start:.3f}"
            )

        delete_all(RegularScanner(source), mutator, spec, retry_count=3)
    finally:
        client.delete_table(TableName=table_name)


if __name__ == "__main__":
    main()
