from __future__ import annotations

from typing import Any

from .mocks import ANY, FakeDynamoDBClient, FakePartitionClient


def no_sleep(_: float) -> None:
    return None


def make_items(
    count: int,
    *,
    partition: str = "P1",
    hash_key: str = "hash_key",
    range_key: str = "range_key",
    payload: str = "",
) -> list[dict[str, Any]]:
    """Items sharing one partition, sort keys zero-padded so they order numerically."""
    if count < 0:
        raise ValueError("count must be >= 0")
    width = max(6, len(str(count)))
    return [
        {
            hash_key: partition,
            range_key: f"{i:0{width}d}",
            "description": f"item {i}{payload}",
        }
        for i in range(count)
    ]


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "FakePartitionClient",
    "make_items",
    "no_sleep",
]
