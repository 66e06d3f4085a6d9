from __future__ import annotations

from typing import Any

import pytest

from meetquery_py import (
    BatchMutator,
    BidirectionalScanner,
    QueryPageSource,
    QuerySpec,
    RegularScanner,
    SortKeyCondition,
    delete_all,
)
from meetquery_py.testkit import make_items

pytestmark = pytest.mark.integration


def _sorted(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(items, key=lambda item: item["range_key"])


def test_bidirectional_scan_matches_regular_scan(client: Any, table_name: str) -> None:
    items = make_items(120, payload="x" * 200)
    mutator = BatchMutator(client, max_concurrency=4)
    results = mutator.insert_many(table_name, items)
    assert all(r.ok for r in results)

    source = QueryPageSource(client)
    spec = QuerySpec.for_partition(table_name, "hash_key", "P1", page_size=10)

    regular = RegularScanner(source).scan_with_stats(spec)
    both = BidirectionalScanner(source).scan_with_stats(spec)

    assert _sorted(regular.items) == items
    assert _sorted(both.items) == items
    assert both.middle_reached
    assert both.rounds < regular.rounds


def test_projection_and_sort_condition(client: Any, table_name: str) -> None:
    items = make_items(30)
    BatchMutator(client).insert_many(table_name, items)

    source = QueryPageSource(client)
    spec = QuerySpec.for_partition(
        table_name,
        "hash_key",
        "P1",
        sort_attr="range_key",
        sort=SortKeyCondition.between("000005", "000014"),
        projection=["description"],
        page_size=3,
    )

    got = _sorted(BidirectionalScanner(source).scan(spec))

    assert [item["description"] for item in got] == [f"item {i}" for i in range(5, 15)]
    assert set(got[0]) == {"description", "hash_key", "range_key"}


def test_delete_all_empties_partition(client: Any, table_name: str) -> None:
    BatchMutator(client).insert_many(table_name, make_items(40))
    scanner = RegularScanner(QueryPageSource(client))
    spec = QuerySpec.for_partition(table_name, "hash_key", "P1", page_size=7)

    results = delete_all(scanner, BatchMutator(client), spec, retry_count=3)

    assert sum(r.requested for r in results) == 40
    assert scanner.scan(spec) == []
