from __future__ import annotations

import pytest

from meetquery_py import QuerySpec, SortKeyCondition, ValidationError
from meetquery_py.query import scan_index_forward


def test_for_partition_builds_key_condition() -> None:
    spec = QuerySpec.for_partition("items", "hash_key", "A")
    assert spec.key_condition_expression == "#pk = :pk"
    assert spec.expression_attribute_names == {"#pk": "hash_key"}
    assert spec.expression_attribute_values == {":pk": {"S": "A"}}
    assert spec.projection is None


@pytest.mark.parametrize(
    ("cond", "expr", "values"),
    [
        (SortKeyCondition.eq("a"), "#pk = :pk AND #sk = :sk", {":sk": {"S": "a"}}),
        (SortKeyCondition.lt(5), "#pk = :pk AND #sk < :sk", {":sk": {"N": "5"}}),
        (SortKeyCondition.lte(5), "#pk = :pk AND #sk <= :sk", {":sk": {"N": "5"}}),
        (SortKeyCondition.gt(5), "#pk = :pk AND #sk > :sk", {":sk": {"N": "5"}}),
        (SortKeyCondition.gte(5), "#pk = :pk AND #sk >= :sk", {":sk": {"N": "5"}}),
        (
            SortKeyCondition.between(1, 2),
            "#pk = :pk AND #sk BETWEEN :sk1 AND :sk2",
            {":sk1": {"N": "1"}, ":sk2": {"N": "2"}},
        ),
        (SortKeyCondition.begins_with("ab"), "#pk = :pk AND begins_with(#sk, :sk)", {":sk": {"S": "ab"}}),
    ],
)
def test_for_partition_sort_conditions(cond: SortKeyCondition, expr: str, values: dict) -> None:
    spec = QuerySpec.for_partition("items", "hash_key", "A", sort_attr="range_key", sort=cond)
    assert spec.key_condition_expression == expr
    assert spec.expression_attribute_names == {"#pk": "hash_key", "#sk": "range_key"}
    for k, v in values.items():
        assert spec.expression_attribute_values[k] == v


def test_for_partition_rejects_bad_input() -> None:
    with pytest.raises(ValidationError):
        QuerySpec.for_partition("items", "hash_key", None)
    with pytest.raises(ValidationError):
        QuerySpec.for_partition("items", "hash_key", "A", sort=SortKeyCondition.eq("x"))
    with pytest.raises(ValidationError):
        QuerySpec.for_partition("items", "hash_key", "A", sort_attr="sk", sort=SortKeyCondition("~", ("x",)))
    with pytest.raises(ValidationError, match="collision"):
        QuerySpec.for_partition("items", "hash_key", "A", expression_attribute_values={":pk": {"S": "B"}})
    with pytest.raises(ValidationError, match="collision"):
        QuerySpec.for_partition("items", "hash_key", "A", expression_attribute_names={"#pk": "other"})


def test_to_request_renders_direction_independent_query() -> None:
    spec = QuerySpec.for_partition(
        "items",
        "hash_key",
        "A",
        filter_expression="attribute_exists(#d)",
        expression_attribute_names={"#d": "description"},
        projection=["description", "hash_key"],
        index_name="by-date",
        consistent_read=True,
        page_size=10,
    )
    req = spec.to_request()
    assert req == {
        "TableName": "items",
        "KeyConditionExpression": "#pk = :pk",
        "ConsistentRead": True,
        "IndexName": "by-date",
        "Limit": 10,
        "FilterExpression": "attribute_exists(#d)",
        "ProjectionExpression": "#p0, #p1",
        "ExpressionAttributeNames": {
            "#pk": "hash_key",
            "#d": "description",
            "#p0": "description",
            "#p1": "hash_key",
        },
        "ExpressionAttributeValues": {":pk": {"S": "A"}},
    }
    assert "ScanIndexForward" not in req
    assert "ExclusiveStartKey" not in req


def test_to_request_does_not_mutate_spec() -> None:
    spec = QuerySpec.for_partition("items", "hash_key", "A", projection=["description"])
    before = dict(spec.expression_attribute_names)
    spec.to_request()
    spec.to_request()
    assert spec.expression_attribute_names == before


def test_to_request_rejects_projection_placeholder_collision() -> None:
    spec = QuerySpec(
        table_name="items",
        key_condition_expression="pk = :pk",
        expression_attribute_names={"#p0": "other"},
        expression_attribute_values={":pk": {"S": "A"}},
        projection=("description",),
    )
    with pytest.raises(ValidationError, match="collision"):
        spec.to_request()


def test_with_projection_returns_a_copy() -> None:
    spec = QuerySpec.for_partition("items", "hash_key", "A")
    narrowed = spec.with_projection(["a", "b"])
    assert narrowed.projection == ("a", "b")
    assert spec.projection is None
    assert narrowed.with_projection(None).projection is None


@pytest.mark.parametrize(
    "spec",
    [
        QuerySpec(table_name="ab", key_condition_expression="pk = :pk"),
        QuerySpec(table_name="items", key_condition_expression="  "),
        QuerySpec(table_name="items", key_condition_expression="pk = :pk", page_size=0),
        QuerySpec(table_name="items", key_condition_expression="pk = :pk", projection=()),
        QuerySpec(table_name="items", key_condition_expression="pk = :pk", projection=("a", "a")),
        QuerySpec(table_name="items", key_condition_expression="pk = :pk", projection=("a,b",)),
        QuerySpec(table_name="items", key_condition_expression="pk = :pk", index_name="x"),
        QuerySpec(table_name="bad name!", key_condition_expression="pk = :pk"),
    ],
)
def test_validate_rejects_malformed_specs(spec: QuerySpec) -> None:
    with pytest.raises(ValidationError):
        spec.validate()


def test_scan_index_forward_maps_directions() -> None:
    assert scan_index_forward("forward") is True
    assert scan_index_forward("backward") is False
    with pytest.raises(ValidationError):
        scan_index_forward("sideways")  # type: ignore[arg-type]


def test_for_partition_accepts_comma_separated_projection() -> None:
    spec = QuerySpec.for_partition("items", "hash_key", "A", projection="description, range_key ,")
    assert spec.projection == ("description", "range_key")
    assert spec.to_request()["ProjectionExpression"] == "#p0, #p1"
