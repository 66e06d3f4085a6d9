from __future__ import annotations

import base64
import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Literal

from .errors import ValidationError
from .identity import format_projection, parse_projection
from .marshal import marshal_value
from .validation import validate_attribute_name, validate_index_name, validate_table_name

type Direction = Literal["forward", "backward"]

FORWARD: Direction = "forward"
BACKWARD: Direction = "backward"


def scan_index_forward(direction: Direction) -> bool:
    if direction == FORWARD:
        return True
    if direction == BACKWARD:
        return False
    raise ValidationError(f"unknown direction: {direction!r}")


@dataclass(frozen=True)
class SortKeyCondition:
    op: str
    values: tuple[Any, ...]

    @staticmethod
    def eq(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op="=", values=(value,))

    @staticmethod
    def lt(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op="<", values=(value,))

    @staticmethod
    def lte(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op="<=", values=(value,))

    @staticmethod
    def gt(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op=">", values=(value,))

    @staticmethod
    def gte(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op=">=", values=(value,))

    @staticmethod
    def between(low: Any, high: Any) -> SortKeyCondition:
        return SortKeyCondition(op="between", values=(low, high))

    @staticmethod
    def begins_with(prefix: Any) -> SortKeyCondition:
        return SortKeyCondition(op="begins_with", values=(prefix,))

    def render(self, prefix: str, values: dict[str, Any]) -> str:
        op = self.op
        if op in {"=", "<", "<=", ">", ">="}:
            if len(self.values) != 1:
                raise ValidationError("invalid sort key condition")
            values[":sk"] = marshal_value(self.values[0])
            return f"{prefix} AND #sk {op} :sk"
        if op == "between":
            if len(self.values) != 2:
                raise ValidationError("invalid sort key condition")
            values[":sk1"] = marshal_value(self.values[0])
            values[":sk2"] = marshal_value(self.values[1])
            return f"{prefix} AND #sk BETWEEN :sk1 AND :sk2"
        if op == "begins_with":
            if len(self.values) != 1:
                raise ValidationError("invalid sort key condition")
            values[":sk"] = marshal_value(self.values[0])
            return f"{prefix} AND begins_with(#sk, :sk)"
        raise ValidationError(f"unsupported sort key operator: {op}")


@dataclass(frozen=True)
class QuerySpec:
    """Direction-independent description of a single-partition range query.

    Attribute values are in the store's wire format. Direction and resume
    position are not part of the spec; the page source adds them per request.
    """

    table_name: str
    key_condition_expression: str
    expression_attribute_names: Mapping[str, str] = field(default_factory=dict)
    expression_attribute_values: Mapping[str, Any] = field(default_factory=dict)
    filter_expression: str | None = None
    projection: tuple[str, ...] | None = None
    index_name: str | None = None
    consistent_read: bool = False
    page_size: int | None = None

    @staticmethod
    def for_partition(
        table_name: str,
        partition_attr: str,
        partition_value: Any,
        *,
        sort_attr: str | None = None,
        sort: SortKeyCondition | None = None,
        filter_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
        projection: str | Iterable[str] | None = None,
        index_name: str | None = None,
        consistent_read: bool = False,
        page_size: int | None = None,
    ) -> QuerySpec:
        """Build a query over one partition; ``projection`` may be a comma-separated string."""
        if partition_value is None:
            raise ValidationError("partition value is required")
        if isinstance(projection, str):
            projection = parse_projection(projection)

        names: dict[str, str] = {"#pk": partition_attr}
        values: dict[str, Any] = {":pk": marshal_value(partition_value)}
        key_expr = "#pk = :pk"
        if sort is not None:
            if sort_attr is None:
                raise ValidationError("sort_attr is required with a sort condition")
            names["#sk"] = sort_attr
            key_expr = sort.render(key_expr, values)

        for k, v in (expression_attribute_names or {}).items():
            if k in names:
                raise ValidationError(f"expression attribute name collision: {k}")
            names[k] = v
        for k, v in (expression_attribute_values or {}).items():
            if k in values:
                raise ValidationError(f"expression attribute value collision: {k}")
            values[k] = v

        return QuerySpec(
            table_name=table_name,
            key_condition_expression=key_expr,
            expression_attribute_names=names,
            expression_attribute_values=values,
            filter_expression=filter_expression,
            projection=tuple(projection) if projection is not None else None,
            index_name=index_name,
            consistent_read=consistent_read,
            page_size=page_size,
        )

    def with_projection(self, names: Iterable[str] | None) -> QuerySpec:
        return replace(self, projection=tuple(names) if names is not None else None)

    def validate(self) -> None:
        validate_table_name(self.table_name)
        validate_index_name(self.index_name)
        if not self.key_condition_expression or not self.key_condition_expression.strip():
            raise ValidationError("key_condition_expression is required")
        if self.page_size is not None and self.page_size <= 0:
            raise ValidationError("page_size must be > 0")
        if self.projection is not None:
            if not self.projection:
                raise ValidationError("projection cannot be empty")
            for name in self.projection:
                validate_attribute_name(name)
            if len(set(self.projection)) != len(self.projection):
                raise ValidationError("projection contains duplicate attributes")

    def to_request(self) -> dict[str, Any]:
        names = dict(self.expression_attribute_names)
        values = dict(self.expression_attribute_values)

        req: dict[str, Any] = {
            "TableName": self.table_name,
            "KeyConditionExpression": self.key_condition_expression,
            "ConsistentRead": self.consistent_read,
        }
        if self.index_name is not None:
            req["IndexName"] = self.index_name
        if self.page_size is not None:
            req["Limit"] = self.page_size
        if self.filter_expression:
            req["FilterExpression"] = self.filter_expression
        if self.projection is not None:
            refs: list[str] = []
            for i, name in enumerate(self.projection):
                ref = f"#p{i}"
                existing = names.get(ref)
                if existing is not None and existing != name:
                    raise ValidationError(f"expression attribute name collision: {ref}")
                names[ref] = name
                refs.append(ref)
            req["ProjectionExpression"] = format_projection(refs)

        if names:
            req["ExpressionAttributeNames"] = names
        if values:
            req["ExpressionAttributeValues"] = values
        return req


@dataclass(frozen=True)
class Page[T]:
    items: list[T]
    next_cursor: str | None


@dataclass(frozen=True)
class Cursor:
    last_key: dict[str, Any]
    direction: Direction
    index: str | None = None


def _ensure_single_key_map(value: Any) -> tuple[str, Any]:
    if not isinstance(value, dict) or len(value) != 1:
        raise ValueError("attribute value must be a single-key map")
    (key, inner), *_ = value.items()
    return str(key), inner


def _convert_av(av: Any, *, encode: bool) -> dict[str, Any]:
    """Convert one wire attribute value to (encode) or from its JSON-safe form."""
    kind, value = _ensure_single_key_map(av)
    binary_type: type | tuple[type, ...] = (bytes, bytearray) if encode else str

    def binary(v: Any) -> Any:
        if encode:
            return base64.b64encode(bytes(v)).decode("ascii")
        return base64.b64decode(v)

    if kind in {"S", "N"}:
        if not isinstance(value, str):
            raise ValueError(f"{kind} value must be a string")
        return {kind: value}

    if kind == "B":
        if not isinstance(value, binary_type):
            raise ValueError("B value has the wrong type")
        return {"B": binary(value)}

    if kind == "BOOL":
        if not isinstance(value, bool):
            raise ValueError("BOOL value must be a boolean")
        return {"BOOL": value}

    if kind == "NULL":
        if value is not True:
            raise ValueError("NULL value must be true")
        return {"NULL": True}

    if kind in {"SS", "NS"}:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValueError(f"{kind} value must be a list of strings")
        return {kind: list(value)}

    if kind == "BS":
        if not isinstance(value, list) or not all(isinstance(v, binary_type) for v in value):
            raise ValueError("BS value has the wrong element type")
        return {"BS": [binary(v) for v in value]}

    if kind == "L":
        if not isinstance(value, list):
            raise ValueError("L value must be a list")
        return {"L": [_convert_av(v, encode=encode) for v in value]}

    if kind == "M":
        if not isinstance(value, dict):
            raise ValueError("M value must be a map")
        return {"M": {str(k): _convert_av(value[k], encode=encode) for k in sorted(value.keys())}}

    raise ValueError(f"unsupported attribute value type: {kind}")


def encode_cursor(last_key: Any, *, direction: Direction, index: str | None = None) -> str | None:
    if not last_key:
        return None
    if not isinstance(last_key, dict):
        raise ValueError("last_key must be a map")
    scan_index_forward(direction)

    payload: dict[str, Any] = {
        "lastKey": {str(k): _convert_av(last_key[k], encode=True) for k in sorted(last_key.keys())},
        "direction": direction,
    }
    if index is not None:
        payload["index"] = index

    data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(data).decode("ascii")


def decode_cursor(cursor: str) -> Cursor:
    raw = str(cursor or "").strip()
    if not raw:
        raise ValueError("cursor is empty")

    padding = "=" * (-len(raw) % 4)
    data = base64.urlsafe_b64decode(raw + padding).decode("utf-8")
    parsed = json.loads(data)
    if not isinstance(parsed, dict):
        raise ValueError("cursor must decode to an object")

    last_key_raw = parsed.get("lastKey")
    if not isinstance(last_key_raw, dict) or not last_key_raw:
        raise ValueError("cursor lastKey is invalid")

    direction = parsed.get("direction")
    if direction not in {FORWARD, BACKWARD}:
        raise ValueError("cursor direction is invalid")

    index = parsed.get("index")
    return Cursor(
        last_key={str(k): _convert_av(last_key_raw[k], encode=False) for k in sorted(last_key_raw.keys())},
        direction=direction,
        index=index if isinstance(index, str) else None,
    )
