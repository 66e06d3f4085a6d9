from __future__ import annotations

import re
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .marshal import marshal_item


class _AnySentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _AnySentinel()


def _assert_match(expected: Any, actual: Any, *, path: str) -> None:
    if expected is ANY:
        return

    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            raise AssertionError(f"{path}: expected dict, got {type(actual).__name__}")
        for k, v in expected.items():
            if k not in actual:
                raise AssertionError(f"{path}: missing key {k!r}")
            _assert_match(v, actual[k], path=f"{path}.{k}")
        return

    if isinstance(expected, list):
        if not isinstance(actual, list):
            raise AssertionError(f"{path}: expected list, got {type(actual).__name__}")
        if len(expected) != len(actual):
            raise AssertionError(f"{path}: expected {len(expected)} items, got {len(actual)}")
        for i, (e, a) in enumerate(zip(expected, actual, strict=True)):
            _assert_match(e, a, path=f"{path}[{i}]")
        return

    if expected != actual:
        raise AssertionError(f"{path}: expected {expected!r}, got {actual!r}")


@dataclass(frozen=True)
class ExpectedCall:
    method: str
    expected: Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None


class FakeDynamoDBClient:
    """Scripted client: every call must match the next expectation, in order."""

    def __init__(self) -> None:
        self._expected: list[ExpectedCall] = []
        self._lock = threading.Lock()
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def expect(
        self,
        method: str,
        expected: Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._expected.append(ExpectedCall(method=method, expected=expected, response=response, error=error))

    def assert_no_pending(self) -> None:
        if self._expected:
            raise AssertionError(f"pending expected calls: {self._expected!r}")

    def _handle(self, method: str, req: dict[str, Any]) -> Mapping[str, Any]:
        with self._lock:
            self.calls.append((method, dict(req)))
            if not self._expected:
                raise AssertionError(f"unexpected call: {method}")
            call = self._expected.pop(0)

        if call.method != method:
            raise AssertionError(f"expected {call.method}, got {method}")

        if callable(call.expected):
            call.expected(req)
        elif call.expected is not None and call.expected is not ANY:
            _assert_match(dict(call.expected), req, path=method)

        if call.error is not None:
            raise call.error

        return dict(call.response or {})

    def query(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("query", kwargs)

    def batch_write_item(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("batch_write_item", kwargs)


_PARTITION_RE = re.compile(r"^\s*(\S+)\s*=\s*(:\w+)\s*(?:AND\s+(.+))?$", re.IGNORECASE)
_COMPARE_RE = re.compile(r"^(\S+)\s*(<=|>=|=|<|>)\s*(:\w+)$")
_BETWEEN_RE = re.compile(r"^(\S+)\s+BETWEEN\s+(:\w+)\s+AND\s+(:\w+)$", re.IGNORECASE)
_BEGINS_RE = re.compile(r"^begins_with\(\s*([^,\s]+)\s*,\s*(:\w+)\s*\)$", re.IGNORECASE)


def _scalar(av: Mapping[str, Any]) -> Any:
    (kind, value), *_ = av.items()
    if kind == "N":
        return Decimal(value)
    if kind == "B":
        return bytes(value)
    return value


class FakePartitionClient:
    """In-memory table ordered by (partition key, sort key).

    Understands enough of ``Query`` for the scanners: a partition equality
    condition with an optional sort-key comparison, ``Limit``,
    ``ExclusiveStartKey``, ``ScanIndexForward`` and ``ProjectionExpression``.
    ``batch_write_item`` applies puts and deletes; ``unprocessed`` scripts how
    many requests each successive call leaves unprocessed.
    """

    def __init__(
        self,
        items: Iterable[Mapping[str, Any]] = (),
        *,
        table_name: str = "items",
        partition_key: str = "hash_key",
        sort_key: str | None = "range_key",
        unprocessed: Sequence[int] = (),
    ) -> None:
        self.table_name = table_name
        self.partition_key = partition_key
        self.sort_key = sort_key
        self._rows: dict[tuple[Any, Any], dict[str, Any]] = {}
        self._unprocessed = list(unprocessed)
        self._lock = threading.Lock()
        self.calls: list[tuple[str, dict[str, Any]]] = []
        for item in items:
            self._put(marshal_item(item))

    @property
    def items(self) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(self._rows[k]) for k in sorted(self._rows)]

    def calls_to(self, method: str) -> list[dict[str, Any]]:
        return [req for name, req in self.calls if name == method]

    def _key_of(self, wire: Mapping[str, Any]) -> tuple[Any, Any]:
        pk = _scalar(wire[self.partition_key])
        sk = _scalar(wire[self.sort_key]) if self.sort_key is not None else None
        return pk, sk

    def _put(self, wire: dict[str, Any]) -> None:
        self._rows[self._key_of(wire)] = wire

    def query(self, **req: Any) -> Mapping[str, Any]:
        with self._lock:
            self.calls.append(("query", dict(req)))
            rows = [self._rows[k] for k in sorted(self._rows)]

        if req.get("TableName") != self.table_name:
            raise ValueError(f"unknown table: {req.get('TableName')}")
        if req.get("FilterExpression"):
            raise ValueError("FilterExpression is not supported by FakePartitionClient")

        names: Mapping[str, str] = req.get("ExpressionAttributeNames") or {}
        values: Mapping[str, Any] = req.get("ExpressionAttributeValues") or {}
        matches = self._compile_key_condition(req["KeyConditionExpression"], names, values)
        selected = [row for row in rows if matches(row)]

        if not req.get("ScanIndexForward", True):
            selected.reverse()

        start = req.get("ExclusiveStartKey")
        if start:
            start_key = self._key_of(start)
            for i, row in enumerate(selected):
                if self._key_of(row) == start_key:
                    selected = selected[i + 1 :]
                    break

        limit = req.get("Limit")
        page = selected[:limit] if limit else selected
        more = len(selected) > len(page)

        projection = req.get("ProjectionExpression")
        if projection:
            attrs = [names.get(p.strip(), p.strip()) for p in projection.split(",")]
            page = [{a: row[a] for a in attrs if a in row} for row in page]
        else:
            page = [dict(row) for row in page]

        resp: dict[str, Any] = {"Items": page, "Count": len(page)}
        if more and page:
            last = selected[len(page) - 1]
            resp["LastEvaluatedKey"] = {
                a: last[a] for a in (self.partition_key, self.sort_key) if a is not None
            }
        return resp

    def batch_write_item(self, **req: Any) -> Mapping[str, Any]:
        request_items: Mapping[str, list[dict[str, Any]]] = req["RequestItems"]
        with self._lock:
            self.calls.append(("batch_write_item", dict(req)))
            leave = self._unprocessed.pop(0) if self._unprocessed else 0

            requests = list(request_items.get(self.table_name, []))
            if len(requests) > 25:
                raise ValueError("too many requests in one batch")
            keep = len(requests) - min(leave, len(requests))
            applied, skipped = requests[:keep], requests[keep:]

            for write in applied:
                if "PutRequest" in write:
                    self._put(dict(write["PutRequest"]["Item"]))
                else:
                    self._rows.pop(self._key_of(write["DeleteRequest"]["Key"]), None)

        return {"UnprocessedItems": {self.table_name: skipped} if skipped else {}}

    def _compile_key_condition(
        self, expression: str, names: Mapping[str, str], values: Mapping[str, Any]
    ) -> Callable[[Mapping[str, Any]], bool]:
        def name(ref: str) -> str:
            return names[ref] if ref.startswith("#") else ref

        def value(ref: str) -> Any:
            return _scalar(values[ref])

        match = _PARTITION_RE.match(expression)
        if match is None:
            raise ValueError(f"unsupported key condition: {expression}")
        pk_name, pk_value = name(match.group(1)), value(match.group(2))
        rest = (match.group(3) or "").strip()

        sort_test: Callable[[Any], bool] = lambda _: True  # noqa: E731
        sk_name: str | None = None
        if rest:
            if m := _BETWEEN_RE.match(rest):
                sk_name, low, high = name(m.group(1)), value(m.group(2)), value(m.group(3))
                sort_test = lambda v: low <= v <= high  # noqa: E731
            elif m := _BEGINS_RE.match(rest):
                sk_name, prefix = name(m.group(1)), value(m.group(2))
                sort_test = lambda v: isinstance(v, (str, bytes)) and v.startswith(prefix)  # noqa: E731
            elif m := _COMPARE_RE.match(rest):
                sk_name, op, bound = name(m.group(1)), m.group(2), value(m.group(3))
                ops: dict[str, Callable[[Any], bool]] = {
                    "=": lambda v: v == bound,
                    "<": lambda v: v < bound,
                    "<=": lambda v: v <= bound,
                    ">": lambda v: v > bound,
                    ">=": lambda v: v >= bound,
                }
                sort_test = ops[op]
            else:
                raise ValueError(f"unsupported sort key condition: {rest}")

        def matches(row: Mapping[str, Any]) -> bool:
            if pk_name not in row or _scalar(row[pk_name]) != pk_value:
                return False
            if sk_name is None:
                return True
            return sk_name in row and sort_test(_scalar(row[sk_name]))

        return matches
