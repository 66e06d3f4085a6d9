"""Item identity and projection helpers.

The bidirectional scanner decides that its two scans have met by computing a
string identifier for every item from the attributes named in a
:class:`UniqueIdentifierSpec`. Those attributes must identify an item within
the partition; when they do not, the scan can stop early and drop items, or
never detect the meeting point at all.
"""

from __future__ import annotations

import base64
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from boto3.dynamodb.types import Binary

from .validation import validate_attribute_name


@dataclass(frozen=True)
class UniqueIdentifierSpec:
    primary_key: str = "hash_key"
    sort_key: str | None = "range_key"

    def __post_init__(self) -> None:
        validate_attribute_name(self.primary_key)
        if self.sort_key is not None:
            validate_attribute_name(self.sort_key)

    @property
    def attributes(self) -> tuple[str, ...]:
        if self.sort_key is None:
            return (self.primary_key,)
        return (self.primary_key, self.sort_key)


def _render(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        number = value if isinstance(value, Decimal) else Decimal(str(value))
        return format(number.normalize(), "f")
    if isinstance(value, Binary):
        value = value.value
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return str(value)


def unique_id(item: Mapping[str, Any], spec: UniqueIdentifierSpec) -> str:
    primary = f"{spec.primary_key}:{_render(item.get(spec.primary_key))}"
    if spec.sort_key is None:
        return primary
    return f"{primary}|{spec.sort_key}:{_render(item.get(spec.sort_key))}"


def missing_identity_attributes(item: Mapping[str, Any], spec: UniqueIdentifierSpec) -> tuple[str, ...]:
    return tuple(name for name in spec.attributes if name not in item)


def merge_projection(requested: Iterable[str] | None, spec: UniqueIdentifierSpec) -> tuple[str, ...]:
    out: list[str] = []
    for name in [*(requested or ()), *spec.attributes]:
        name = name.strip()
        if name and name not in out:
            out.append(name)
    return tuple(out)


def parse_projection(expression: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in expression.split(",") if part.strip())


def format_projection(names: Iterable[str]) -> str:
    return ", ".join(names)
