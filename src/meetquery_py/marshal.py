from __future__ import annotations

import base64
import json
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer

from .errors import ValidationError

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def _to_storable(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Mapping):
        return {str(k): _to_storable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_storable(v) for v in value]
    if isinstance(value, (set, frozenset)) and any(isinstance(v, float) for v in value):
        return {_to_storable(v) for v in value}
    return value


def marshal_item(item: Mapping[str, Any]) -> dict[str, Any]:
    if not isinstance(item, Mapping):
        raise ValidationError("item must be a map")

    out: dict[str, Any] = {}
    for name, value in item.items():
        try:
            out[str(name)] = _serializer.serialize(_to_storable(value))
        except (TypeError, ValueError) as err:
            raise ValidationError(f"attribute {name!r} cannot be stored: {err}") from err
    return out


def unmarshal_item(raw: Mapping[str, Any]) -> dict[str, Any]:
    if not isinstance(raw, Mapping):
        raise ValidationError("raw item must be a map")

    out: dict[str, Any] = {}
    for name, av in raw.items():
        try:
            out[str(name)] = _deserializer.deserialize(av)
        except (TypeError, ValueError) as err:
            raise ValidationError(f"attribute {name!r} is not a valid attribute value") from err
    return out


def _json_default(value: Any) -> Any:
    if isinstance(value, Binary):
        value = value.value
    if isinstance(value, (bytes, bytearray)):
        return {"__b64__": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    raise TypeError(f"cannot serialize {type(value).__name__}")


def canonical_json(raw: Mapping[str, Any]) -> str:
    """Stable text form of a wire item; equal items always produce equal strings."""
    return json.dumps(raw, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=_json_default)


def marshal_value(value: Any) -> dict[str, Any]:
    try:
        return _serializer.serialize(_to_storable(value))
    except (TypeError, ValueError) as err:
        raise ValidationError(f"value cannot be stored: {err}") from err
