from __future__ import annotations

import re

from .errors import ValidationError

MaxAttributeNameLength = 255
MaxTableNameLength = 255

_TABLE_NAME_RE = re.compile(r"^[a-zA-Z0-9_.-]+$")


def validate_table_name(name: str) -> None:
    if not isinstance(name, str) or len(name) < 3 or len(name) > MaxTableNameLength:
        raise ValidationError("table name length invalid")

    if _TABLE_NAME_RE.match(name) is None:
        raise ValidationError("table name contains invalid characters")


def validate_index_name(name: str | None) -> None:
    if name is None:
        return

    if len(name) < 3 or len(name) > MaxTableNameLength:
        raise ValidationError("index name length invalid")

    if _TABLE_NAME_RE.match(name) is None:
        raise ValidationError("index name contains invalid characters")


def validate_attribute_name(name: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("attribute name cannot be empty")
    if len(name) > MaxAttributeNameLength:
        raise ValidationError("attribute name exceeds maximum length")
    if _contains_control_characters(name):
        raise ValidationError("attribute name contains control characters")
    # projection expressions are comma separated
    if "," in name:
        raise ValidationError(f"attribute name cannot contain a comma: {name!r}")


def _contains_control_characters(value: str) -> bool:
    for ch in value:
        code = ord(ch)
        if 0 <= code <= 0x1F or code == 0x7F:
            return True
    return False
