from __future__ import annotations

import pytest

from meetquery_py import ValidationError
from meetquery_py.validation import (
    MaxAttributeNameLength,
    validate_attribute_name,
    validate_index_name,
    validate_table_name,
)


def test_validate_table_name() -> None:
    validate_table_name("items")
    validate_table_name("my-table_v2.prod")
    for bad in ["ab", "a" * 256, "bad name", "items;drop"]:
        with pytest.raises(ValidationError):
            validate_table_name(bad)


def test_validate_index_name_allows_none() -> None:
    validate_index_name(None)
    validate_index_name("gsi-by-date")
    for bad in ["ab", "bad index"]:
        with pytest.raises(ValidationError):
            validate_index_name(bad)


def test_validate_attribute_name() -> None:
    for ok in ["hash_key", "range-key", "with space", "a.b"]:
        validate_attribute_name(ok)
    for bad in ["", "   ", "a,b", "ok\x00bad", "a" * (MaxAttributeNameLength + 1)]:
        with pytest.raises(ValidationError):
            validate_attribute_name(bad)
