from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .errors import MeetQueryError, NonUniqueIdentifierError, TransportError, ValidationError
from .identity import (
    UniqueIdentifierSpec,
    format_projection,
    merge_projection,
    missing_identity_attributes,
    parse_projection,
    unique_id,
)
from .query import BACKWARD, FORWARD, Direction, Page, QuerySpec, SortKeyCondition

if TYPE_CHECKING:
    from .batch import BatchMutator, MutationResult, delete_all, unprocessed_requests
    from .config import (
        AwsCallMetric,
        ClientSettings,
        configure_logging,
        create_boto3_config,
        create_dynamodb_client,
        instrument_boto3_client,
    )
    from .marshal import marshal_item, unmarshal_item
    from .scanner import BidirectionalScanner, RegularScanner, ScanResult
    from .source import PageSource, QueryPageSource


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name in {"BatchMutator", "MutationResult", "delete_all", "unprocessed_requests"}:
        from . import batch

        return getattr(batch, name)
    if name in {
        "AwsCallMetric",
        "ClientSettings",
        "configure_logging",
        "create_boto3_config",
        "create_dynamodb_client",
        "instrument_boto3_client",
    }:
        from . import config

        return getattr(config, name)
    if name in {"marshal_item", "unmarshal_item"}:
        from . import marshal

        return getattr(marshal, name)
    if name in {"BidirectionalScanner", "RegularScanner", "ScanResult"}:
        from . import scanner

        return getattr(scanner, name)
    if name in {"PageSource", "QueryPageSource"}:
        from . import source

        return getattr(source, name)
    raise AttributeError(name)


__all__ = [
    "AwsCallMetric",
    "BACKWARD",
    "BatchMutator",
    "BidirectionalScanner",
    "ClientSettings",
    "configure_logging",
    "create_boto3_config",
    "create_dynamodb_client",
    "delete_all",
    "Direction",
    "FORWARD",
    "format_projection",
    "instrument_boto3_client",
    "marshal_item",
    "MeetQueryError",
    "merge_projection",
    "missing_identity_attributes",
    "MutationResult",
    "NonUniqueIdentifierError",
    "Page",
    "PageSource",
    "parse_projection",
    "QueryPageSource",
    "QuerySpec",
    "RegularScanner",
    "ScanResult",
    "SortKeyCondition",
    "TransportError",
    "UniqueIdentifierSpec",
    "unique_id",
    "unmarshal_item",
    "unprocessed_requests",
    "ValidationError",
    "__repo_version__",
    "__version__",
]
