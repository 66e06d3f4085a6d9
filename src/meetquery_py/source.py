from __future__ import annotations

import logging
from typing import Any, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from .aws_errors import map_aws_error
from .errors import ValidationError
from .query import Direction, Page, QuerySpec, decode_cursor, encode_cursor, scan_index_forward

logger = logging.getLogger(__name__)

type RawItem = dict[str, Any]


class PageSource(Protocol):
    def fetch(self, spec: QuerySpec, cursor: str | None, direction: Direction) -> Page[RawItem]: ...


class QueryPageSource:
    """One DynamoDB ``Query`` round trip per :meth:`fetch` call.

    The client is a low-level boto3 DynamoDB client (or anything with a
    compatible ``query`` method) and is shared, never owned.
    """

    def __init__(self, client: Any) -> None:
        if client is None:
            raise ValueError("client is required")
        self._client = client

    def fetch(self, spec: QuerySpec, cursor: str | None, direction: Direction) -> Page[RawItem]:
        req = spec.to_request()
        req["ScanIndexForward"] = scan_index_forward(direction)

        if cursor is not None:
            try:
                decoded = decode_cursor(cursor)
            except Exception as err:
                raise ValidationError("invalid cursor") from err
            if decoded.direction != direction:
                raise ValidationError("cursor direction does not match query")
            if decoded.index != spec.index_name:
                raise ValidationError("cursor index does not match query")
            req["ExclusiveStartKey"] = decoded.last_key

        try:
            resp = self._client.query(**req)
        except (ClientError, BotoCoreError) as err:
            raise map_aws_error(err) from err

        items: list[RawItem] = list(resp.get("Items") or [])
        last = resp.get("LastEvaluatedKey")
        logger.debug(
            "query page table=%s direction=%s items=%d more=%s",
            spec.table_name,
            direction,
            len(items),
            bool(last),
        )
        return Page(
            items=items,
            next_cursor=encode_cursor(last, direction=direction, index=spec.index_name) if last else None,
        )
