"""Chunked bulk put/delete with per-chunk retry of unprocessed requests.

A chunk that fails, or that still has unprocessed requests once its retry
budget is spent, does not raise: its :class:`MutationResult` carries the
leftover requests and the error. Callers must inspect the results.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from .aws_errors import map_aws_error
from .errors import ValidationError
from .identity import UniqueIdentifierSpec
from .marshal import marshal_item
from .protection import ConcurrencyLimiter
from .validation import validate_table_name

if TYPE_CHECKING:
    from .query import QuerySpec
    from .scanner import RegularScanner

logger = logging.getLogger(__name__)

type Operation = Literal["put", "delete"]
type WriteRequest = dict[str, Any]

MAX_BATCH_SIZE = 25
MAX_RETRY_COUNT = 10
DEFAULT_CONCURRENCY = 100
DEFAULT_RETRY_COUNTS: dict[str, int] = {"put": 3, "delete": 0}


def backoff_seconds(attempt: int, *, rand: Callable[[], float] = random.random) -> float:
    """Exponential backoff with full jitter, capped at one second."""
    ceiling = min(1.0, 0.05 * (2.0 ** (attempt - 1)))
    return ceiling * rand()


def _chunked[T](items: Sequence[T], size: int) -> list[Sequence[T]]:
    if size <= 0:
        raise ValueError("size must be > 0")
    return [items[i : i + size] for i in range(0, len(items), size)]


def _clamp_retry_count(retry_count: int) -> int:
    return max(0, min(MAX_RETRY_COUNT, retry_count))


def _operation_of(requests: Sequence[WriteRequest]) -> str:
    kinds = {"put" if "PutRequest" in r else "delete" for r in requests}
    return kinds.pop() if len(kinds) == 1 else "mixed"


@dataclass(frozen=True)
class MutationResult:
    table_name: str
    operation: str
    requested: int
    attempts: int
    unprocessed: tuple[WriteRequest, ...] = ()
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.unprocessed


def unprocessed_requests(results: Iterable[MutationResult]) -> list[WriteRequest]:
    out: list[WriteRequest] = []
    for result in results:
        out.extend(result.unprocessed)
    return out


class BatchMutator:
    def __init__(
        self,
        client: Any,
        *,
        chunk_size: int = MAX_BATCH_SIZE,
        max_concurrency: int = DEFAULT_CONCURRENCY,
        sleep: Callable[[float], None] | None = time.sleep,
        backoff: Callable[[int], float] = backoff_seconds,
    ) -> None:
        if client is None:
            raise ValueError("client is required")
        if chunk_size <= 0 or chunk_size > MAX_BATCH_SIZE:
            raise ValidationError(f"chunk_size must be between 1 and {MAX_BATCH_SIZE}")
        if max_concurrency <= 0:
            raise ValidationError("max_concurrency must be > 0")

        self._client = client
        self._chunk_size = chunk_size
        self._max_concurrency = max_concurrency
        self._limiter = ConcurrencyLimiter(max_concurrency)
        self._sleep = sleep
        self._backoff = backoff

    @property
    def limiter(self) -> ConcurrencyLimiter:
        return self._limiter

    def insert_many(
        self, table_name: str, items: Sequence[Mapping[str, Any]], retry_count: int = 3
    ) -> list[MutationResult]:
        return self.execute(table_name, items, "put", retry_count)

    def delete_many(
        self, table_name: str, keys: Sequence[Mapping[str, Any]], retry_count: int = 0
    ) -> list[MutationResult]:
        return self.execute(table_name, keys, "delete", retry_count)

    def execute(
        self,
        table_name: str,
        items_or_keys: Sequence[Mapping[str, Any]],
        operation: Operation,
        retry_count: int | None = None,
    ) -> list[MutationResult]:
        validate_table_name(table_name)
        if operation not in DEFAULT_RETRY_COUNTS:
            raise ValidationError(f"unsupported operation: {operation!r}")
        if retry_count is None:
            retry_count = DEFAULT_RETRY_COUNTS[operation]

        requests = [_write_request(operation, entry) for entry in items_or_keys]
        chunks = _chunked(requests, self._chunk_size)
        if not chunks:
            return []

        logger.debug(
            "batch %s table=%s requests=%d chunks=%d", operation, table_name, len(requests), len(chunks)
        )
        workers = min(self._max_concurrency, len(chunks))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="meetquery-batch") as pool:
            futures = [pool.submit(self._run_chunk, table_name, chunk, retry_count) for chunk in chunks]
            return [fut.result() for fut in futures]

    def batch_write(
        self, table_name: str, requests: Sequence[WriteRequest], retry_count: int = 0
    ) -> MutationResult:
        """Write one chunk, resending only what the store left unprocessed."""
        budget = _clamp_retry_count(retry_count)
        operation = _operation_of(requests)
        pending = list(requests)
        attempts = 0

        while pending:
            attempts += 1
            try:
                resp = self._client.batch_write_item(RequestItems={table_name: pending})
            except Exception as err:
                # any client failure belongs to this chunk alone
                error = map_aws_error(err)
                logger.warning("batch %s table=%s failed: %s", operation, table_name, error)
                return MutationResult(
                    table_name=table_name,
                    operation=operation,
                    requested=len(requests),
                    attempts=attempts,
                    unprocessed=tuple(pending),
                    error=error,
                )

            pending = list((resp.get("UnprocessedItems") or {}).get(table_name) or [])
            if not pending or budget <= 0:
                break

            budget -= 1
            if self._sleep is not None:
                delay = self._backoff(attempts)
                if delay > 0:
                    self._sleep(delay)

        if pending:
            logger.warning(
                "batch %s table=%s left %d unprocessed after %d attempts",
                operation,
                table_name,
                len(pending),
                attempts,
            )
        return MutationResult(
            table_name=table_name,
            operation=operation,
            requested=len(requests),
            attempts=attempts,
            unprocessed=tuple(pending),
        )

    def _run_chunk(self, table_name: str, chunk: Sequence[WriteRequest], retry_count: int) -> MutationResult:
        with self._limiter.acquire():
            return self.batch_write(table_name, chunk, retry_count)


def _write_request(operation: str, entry: Mapping[str, Any]) -> WriteRequest:
    if operation == "put":
        return {"PutRequest": {"Item": marshal_item(entry)}}
    return {"DeleteRequest": {"Key": marshal_item(entry)}}


def delete_all(
    scanner: RegularScanner[dict[str, Any]],
    mutator: BatchMutator,
    spec: QuerySpec,
    *,
    identity: UniqueIdentifierSpec | None = None,
    retry_count: int = 0,
) -> list[MutationResult]:
    """Delete every item in the query range; ``identity`` names the table's key attributes."""
    identity = identity or UniqueIdentifierSpec()
    items = scanner.scan(spec.with_projection(identity.attributes))
    keys = [{name: item[name] for name in identity.attributes if name in item} for item in items]
    return mutator.delete_many(spec.table_name, keys, retry_count)
