"""Full-range readers for one partition.

:class:`RegularScanner` pages forward until the store runs out of cursors.
:class:`BidirectionalScanner` runs a forward and a backward scan at the same
time, one round at a time, and stops as soon as the two scans meet, which
roughly halves the number of sequential round trips for large partitions.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, cast

from .errors import NonUniqueIdentifierError
from .identity import UniqueIdentifierSpec, merge_projection, missing_identity_attributes, unique_id
from .marshal import canonical_json, unmarshal_item
from .query import BACKWARD, FORWARD, Direction, Page, QuerySpec
from .source import PageSource, RawItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanResult[T]:
    items: list[T]
    rounds: int
    requests: int
    middle_reached: bool = False


class RegularScanner[T]:
    def __init__(self, source: PageSource, *, unmarshal: Callable[[RawItem], T] | None = None) -> None:
        self._source = source
        self._unmarshal = unmarshal or cast(Callable[[RawItem], T], unmarshal_item)

    def iter_pages(self, spec: QuerySpec, cursor: str | None = None) -> Iterator[Page[RawItem]]:
        spec.validate()
        next_cursor = cursor
        while True:
            page = self._source.fetch(spec, next_cursor, FORWARD)
            yield page
            if page.next_cursor is None:
                return
            next_cursor = page.next_cursor

    def scan_with_stats(self, spec: QuerySpec) -> ScanResult[T]:
        raw: list[RawItem] = []
        requests = 0
        for page in self.iter_pages(spec):
            requests += 1
            raw.extend(page.items)

        return ScanResult(
            items=[self._unmarshal(item) for item in raw],
            rounds=requests,
            requests=requests,
        )

    def scan(self, spec: QuerySpec) -> list[T]:
        return self.scan_with_stats(spec).items


class BidirectionalScanner[T]:
    """Meet-in-the-middle reader.

    Items are told apart by the attributes named in ``identity``; those must
    uniquely identify an item within the queried range. If they do not, the
    scan may stop before it has read everything (two distinct items look like
    the meeting point) or read the whole range from both ends. With
    ``strict_identity=True`` an item missing a key attribute, or an identifier
    repeated by the same scan direction, raises
    :class:`~meetquery_py.errors.NonUniqueIdentifierError` instead of being
    logged.
    """

    def __init__(
        self,
        source: PageSource,
        *,
        identity: UniqueIdentifierSpec | None = None,
        unmarshal: Callable[[RawItem], T] | None = None,
        strict_identity: bool = False,
    ) -> None:
        self._source = source
        self._identity = identity or UniqueIdentifierSpec()
        self._unmarshal = unmarshal or cast(Callable[[RawItem], T], unmarshal_item)
        self._strict_identity = strict_identity

    @property
    def identity(self) -> UniqueIdentifierSpec:
        return self._identity

    def effective_spec(self, spec: QuerySpec) -> QuerySpec:
        if spec.projection is None:
            return spec
        return spec.with_projection(merge_projection(spec.projection, self._identity))

    def scan(self, spec: QuerySpec) -> list[T]:
        return self.scan_with_stats(spec).items

    def scan_with_stats(self, spec: QuerySpec) -> ScanResult[T]:
        spec.validate()
        spec = self.effective_spec(spec)

        found: dict[str, T] = {}
        origin: dict[str, Direction] = {}
        cursors: dict[Direction, str | None] = {FORWARD: None, BACKWARD: None}
        middle_reached = False
        rounds = 0

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="meetquery-scan") as pool:
            while True:
                pages = self._fetch_round(pool, spec, cursors, (FORWARD, BACKWARD))
                rounds += 1

                for direction in (FORWARD, BACKWARD):
                    page = pages[direction]
                    cursors[direction] = page.next_cursor
                    for raw in page.items:
                        key = self._identify(raw)
                        seen_by = origin.get(key)
                        if seen_by is None:
                            origin[key] = direction
                            found[key] = self._unmarshal(raw)
                        elif seen_by != direction:
                            middle_reached = True
                        else:
                            self._repeated_identifier(key, direction)

                if middle_reached or cursors[FORWARD] is None or cursors[BACKWARD] is None:
                    break

        logger.debug(
            "bidirectional scan table=%s rounds=%d items=%d middle_reached=%s",
            spec.table_name,
            rounds,
            len(found),
            middle_reached,
        )
        return ScanResult(
            items=list(found.values()),
            rounds=rounds,
            requests=rounds * 2,
            middle_reached=middle_reached,
        )

    def scan_by_equality(self, spec: QuerySpec) -> list[T]:
        return self.scan_by_equality_with_stats(spec).items

    def scan_by_equality_with_stats(self, spec: QuerySpec) -> ScanResult[T]:
        """Legacy policy: stop when any forward item equals any backward item.

        Every round compares the full forward list against the full backward
        list, so this is quadratic in the number of items read. Prefer
        :meth:`scan`. The projection is used as given.
        """
        spec.validate()

        collected: dict[Direction, list[RawItem]] = {FORWARD: [], BACKWARD: []}
        cursors: dict[Direction, str | None] = {FORWARD: None, BACKWARD: None}
        exhausted: dict[Direction, bool] = {FORWARD: False, BACKWARD: False}
        middle_reached = False
        rounds = 0
        requests = 0

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="meetquery-scan") as pool:
            while True:
                # an exhausted direction would restart from the beginning
                active = tuple(d for d in (FORWARD, BACKWARD) if not exhausted[d])
                pages = self._fetch_round(pool, spec, cursors, active)
                rounds += 1
                requests += len(active)

                for direction, page in pages.items():
                    collected[direction].extend(page.items)
                    cursors[direction] = page.next_cursor
                    exhausted[direction] = page.next_cursor is None

                middle_reached = _lists_overlap(collected[FORWARD], collected[BACKWARD])
                if middle_reached or (exhausted[FORWARD] and exhausted[BACKWARD]):
                    break

        unique: dict[str, RawItem] = {}
        for raw in [*collected[FORWARD], *collected[BACKWARD]]:
            unique.setdefault(canonical_json(raw), raw)

        logger.debug(
            "equality scan table=%s rounds=%d items=%d middle_reached=%s",
            spec.table_name,
            rounds,
            len(unique),
            middle_reached,
        )
        return ScanResult(
            items=[self._unmarshal(raw) for raw in unique.values()],
            rounds=rounds,
            requests=requests,
            middle_reached=middle_reached,
        )

    def _fetch_round(
        self,
        pool: ThreadPoolExecutor,
        spec: QuerySpec,
        cursors: dict[Direction, str | None],
        directions: tuple[Direction, ...],
    ) -> dict[Direction, Page[RawItem]]:
        futures: dict[Direction, Future[Page[RawItem]]] = {
            direction: pool.submit(self._source.fetch, spec, cursors[direction], direction)
            for direction in directions
        }
        # both requests stay in flight until each has answered
        wait(futures.values())
        return {direction: fut.result() for direction, fut in futures.items()}

    def _identify(self, raw: RawItem) -> str:
        keys = {name: raw[name] for name in self._identity.attributes if name in raw}
        native: dict[str, Any] = unmarshal_item(keys)
        if self._strict_identity:
            missing = missing_identity_attributes(native, self._identity)
            if missing:
                raise NonUniqueIdentifierError(
                    identifier=unique_id(native, self._identity),
                    attributes=self._identity.attributes,
                    reason=f"item is missing key attributes {list(missing)}",
                )
        return unique_id(native, self._identity)

    def _repeated_identifier(self, key: str, direction: Direction) -> None:
        if self._strict_identity:
            raise NonUniqueIdentifierError(
                identifier=key,
                attributes=self._identity.attributes,
                reason=f"identifier repeated by the {direction} scan",
            )
        logger.warning(
            "identifier %s repeated by the %s scan; %s may not identify items uniquely",
            key,
            direction,
            list(self._identity.attributes),
        )


def _lists_overlap(left: list[RawItem], right: list[RawItem]) -> bool:
    return any(l_item == r_item for l_item in left for r_item in right)
