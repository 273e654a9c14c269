"""
source_fetcher.py — One independently-updating data source.

Each SourceFetcher owns exactly one slice of state: its latest Snapshot.
Nothing else writes to it except MutationCoordinator via replace().

Ordering
────────
Every fetch() is tagged with a monotonically increasing generation number.
When a response arrives, it is applied only if no newer fetch (or local
replace) has been issued since: last write wins by *issuance* order, not
completion order. Responses from superseded requests are dropped.

Failure policy
──────────────
Errors never escape fetch(). A failure after a previous success keeps the
last good data and records the error; a failure with no prior data leaves a
"failed" snapshot, which the aggregator treats as contributing nothing.
No retry or backoff here; callers decide when to fetch again.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Generic, Iterable, Optional, TypeVar

from pydantic import ValidationError

from relieflink.models.location import Snapshot, SourceStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")

Loader = Callable[[], Awaitable[Any]]
Parser = Callable[[Any], Iterable[T]]
Listener = Callable[[str, Snapshot], None]


class SourceFetcher(Generic[T]):
    """Fetches one source and publishes snapshot-changed events."""

    def __init__(self, name: str, loader: Loader, parse: Parser) -> None:
        self.name = name
        self._loader = loader
        self._parse = parse
        self._snapshot: Snapshot[T] = Snapshot.pending()
        self._issued = 0
        self._in_flight: set[int] = set()
        self._last_error: Optional[str] = None
        self._listeners: list[Listener] = []

    # ── Observation ──────────────────────────────────────────────────────────

    @property
    def snapshot(self) -> Snapshot[T]:
        return self._snapshot

    @property
    def loading(self) -> bool:
        return bool(self._in_flight)

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a snapshot-changed listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def status(self) -> SourceStatus:
        snap = self._snapshot
        return SourceStatus(
            name=self.name,
            status=snap.status,
            loading=self.loading,
            error=self._last_error,
            count=len(snap.items()),
            fetched_at=snap.fetched_at,
        )

    # ── Fetching ─────────────────────────────────────────────────────────────

    async def fetch(self) -> Snapshot[T]:
        """
        Load the source and atomically replace the snapshot.

        Returns the snapshot in effect once this request settles, which is
        a newer one if this response turned out to be stale.
        """
        self._issued += 1
        generation = self._issued
        self._in_flight.add(generation)
        logger.debug("Fetching %s (generation %d)", self.name, generation)

        try:
            raw = await self._loader()
            records = list(self._parse(raw))
        except Exception as exc:
            self._in_flight.discard(generation)
            if self._is_stale(generation):
                logger.debug("Ignoring stale %s failure (generation %d)", self.name, generation)
                return self._snapshot
            self._last_error = str(exc) or exc.__class__.__name__
            logger.warning("Source %s fetch failed: %s", self.name, self._last_error)
            if not self._snapshot.is_ready:
                self._publish(Snapshot.failed(self._last_error, generation=generation))
            return self._snapshot

        self._in_flight.discard(generation)
        if self._is_stale(generation):
            logger.debug("Ignoring stale %s response (generation %d)", self.name, generation)
            return self._snapshot

        self._last_error = None
        self._publish(Snapshot.ready(records, generation=generation))
        logger.info("Source %s ready: %d records", self.name, len(records))
        return self._snapshot

    def replace(self, records: Iterable[T]) -> Snapshot[T]:
        """
        Locally overwrite the snapshot data (optimistic mutation).

        Counts as a newer write: any fetch still in flight is discarded when
        it lands.
        """
        self._issued += 1
        self._publish(Snapshot.ready(records, generation=self._issued))
        return self._snapshot

    def _is_stale(self, generation: int) -> bool:
        return generation != self._issued

    def _publish(self, snapshot: Snapshot[T]) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(self.name, snapshot)


def parse_records(model: type, source: str) -> Parser:
    """
    Build a parser that validates each item of a JSON array into `model`.

    Invalid items are skipped with a warning; a non-list payload fails the
    whole fetch.
    """

    def parse(raw: Any) -> list:
        if not isinstance(raw, list):
            raise ValueError(f"{source}: expected a JSON array, got {type(raw).__name__}")
        records = []
        for i, item in enumerate(raw):
            try:
                records.append(model.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping invalid %s record #%d: %s", source, i, exc)
        return records

    return parse
