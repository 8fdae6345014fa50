from __future__ import annotations

import threading
from collections.abc import Iterator
from datetime import UTC, datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, JsonValue

from eventprobe.utils.logging import get_logger

logger = get_logger(__name__)


class RequestInfo(BaseModel):
    """
    HTTP request that delivered an event to the capture endpoint.

    Attributes:
      - uri: Request path without domain (e.g. "/m/batch").
      - remoteAddress: Client address that sent the request (e.g. "192.168.1.2:53427").
      - headers: HTTP request headers.
      - query: Query string, if present.
    """

    model_config = ConfigDict(frozen=True)

    uri: str
    remote_address: str = Field(
        validation_alias=AliasChoices("remoteAddress", "remote_address"),
        serialization_alias="remoteAddress",
    )
    headers: dict[str, list[str]] = Field(default_factory=dict)
    query: str | None = None


class Event(BaseModel):
    """
    Analytics event captured from the application under test.

    Attributes:
      - id: Monotonically increasing number, unique within one test.
      - name: Logical event name (e.g. "purchase").
      - payload: Decoded JSON value of the event.
      - event_time: Capture timestamp (ISO 8601, UTC).
      - request: Origin of the event when it came over HTTP; never part of pattern matching.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    payload: JsonValue = None
    event_time: str
    request: RequestInfo | None = None


class EventStore:
    """
    Thread-safe, test-scoped storage of captured events.

    Responsibilities:
      - Append events coming from the capture side, assigning monotonic ids.
      - Track which events have already been consumed by a successful check.
      - Provide point-in-time snapshots for watchers.

    An id, once consumed, never becomes available again until reset().
    Scans are O(number of stored events) per poll; fine for test-scale volumes.
    """

    def __init__(self) -> None:
        self._events: list[Event] = []
        self._consumed: set[int] = set()
        self._next_id = 1
        self._lock = threading.RLock()

    def append(
        self,
        name: str,
        payload: JsonValue = None,
        *,
        event_time: str | None = None,
        request: RequestInfo | None = None,
    ) -> int:
        """Store a new event and return its id."""
        with self._lock:
            event = Event(
                id=self._next_id,
                name=name,
                payload=payload,
                event_time=event_time or datetime.now(UTC).isoformat(),
                request=request,
            )
            self._events.append(event)
            self._next_id += 1
        logger.info(
            "event_appended",
            id=event.id,
            name=name,
            payload=payload,
            uri=request.uri if request else None,
        )
        return event.id

    def snapshot(self) -> tuple[Event, ...]:
        """Immutable view of all events in append order."""
        with self._lock:
            return tuple(self._events)

    def events_since(self, baseline: int) -> tuple[Event, ...]:
        """Events appended after the first `baseline` ones."""
        with self._lock:
            return tuple(self._events[baseline:])

    def try_consume(self, event_id: int) -> bool:
        """
        Atomically mark an event as consumed.

        Returns False if it was already consumed (e.g. by a concurrent watcher).
        """
        with self._lock:
            if event_id in self._consumed:
                return False
            self._consumed.add(event_id)
        logger.info("event_consumed", id=event_id)
        return True

    def is_consumed(self, event_id: int) -> bool:
        with self._lock:
            return event_id in self._consumed

    def last_event(self) -> Event | None:
        with self._lock:
            return self._events[-1] if self._events else None

    def get_event_count(self, name: str) -> int:
        return sum(1 for e in self.snapshot() if e.name == name)

    def reset(self) -> None:
        """Drop all events and the consumption ledger."""
        with self._lock:
            self._events.clear()
            self._consumed.clear()
            self._next_id = 1
        logger.info("events_cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self.snapshot())
