from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from eventprobe.utils.logging import get_logger

from .errors import EventNotFoundError
from .events import Event, EventStore
from .matchers import contains_pattern

# ---- Default values ----
DEFAULT_TIMEOUT_EVENT_EXPECTATION = 15
DEFAULT_POLLING_INTERVAL_MS = 500

logger = get_logger(__name__)


@dataclass(frozen=True)
class WatchResult:
    """Outcome of one watch: the consumed event on success, the error on timeout."""

    matched: bool
    consumed_event_id: int | None = None
    error: EventNotFoundError | None = None
    event: Event | None = None


class EventWatcher:
    """
    Timeout-bounded poll loop over an EventStore.

    Every tick takes a snapshot, walks it in append order and consumes the first
    unconsumed event with the expected name whose payload contains the pattern.
    A lost consume race only skips that candidate; the scan goes on within the same tick.
    There is no external cancellation: a watch ends on match or on timeout.
    """

    def __init__(
        self,
        store: EventStore,
        *,
        polling_interval: float = DEFAULT_POLLING_INTERVAL_MS / 1000.0,
    ) -> None:
        self.store = store
        self.polling_interval = polling_interval

    def watch(
        self,
        name: str,
        pattern: Mapping[str, Any] | None = None,
        timeout_sec: float = DEFAULT_TIMEOUT_EVENT_EXPECTATION,
        *,
        baseline: int = 0,
        polling_interval: float | None = None,
    ) -> WatchResult:
        """
        Poll until a matching event is consumed or the timeout elapses.

        Args:
            name: Expected event name.
            pattern: Deep-search pattern; None matches by name only.
            timeout_sec: Wait timeout in seconds. At least one scan is always made.
            baseline: Number of leading events to ignore (events stored before the watch).
            polling_interval: Override of the watcher's poll interval, in seconds.

        Returns:
            WatchResult; never raises on timeout.
        """
        interval = self.polling_interval if polling_interval is None else polling_interval
        started = time.monotonic()
        deadline = started + timeout_sec

        logger.info(
            "event_watch_start",
            name=name,
            pattern=pattern,
            timeout=timeout_sec,
            baseline=baseline,
        )

        while True:
            candidates = 0
            last_candidate: Event | None = None
            for ev in self.store.events_since(baseline):
                if ev.name != name or self.store.is_consumed(ev.id):
                    continue
                candidates += 1
                if pattern is not None and not contains_pattern(ev.payload, pattern):
                    last_candidate = ev
                    continue
                if not self.store.try_consume(ev.id):
                    logger.debug("event_watch_consume_race_lost", name=name, id=ev.id)
                    continue
                logger.info(
                    "event_watch_matched",
                    name=name,
                    id=ev.id,
                    elapsed=round(time.monotonic() - started, 3),
                )
                return WatchResult(matched=True, consumed_event_id=ev.id, event=ev)

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(interval, remaining))

        elapsed = time.monotonic() - started
        logger.warning(
            "event_watch_timeout",
            name=name,
            pattern=pattern,
            timeout=timeout_sec,
            elapsed=round(elapsed, 3),
            candidates=candidates,
        )
        error = EventNotFoundError(
            name,
            pattern,
            timeout_sec,
            elapsed_sec=elapsed,
            candidates=candidates,
            last_candidate=last_candidate,
        )
        return WatchResult(matched=False, error=error)

    def wait_for_event(
        self,
        name: str,
        pattern: Mapping[str, Any] | None = None,
        timeout_sec: float = DEFAULT_TIMEOUT_EVENT_EXPECTATION,
        *,
        polling_interval: float | None = None,
    ) -> Event:
        """
        Blocking check: return the consumed event.

        Raises:
            EventNotFoundError: if nothing matched before the timeout.
        """
        result = self.watch(name, pattern, timeout_sec, polling_interval=polling_interval)
        if result.error is not None:
            raise result.error
        assert result.event is not None
        return result.event
