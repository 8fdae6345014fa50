from __future__ import annotations

import threading
import time
from collections.abc import Mapping
from typing import Any

from eventprobe.utils.logging import get_logger

from .errors import AsyncCheckFailure
from .watcher import DEFAULT_TIMEOUT_EVENT_EXPECTATION, EventWatcher, WatchResult

logger = get_logger(__name__)


class EventCheckHandle:
    """Handle of one background watch, returned by AsyncCheckScheduler.schedule()."""

    def __init__(
        self,
        name: str,
        pattern: Mapping[str, Any] | None,
        timeout_sec: float,
        baseline: int,
    ) -> None:
        self.name = name
        self.pattern = pattern
        self.timeout_sec = timeout_sec
        self.baseline = baseline
        self.result: WatchResult | None = None
        self.failure: AsyncCheckFailure | None = None
        self._thread: threading.Thread | None = None

    def _start(self, target: Any) -> None:
        self._thread = threading.Thread(
            target=target, args=(self,), name=f"event-check-{self.name}", daemon=True
        )
        self._thread.start()

    def done(self) -> bool:
        return self._thread is not None and not self._thread.is_alive()

    def join(self, timeout: float | None = None) -> WatchResult | None:
        """Wait for the watch to finish; returns None if it is still running."""
        if self._thread is not None:
            self._thread.join(timeout)
        return self.result

    def __repr__(self) -> str:
        state = "done" if self.done() else "running"
        return f"EventCheckHandle(name={self.name!r}, baseline={self.baseline}, {state})"


class AsyncCheckScheduler:
    """
    Non-blocking event checks with a join barrier.

    schedule() returns immediately; the watch runs in its own thread and only sees
    events appended after the moment it was scheduled. Failures are buffered on the
    handle and surface from await_all().

    await_all() must be called once per test by whoever schedules checks (the pytest
    plugin does it at teardown). Checks that are never joined lose their failures.
    """

    def __init__(self, watcher: EventWatcher) -> None:
        self.watcher = watcher
        self._handles: list[EventCheckHandle] = []
        self._lock = threading.Lock()

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._handles)

    def schedule(
        self,
        name: str,
        pattern: Mapping[str, Any] | None = None,
        timeout_sec: float = DEFAULT_TIMEOUT_EVENT_EXPECTATION,
        *,
        polling_interval: float | None = None,
    ) -> EventCheckHandle:
        """Start a background watch for events appended from now on."""
        baseline = len(self.watcher.store)
        handle = EventCheckHandle(name, pattern, timeout_sec, baseline)

        def _target(h: EventCheckHandle) -> None:
            try:
                result = self.watcher.watch(
                    h.name,
                    h.pattern,
                    h.timeout_sec,
                    baseline=h.baseline,
                    polling_interval=polling_interval,
                )
            except Exception as e:
                logger.exception("event_check_crashed", name=h.name, error=str(e))
                failure = AsyncCheckFailure(
                    f"Background check of event '{h.name}' crashed: {e}",
                    name=h.name,
                    pattern=h.pattern,
                )
                failure.__cause__ = e
                h.failure = failure
                h.result = WatchResult(matched=False)
                return
            h.result = result
            if result.error is not None:
                failure = AsyncCheckFailure(str(result.error), name=h.name, pattern=h.pattern)
                failure.__cause__ = result.error
                h.failure = failure

        with self._lock:
            self._handles.append(handle)
        handle._start(_target)
        logger.info(
            "event_check_scheduled",
            name=name,
            pattern=pattern,
            timeout=timeout_sec,
            baseline=baseline,
        )
        return handle

    def await_all(self, timeout: float | None = None) -> None:
        """
        Join every scheduled check, clear the registry and raise the first failure.

        Args:
            timeout: Overall bound for the join; checks still running afterwards
                     are reported as failures.

        Raises:
            AsyncCheckFailure: the first recorded failure (in scheduling order).
        """
        with self._lock:
            handles = list(self._handles)
            self._handles.clear()

        deadline = None if timeout is None else time.monotonic() + timeout
        failures: list[AsyncCheckFailure] = []
        for h in handles:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            h.join(remaining)
            if not h.done():
                failures.append(
                    AsyncCheckFailure(
                        f"Background check of event '{h.name}' did not finish within {timeout}s",
                        name=h.name,
                        pattern=h.pattern,
                    )
                )
            elif h.failure is not None:
                failures.append(h.failure)

        logger.info("event_checks_joined", total=len(handles), failed=len(failures))
        if not failures:
            return
        for f in failures:
            logger.error("event_check_failed", name=f.name, pattern=f.pattern, error=str(f))
        first = failures[0]
        if len(failures) > 1:
            first.args = (f"{first.args[0]}\n(and {len(failures) - 1} more failed event checks)",)
        raise first
