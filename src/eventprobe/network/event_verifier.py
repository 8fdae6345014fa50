from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any, Literal, assert_never

import allure

from ..core.locators import PageElement, by_label, by_text
from ..reporting.manager import ReportManager
from ..utils.logging import get_logger
from .errors import AsyncCheckFailure, EventNotFoundError
from .events import Event, EventStore
from .matchers import contains_pattern, find_matching_item
from .patterns import PatternSource, load_pattern
from .scheduler import AsyncCheckScheduler, EventCheckHandle
from .watcher import DEFAULT_POLLING_INTERVAL_MS, DEFAULT_TIMEOUT_EVENT_EXPECTATION, EventWatcher

logger = get_logger(__name__)

MatchMode = Literal["exact", "contains", "starts_with", "regex"]
EventPosition = Literal["first", "last"]


def _name_matches(actual: str, expected: str, mode: MatchMode) -> bool:
    if mode == "exact":
        return actual == expected
    if mode == "contains":
        return expected in actual
    if mode == "starts_with":
        return actual.startswith(expected)
    if mode == "regex":
        try:
            return re.search(expected, actual) is not None
        except re.error:
            return False
    assert_never(mode)


class EventVerifier:
    """
    EventVerifier: wait for analytics events (sync/async), query them and attach diagnostics to Allure.

    Patterns may be given as JSON text, a path to a JSON file or a dict. Each pattern
    key is searched anywhere in the event payload; values use the leaf grammar
    "*" (any), "" (empty only), "~sub" (substring) or exact content, e.g.:

        {
          "items": [
            {"list_id": "CR", "tail_object": {"loc": "MAB", "loc_way": "CR"}}
          ]
        }
    """

    def __init__(
        self,
        store: EventStore,
        *,
        default_timeout: float = DEFAULT_TIMEOUT_EVENT_EXPECTATION,
        polling_interval: float = DEFAULT_POLLING_INTERVAL_MS / 1000.0,
        report_manager: ReportManager | None = None,
    ) -> None:
        self.store = store
        self.default_timeout = default_timeout
        self.watcher = EventWatcher(store, polling_interval=polling_interval)
        self.scheduler = AsyncCheckScheduler(self.watcher)
        self._report_manager = report_manager

    @property
    def report_manager(self) -> ReportManager:
        return self._report_manager or ReportManager.get_default()

    # ----- Waiting for events -----
    def check_has_event(
        self,
        name: str,
        event_data: PatternSource | None = None,
        timeout_sec: float | None = None,
        *,
        polling_interval: float | None = None,
    ) -> Event:
        """
        Wait for an event named `name` whose payload contains event_data and consume it.

        Events are examined in arrival order; already consumed events are skipped.

        Args:
            name: Event name.
            event_data: Pattern (JSON string, JSON file path or dict). None matches by name only.
            timeout_sec: Wait timeout in seconds (verifier default if None).
            polling_interval: Poll interval in seconds (verifier default if None).

        Returns:
            The consumed Event.

        Raises:
            MalformedPatternError: immediately, if event_data is not a JSON object.
            EventNotFoundError: if nothing matched before the timeout.
        """
        pattern = load_pattern(event_data)
        timeout = self.default_timeout if timeout_sec is None else timeout_sec
        title = f"Wait for event '{name}'" + (f" with data {pattern}" if pattern else "")
        with allure.step(f"{title} (timeout={timeout}s)"):
            result = self.watcher.watch(name, pattern, timeout, polling_interval=polling_interval)
            if result.error is not None:
                last = result.error.last_candidate
                self.report_manager.attach_event_artifacts(
                    expected=pattern,
                    actual=last.payload if last is not None else None,
                    name_prefix=f"event_check({name})",
                    when="failure",
                )
                raise result.error
            assert result.event is not None
            self.report_manager.attach_event_artifacts(
                expected=pattern,
                actual=result.event.payload,
                name_prefix=f"event_check({name})",
                when="success",
            )
            return result.event

    def check_has_event_async(
        self,
        name: str,
        event_data: PatternSource | None = None,
        timeout_sec: float | None = None,
        *,
        polling_interval: float | None = None,
    ) -> EventCheckHandle:
        """
        Start waiting for an event in the background and return immediately.

        Only events that arrive after this call are considered. The outcome is reported
        by await_all_event_checks(), which must run before the test ends (the pytest
        plugin calls it at teardown); failures of checks that are never joined are lost.

        Raises:
            MalformedPatternError: immediately, if event_data is not a JSON object.
        """
        pattern = load_pattern(event_data)
        timeout = self.default_timeout if timeout_sec is None else timeout_sec
        with allure.step(f"Start background check of event '{name}' (timeout={timeout}s)"):
            return self.scheduler.schedule(
                name, pattern, timeout, polling_interval=polling_interval
            )

    def await_all_event_checks(self, timeout: float | None = None) -> None:
        """
        Wait for completion of all background event checks.

        Raises:
            AsyncCheckFailure: the first failed check, after every check has finished.
        """
        with allure.step("Wait for background event checks"):
            try:
                self.scheduler.await_all(timeout)
            except AsyncCheckFailure as failure:
                cause = failure.__cause__
                last = cause.last_candidate if isinstance(cause, EventNotFoundError) else None
                self.report_manager.attach_event_artifacts(
                    expected=failure.pattern,
                    actual=last.payload if last is not None else None,
                    name_prefix=f"event_check_async({failure.name})",
                    when="failure",
                )
                raise

    # ----- Diagnostics -----
    def get_event_count(self, name: str) -> int:
        return self.store.get_event_count(name)

    def get_events(self) -> list[Event]:
        return list(self.store.snapshot())

    def filter_events(
        self,
        *,
        name: str | None = None,
        name_mode: MatchMode = "exact",
        event_data: PatternSource | None = None,
        where: Callable[[Event], bool] | None = None,
    ) -> list[Event]:
        """Return stored events (consumed or not) matching all given criteria."""
        pattern = load_pattern(event_data)
        res: list[Event] = []
        for e in self.store.snapshot():
            if name is not None and not _name_matches(e.name, name, name_mode):
                continue
            if pattern is not None and not contains_pattern(e.payload, pattern):
                continue
            if where is not None and not where(e):
                continue
            res.append(e)
        return res

    # ----- Event-driven locators -----
    def matched_item(
        self,
        name: str,
        event_data: PatternSource,
        timeout_sec: float | None = None,
        *,
        event_position: EventPosition = "first",
    ) -> dict[str, Any]:
        """
        Find the item (element of an `items` array) that an event reported for the screen.

        Flow:
          - wait for (and consume) an event `name` containing event_data;
          - among all events `name` containing event_data take the first/last one;
          - return its first item in which every pair of event_data is found.

        Raises:
            MalformedPatternError: if event_data is missing or not a JSON object.
            EventNotFoundError: if no such event arrives in time.
            LookupError: if no item matches or the item has no "name".
        """
        pattern = load_pattern(event_data)
        if pattern is None:
            raise ValueError("event_data is required to match an item")

        with allure.step(f"Find item of event '{name}' matching {pattern}"):
            self.check_has_event(name, pattern, timeout_sec)

            matched_events = [
                e
                for e in self.store.snapshot()
                if e.name == name and contains_pattern(e.payload, pattern)
            ]
            if not matched_events:
                raise LookupError(f"Event '{name}' with data {pattern} is no longer stored")
            event = matched_events[-1] if event_position == "last" else matched_events[0]

            item = find_matching_item(event.payload, pattern)
            if item is None:
                raise LookupError(f"No item of event '{name}' (id={event.id}) matches {pattern}")
            if "name" not in item:
                raise LookupError(f"Matched item of event '{name}' has no 'name' field: {item}")

            logger.info(
                "matched_item_found",
                name=name,
                id=event.id,
                item_name=item["name"],
                position=event_position,
            )
            return item

    def page_element_matched_event(
        self,
        name: str,
        event_data: PatternSource,
        timeout_sec: float | None = None,
        *,
        event_position: EventPosition = "first",
    ) -> PageElement:
        """Build a cross-platform locator from the `name` of the item found by matched_item()."""
        item = self.matched_item(name, event_data, timeout_sec, event_position=event_position)
        item_name = str(item["name"])
        return PageElement(android=by_text(item_name), ios=by_label(item_name))
