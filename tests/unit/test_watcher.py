from __future__ import annotations

import threading
import time

import pytest

from eventprobe.network.errors import EventCheckError, EventNotFoundError
from eventprobe.network.events import EventStore
from eventprobe.network.watcher import EventWatcher, WatchResult

FAST = 0.02


@pytest.fixture
def store() -> EventStore:
    return EventStore()


@pytest.fixture
def watcher(store: EventStore) -> EventWatcher:
    return EventWatcher(store, polling_interval=FAST)


def _append_later(store: EventStore, delay: float, name: str, payload: object) -> threading.Thread:
    def _run() -> None:
        time.sleep(delay)
        store.append(name, payload)  # type: ignore[arg-type]

    t = threading.Thread(target=_run, daemon=True)
    t.start()
    return t


def test_empty_store_times_out_with_not_found(watcher: EventWatcher) -> None:
    started = time.monotonic()
    with pytest.raises(EventNotFoundError) as ei:
        watcher.wait_for_event("login", timeout_sec=0.3)
    elapsed = time.monotonic() - started
    assert 0.3 <= elapsed < 2.0
    assert isinstance(ei.value, EventCheckError)
    assert isinstance(ei.value, AssertionError)
    assert "login" in str(ei.value)
    assert ei.value.candidates == 0


def test_watch_returns_result_instead_of_raising(watcher: EventWatcher) -> None:
    result = watcher.watch("login", timeout_sec=0)
    assert isinstance(result, WatchResult)
    assert result.matched is False
    assert result.consumed_event_id is None
    assert isinstance(result.error, EventNotFoundError)


def test_name_only_match_consumes(store: EventStore, watcher: EventWatcher) -> None:
    event_id = store.append("login", {"user": "u1"})
    event = watcher.wait_for_event("login", timeout_sec=0.5)
    assert event.id == event_id
    assert store.is_consumed(event_id)


def test_deep_search_pattern_matches_nested_price(
    store: EventStore, watcher: EventWatcher
) -> None:
    event_id = store.append("purchase", {"items": [{"price": "120"}]})
    result = watcher.watch("purchase", {"price": "~120"}, timeout_sec=0.5)
    assert result.matched
    assert result.consumed_event_id == event_id
    assert store.is_consumed(event_id)


def test_numeric_payload_leaf_matches_string_pattern(
    store: EventStore, watcher: EventWatcher
) -> None:
    store.append("cart", {"qty": 3})
    assert watcher.watch("cart", {"qty": "3"}, timeout_sec=0.2).matched


def test_first_matching_event_is_consumed_and_earlier_non_match_stays(
    store: EventStore, watcher: EventWatcher
) -> None:
    first = store.append("view", {"screen": "home"})
    second = store.append("view", {"screen": "catalog"})

    result = watcher.watch("view", {"screen": "catalog"}, timeout_sec=0.5)
    assert result.consumed_event_id == second
    assert not store.is_consumed(first)

    # A later independent watch by name only picks up the remaining one
    later = watcher.watch("view", timeout_sec=0.5)
    assert later.consumed_event_id == first


def test_events_are_evaluated_in_append_order(store: EventStore, watcher: EventWatcher) -> None:
    a = store.append("view", {"n": 1})
    b = store.append("view", {"n": 2})
    assert watcher.watch("view", timeout_sec=0.2).consumed_event_id == a
    assert watcher.watch("view", timeout_sec=0.2).consumed_event_id == b


def test_consumed_events_are_never_matched_again(
    store: EventStore, watcher: EventWatcher
) -> None:
    store.append("login", {})
    assert watcher.watch("login", timeout_sec=0.2).matched
    assert not watcher.watch("login", timeout_sec=0.1).matched


def test_other_names_are_ignored(store: EventStore, watcher: EventWatcher) -> None:
    store.append("logout", {"user": "u1"})
    result = watcher.watch("login", {"user": "u1"}, timeout_sec=0.1)
    assert not result.matched


def test_event_arriving_during_wait_is_matched(store: EventStore, watcher: EventWatcher) -> None:
    t = _append_later(store, 0.1, "login", {"user": "u2"})
    event = watcher.wait_for_event("login", {"user": "u2"}, timeout_sec=2)
    t.join()
    assert event.payload == {"user": "u2"}


def test_timeout_error_reports_last_candidate(store: EventStore, watcher: EventWatcher) -> None:
    store.append("view", {"screen": "home"})
    with pytest.raises(EventNotFoundError) as ei:
        watcher.wait_for_event("view", {"screen": "catalog"}, timeout_sec=0.1)
    err = ei.value
    assert err.candidates == 1
    assert err.last_candidate is not None
    assert err.last_candidate.payload == {"screen": "home"}
    assert '"screen": "catalog"' in str(err)


def test_baseline_hides_earlier_events(store: EventStore, watcher: EventWatcher) -> None:
    store.append("view", {})
    assert not watcher.watch("view", timeout_sec=0.1, baseline=1).matched
    store.append("view", {})
    assert watcher.watch("view", timeout_sec=0.1, baseline=1).consumed_event_id == 2


def test_lost_consume_race_moves_on_to_next_candidate(
    store: EventStore, watcher: EventWatcher, monkeypatch: pytest.MonkeyPatch
) -> None:
    first = store.append("view", {})
    second = store.append("view", {})

    original = store.try_consume

    def racing_try_consume(event_id: int) -> bool:
        if event_id == first:
            # Someone else consumed it between the check and the consume
            original(event_id)
            return False
        return original(event_id)

    monkeypatch.setattr(store, "try_consume", racing_try_consume)
    result = watcher.watch("view", timeout_sec=0)
    assert result.consumed_event_id == second


def test_concurrent_watchers_consume_single_event_exactly_once(store: EventStore) -> None:
    store.append("purchase", {"price": "120"})
    results: list[WatchResult] = []
    lock = threading.Lock()
    barrier = threading.Barrier(2)

    def run() -> None:
        w = EventWatcher(store, polling_interval=FAST)
        barrier.wait()
        r = w.watch("purchase", {"price": "120"}, timeout_sec=0.3)
        with lock:
            results.append(r)

    threads = [threading.Thread(target=run) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(r.matched for r in results) == [False, True]
    failed = next(r for r in results if not r.matched)
    assert isinstance(failed.error, EventNotFoundError)
