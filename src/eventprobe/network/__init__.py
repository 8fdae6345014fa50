from .errors import AsyncCheckFailure, EventCheckError, EventNotFoundError, MalformedPatternError
from .event_verifier import EventVerifier
from .events import Event, EventStore, RequestInfo
from .ingest import JsonEventIngestor
from .matchers import (
    contains_pattern,
    find_key_value_in_tree,
    find_matching_item,
    json_kind,
    match_json_element,
)
from .patterns import load_pattern
from .scheduler import AsyncCheckScheduler, EventCheckHandle
from .watcher import EventWatcher, WatchResult

__all__ = [
    "AsyncCheckFailure",
    "AsyncCheckScheduler",
    "Event",
    "EventCheckError",
    "EventCheckHandle",
    "EventNotFoundError",
    "EventStore",
    "EventVerifier",
    "EventWatcher",
    "JsonEventIngestor",
    "MalformedPatternError",
    "RequestInfo",
    "WatchResult",
    "contains_pattern",
    "find_key_value_in_tree",
    "find_matching_item",
    "json_kind",
    "load_pattern",
    "match_json_element",
]
