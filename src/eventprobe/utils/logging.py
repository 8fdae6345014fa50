from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars

_TRACE = 5

# Event payloads and patterns can be arbitrarily large; these keys are clipped in log records
_BULKY_KEYS = ("payload", "pattern")
_DEFAULT_BULKY_LIMIT = 2000


def _level_from_env() -> int:
    """Get log level from EVENTPROBE_LOG_LEVEL (TRACE|DEBUG|INFO|WARNING|ERROR)."""
    raw = os.getenv("EVENTPROBE_LOG_LEVEL", "INFO").upper()
    if raw == "TRACE":
        return _TRACE
    return getattr(logging, raw, logging.INFO)


def _bulky_limit_from_env() -> int:
    try:
        return int(os.getenv("EVENTPROBE_LOG_PAYLOAD_LIMIT", str(_DEFAULT_BULKY_LIMIT)))
    except ValueError:
        return _DEFAULT_BULKY_LIMIT


class _LogFiles:
    """
    JSON-lines sink that mirrors every record into the log directory.

    framework.log gets all records; test_<name>.log gets the records bound to a test.
    The directory is EVENTPROBE_LOG_DIR (default: artifacts/logs).
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.framework_log = directory / "framework.log"
        self._lock = threading.RLock()

    def test_log(self, test_name: str) -> Path:
        safe = test_name
        for ch in (os.sep, "/", " ", ":"):
            safe = safe.replace(ch, "_")
        return self.directory / f"test_{safe}.log"

    def __call__(
        self, logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        line = json.dumps(event_dict, ensure_ascii=False, default=str) + "\n"
        test_name = event_dict.get("test")
        targets = [self.framework_log]
        if isinstance(test_name, str) and test_name:
            targets.append(self.test_log(test_name))
        try:
            with self._lock:
                self.directory.mkdir(parents=True, exist_ok=True)
                for path in targets:
                    with path.open("a", encoding="utf-8") as f:
                        f.write(line)
        except OSError:
            # stdout stays the primary sink
            pass
        return event_dict


_files = _LogFiles(Path(os.getenv("EVENTPROBE_LOG_DIR", "artifacts/logs")))


def _drop_none_values(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    return {k: v for k, v in event_dict.items() if v is not None}


def _clip_bulky_values(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Replace oversized payload/pattern values with a clipped JSON rendering."""
    limit = _bulky_limit_from_env()
    for key in _BULKY_KEYS:
        if key not in event_dict:
            continue
        rendered = json.dumps(event_dict[key], ensure_ascii=False, default=str)
        if len(rendered) > limit:
            event_dict[key] = f"{rendered[:limit]}... ({len(rendered)} chars)"
    return event_dict


def current_test_log_path(test_name: str | None = None) -> Path:
    """Log file of the given test, or framework.log when no test name is known."""
    if not test_name:
        return _files.framework_log
    return _files.test_log(str(test_name))


def bind_context(*, test_name: str | None = None, **extra: Any) -> None:
    """Bind the current test name (and any extra keys) into the logging context."""
    bind_contextvars(test=test_name, **extra)


_CONFIGURED = False


def setup_logging() -> None:
    """
    Configure structlog once: JSON lines on stdout, mirrored into the log directory.

    Records carry the level, an ISO timestamp, the calling module and the bound
    context (test name). Values of "payload" and "pattern" longer than
    EVENTPROBE_LOG_PAYLOAD_LIMIT characters are clipped.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    level = _level_from_env()
    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            structlog.processors.CallsiteParameterAdder(
                [structlog.processors.CallsiteParameter.MODULE]
            ),
            _drop_none_values,
            _clip_bulky_values,
            _files,
            structlog.processors.JSONRenderer(default=str),
        ],
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    logging.getLogger().setLevel(level)
    _CONFIGURED = True


def get_logger(name: str | None = None) -> Any:
    """Structlog logger; configures logging on first use outside the pytest plugin."""
    if not _CONFIGURED:
        setup_logging()
    return structlog.get_logger(name or __name__)


__all__ = [
    "setup_logging",
    "bind_context",
    "current_test_log_path",
    "get_logger",
    "clear_contextvars",
]
