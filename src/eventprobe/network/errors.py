from __future__ import annotations

import json
from typing import Any


class EventCheckError(AssertionError):
    """Base class of event check failures; pytest reports them as assertion failures."""


class EventNotFoundError(EventCheckError):
    """
    No event with the given name (and pattern) was consumed before the timeout.

    Raised by synchronous checks; fatal to the calling step.
    """

    def __init__(
        self,
        name: str,
        pattern: Any | None,
        timeout_sec: float,
        *,
        elapsed_sec: float,
        candidates: int,
        last_candidate: Any | None = None,
    ) -> None:
        self.name = name
        self.pattern = pattern
        self.timeout_sec = timeout_sec
        self.elapsed_sec = elapsed_sec
        self.candidates = candidates
        # Last same-name unconsumed event that did not match, for diagnostics
        self.last_candidate = last_candidate
        msg = f"Expected event '{name}'"
        if pattern is not None:
            msg += f" with data {json.dumps(pattern, ensure_ascii=False)}"
        msg += (
            f" was not found within {timeout_sec}s"
            f" (elapsed {elapsed_sec:.2f}s, unconsumed '{name}' events on last poll: {candidates})"
        )
        super().__init__(msg)


class AsyncCheckFailure(EventCheckError):
    """
    Failure of a background event check.

    Buffered by the scheduler and raised only when the checks are joined.
    """

    def __init__(self, message: str, *, name: str, pattern: Any | None = None) -> None:
        super().__init__(message)
        self.name = name
        self.pattern = pattern


class MalformedPatternError(ValueError):
    """The supplied pattern (JSON text or file) is not a JSON object."""
