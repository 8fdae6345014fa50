from __future__ import annotations

import json
from difflib import unified_diff
from pathlib import Path
from typing import Any, ClassVar, Literal

import allure

from ..config.models import ReportingSettings
from ..utils.logging import get_logger

_log = get_logger(__name__)


def _pretty(value: Any) -> str:
    """Indented JSON of a decoded value; JSON strings are expanded first."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return value
    try:
        return json.dumps(value, ensure_ascii=False, indent=2, default=str)
    except (TypeError, ValueError):
        return str(value)


class ReportManager:
    """
    Attaches event check artifacts (expected pattern, actual event, diff) to Allure.

    Attachment policy comes from ReportingSettings. Reporting problems are logged
    and never mask the outcome of the check itself.
    """

    _default: ClassVar[ReportManager | None] = None

    def __init__(self, reporting: ReportingSettings | None = None) -> None:
        self.settings = reporting or ReportingSettings()
        self.dir = Path(self.settings.allure_dir)
        self.dir.mkdir(parents=True, exist_ok=True)

    # ----- Singleton management -----
    @classmethod
    def get_default(cls) -> ReportManager:
        """Return the global ReportManager instance, creating it if necessary."""
        if cls._default is None:
            cls._default = ReportManager()
        return cls._default

    @classmethod
    def set_default(cls, manager: ReportManager) -> None:
        """Set the global ReportManager instance (used by fixtures)."""
        cls._default = manager

    # ----- Public methods -----
    def attach_event_artifacts(
        self,
        *,
        expected: Any | None,
        actual: Any | None,
        name_prefix: str,
        when: Literal["success", "failure"],
    ) -> None:
        """
        Attach what was expected and what was actually seen for an event check.

        Args:
            expected: Pattern (decoded) or None when matching by name only.
            actual: Payload of the matched (or last seen) event, if any.
            name_prefix: Prefix of attachment names, e.g. "event_check(purchase)".
            when: Outcome of the check; gated by settings.
        """
        if when == "success" and not self.settings.attach_events_on_success:
            return
        if when == "failure" and not self.settings.attach_events_on_fail:
            return

        try:
            exp_str = _pretty(expected) if expected is not None else None
            act_str = _pretty(actual) if actual is not None else None

            if exp_str is not None:
                allure.attach(
                    exp_str,
                    name=f"{name_prefix} expected.json",
                    attachment_type=allure.attachment_type.JSON,
                )
            if act_str is not None:
                allure.attach(
                    act_str,
                    name=f"{name_prefix} actual.json",
                    attachment_type=allure.attachment_type.JSON,
                )
            if when == "failure" and exp_str is not None and act_str is not None:
                diff = "".join(
                    unified_diff(
                        exp_str.splitlines(True),
                        act_str.splitlines(True),
                        fromfile="expected",
                        tofile="actual",
                    )
                )
                if diff:
                    allure.attach(
                        diff,
                        name=f"{name_prefix} diff.txt",
                        attachment_type=allure.attachment_type.TEXT,
                    )
        except Exception as e:
            _log.warning("event_artifacts_attach_failed", prefix=name_prefix, error=str(e))
