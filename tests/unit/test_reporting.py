from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from eventprobe.config.models import ReportingSettings
from eventprobe.reporting.manager import ReportManager


@pytest.fixture
def attached(monkeypatch: pytest.MonkeyPatch) -> dict[str, Any]:
    calls: dict[str, Any] = {}

    def fake_attach(body: Any, name: str, attachment_type: Any) -> None:
        calls[name] = body

    monkeypatch.setattr("eventprobe.reporting.manager.allure.attach", fake_attach)
    return calls


def test_failure_attaches_expected_actual_and_diff(
    tmp_path: Path, attached: dict[str, Any]
) -> None:
    rm = ReportManager(ReportingSettings(allure_dir=str(tmp_path / "allure")))
    rm.attach_event_artifacts(
        expected={"price": "~120"},
        actual='{"price": "99"}',
        name_prefix="event_check(purchase)",
        when="failure",
    )

    assert (tmp_path / "allure").is_dir()
    assert '"price": "~120"' in attached["event_check(purchase) expected.json"]
    # JSON strings are expanded for readability
    assert '"price": "99"' in attached["event_check(purchase) actual.json"]
    assert attached["event_check(purchase) diff.txt"].startswith("--- expected")


def test_policy_disables_success_attachments(tmp_path: Path, attached: dict[str, Any]) -> None:
    rm = ReportManager(
        ReportingSettings(allure_dir=str(tmp_path), attach_events_on_success=False)
    )
    rm.attach_event_artifacts(expected=None, actual={"a": 1}, name_prefix="x", when="success")
    assert attached == {}


def test_attach_errors_are_not_propagated(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken_attach(*args: Any, **kwargs: Any) -> None:
        raise RuntimeError("allure is broken")

    monkeypatch.setattr("eventprobe.reporting.manager.allure.attach", broken_attach)
    rm = ReportManager(ReportingSettings(allure_dir=str(tmp_path)))
    rm.attach_event_artifacts(expected={"a": 1}, actual=None, name_prefix="x", when="failure")
