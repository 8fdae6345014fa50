from __future__ import annotations

import os
from typing import Any

import allure

from eventprobe.utils.logging import current_test_log_path, get_logger

_logger = get_logger(__name__)


def pytest_runtest_makereport(item: Any, call: Any) -> None:
    """
    Pytest hook: called after each test phase (setup, call, teardown).

    When the test body or its teardown (where background event checks are joined)
    fails, attaches the tail of the current test log to the Allure report.
    """
    if getattr(call, "when", None) not in ("call", "teardown"):
        return
    if getattr(call, "excinfo", None) is None:
        return

    path = current_test_log_path(getattr(item, "name", None))
    content = ""
    try:
        if os.path.exists(path):
            with open(path, encoding="utf-8", errors="ignore") as f:
                # Last 200 lines keep the report readable
                content = "".join(f.readlines()[-200:])
    except OSError:
        content = ""

    if content:
        try:
            allure.attach(
                content,
                name="Recent logs",
                attachment_type=allure.attachment_type.TEXT,
            )
        except Exception as e:
            _logger.warning("log_attach_failed", error=str(e))
