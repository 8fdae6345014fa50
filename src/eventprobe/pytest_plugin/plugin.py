"""pytest entry point: registers eventprobe options, hooks and fixtures."""

from .fixtures import (  # noqa: F401
    _bind_test_logging_context,
    _setup_structlog,
    event_server,
    event_verifier,
    events,
    report_manager,
    settings,
)
from .hooks import pytest_runtest_makereport  # noqa: F401
from .options import pytest_addoption  # noqa: F401
