from __future__ import annotations

from collections.abc import Generator

import pytest

from ..config.loader import load_settings
from ..config.models import Settings
from ..network.event_server import BatchHttpServer
from ..network.event_verifier import EventVerifier
from ..network.events import EventStore
from ..reporting.manager import ReportManager
from ..utils.logging import bind_context, clear_contextvars, get_logger, setup_logging
from ..utils.net import get_free_port, is_listening

_logger = get_logger(__name__)


@pytest.fixture(scope="session")
def settings(pytestconfig: pytest.Config) -> Settings:
    """
    Load configuration once per session.

    Supports overriding the configuration file path and the default event timeout
    via command-line options:
      --config <path>
      --event-timeout <sec>
    """
    cfg_path: str | None = pytestconfig.getoption("--config")
    s: Settings = load_settings(cfg_path)

    override_timeout: float | None = pytestconfig.getoption("--event-timeout")
    if override_timeout is not None:
        s.events.timeout_sec = override_timeout

    return s


@pytest.fixture(scope="session")
def report_manager(settings: Settings) -> ReportManager:
    """Create the ReportManager for event check artifacts."""
    rm = ReportManager(settings.reporting)
    ReportManager.set_default(rm)
    return rm


@pytest.fixture(scope="function")
def events() -> EventStore:
    """
    Provide a fresh EventStore for each test function.

    A new store per test is the per-test reset: nothing captured by a previous test
    is visible, and the consumption ledger starts empty.
    """
    return EventStore()


@pytest.fixture(scope="function")
def event_verifier(
    events: EventStore, settings: Settings, report_manager: ReportManager
) -> Generator[EventVerifier, None, None]:
    """
    Provide an EventVerifier bound to the same EventStore that event_server writes to.

    On teardown all background checks started with check_has_event_async() are joined
    (bounded by events.join_timeout_sec); a failed check fails the test.
    """
    verifier = EventVerifier(
        events,
        default_timeout=settings.events.timeout_sec,
        polling_interval=settings.events.polling_interval,
        report_manager=report_manager,
    )
    yield verifier

    if not settings.events.await_on_teardown:
        if verifier.scheduler.pending:
            _logger.warning(
                "background_event_checks_not_joined", pending=verifier.scheduler.pending
            )
        return

    verifier.await_all_event_checks(settings.events.join_timeout_sec)


@pytest.fixture(scope="function")
def event_server(settings: Settings, events: EventStore) -> Generator[str, None, None]:
    """
    HTTP endpoint receiving analytics batches for the current test.

    - Started before the test and stopped afterwards.
    - Each element of an "events" envelope is stored in `events` as a separate event.

    Yields the base URL, e.g. "http://127.0.0.1:<port>".
    """
    cfg = settings.server
    if not cfg.enabled:
        pytest.skip("event server is disabled in configuration")

    port = cfg.port
    if not port or is_listening(cfg.host, port):
        if port:
            _logger.warning("event_server_port_busy", port=port)
        port = get_free_port()

    srv = BatchHttpServer(cfg.host, port, events, paths=cfg.paths)
    srv.start()
    try:
        yield srv.url
    finally:
        srv.stop()


# ----- Logging: initialization and context -----
@pytest.fixture(scope="session", autouse=True)
def _setup_structlog() -> None:
    """One-time structured logging setup for the entire test session."""
    setup_logging()


@pytest.fixture(autouse=True)
def _bind_test_logging_context(request: pytest.FixtureRequest) -> Generator[None, None, None]:
    """Bind the test name to the logging context for the duration of the test."""
    bind_context(test_name=request.node.name)
    try:
        yield
    finally:
        clear_contextvars()
