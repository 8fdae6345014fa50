import pytest


def pytest_addoption(parser: pytest.Parser) -> None:
    """
    Registers custom command-line (CLI) options for pytest.

      --config <path>          : Path to the YAML configuration file.
      --event-timeout <sec>    : Override of the default event check timeout.
    """
    g = parser.getgroup("eventprobe")
    g.addoption("--config", action="store", default=None, help="Path to YAML configuration file")
    g.addoption(
        "--event-timeout",
        action="store",
        type=float,
        default=None,
        help="Default timeout of event checks, in seconds",
    )
