from __future__ import annotations

import socket
from typing import cast


def is_listening(host: str, port: int, timeout: float = 0.6) -> bool:
    """Check that (host, port) accepts TCP connections."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def get_free_port() -> int:
    """
    Find a free TCP port on localhost.

    Opens a temporary socket bound to ("127.0.0.1", 0) to obtain an available port.
    Note: a race condition is possible between returning the value and actual use.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        addr_port = cast(tuple[str, int], s.getsockname())
        return addr_port[1]
