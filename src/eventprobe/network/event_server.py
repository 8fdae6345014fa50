from __future__ import annotations

import threading
from collections.abc import Iterable
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, cast
from urllib.parse import urlsplit

from eventprobe.utils.logging import get_logger

from .events import EventStore, RequestInfo
from .ingest import JsonEventIngestor

logger = get_logger(__name__)

DEFAULT_BATCH_PATHS: tuple[str, ...] = ("/event", "/m/batch")


class _EventStoreHTTPServer(ThreadingHTTPServer):
    """ThreadingHTTPServer carrying the ingestor and accepted paths for its handlers."""

    daemon_threads = True

    def __init__(
        self,
        server_address: tuple[str, int],
        RequestHandlerClass: type[BaseHTTPRequestHandler],  # noqa: N803 (arg name from base)
        ingestor: JsonEventIngestor,
        paths: Iterable[str],
    ) -> None:
        super().__init__(server_address, RequestHandlerClass)
        self.ingestor = ingestor
        self.paths = frozenset(paths)


class _BatchHandler(BaseHTTPRequestHandler):
    """Receives analytics batches on the configured POST paths."""

    def log_message(self, fmt: str, *args: Any) -> None:  # noqa: A003 - base class API
        logger.debug("http_access_log", message=fmt % args)

    def do_POST(self) -> None:  # noqa: N802 - method name defined by base class
        try:
            parsed = urlsplit(self.path)
            server = cast(_EventStoreHTTPServer, self.server)
            if parsed.path not in server.paths:
                self._send_text(404, "Not Found")
                return

            try:
                length = int(self.headers.get("Content-Length") or "0")
            except ValueError:
                length = 0
            body = self.rfile.read(length) if length > 0 else b""

            headers: dict[str, list[str]] = {}
            for key in self.headers.keys():
                headers.setdefault(str(key), [str(v) for v in self.headers.get_all(key) or []])
            request = RequestInfo(
                uri=parsed.path,
                remote_address=f"{self.client_address[0]}:{self.client_address[1]}",
                headers=headers,
                query=parsed.query or None,
            )
            server.ingestor.ingest(body, request=request)
            self._send_text(200, "OK")
        except Exception as e:
            logger.exception("batch_handler_error", error=str(e))
            try:
                self._send_text(500, "Internal Server Error")
            except OSError:
                pass

    def do_GET(self) -> None:  # noqa: N802 - method name defined by base class
        if urlsplit(self.path).path == "/health":
            self._send_text(200, "OK")
        else:
            self._send_text(404, "Not Found")

    def _send_text(self, code: int, text: str) -> None:
        data = text.encode("utf-8")
        self.send_response(code)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)


class BatchHttpServer:
    """Local capture endpoint feeding an EventStore; start/stop per test."""

    def __init__(
        self,
        host: str,
        port: int,
        store: EventStore,
        *,
        paths: Iterable[str] = DEFAULT_BATCH_PATHS,
    ) -> None:
        self._server = _EventStoreHTTPServer(
            (host, port), _BatchHandler, JsonEventIngestor(store), paths
        )
        self._thread: threading.Thread | None = None

    @property
    def address(self) -> tuple[str, int]:
        return cast(tuple[str, int], self._server.server_address[:2])

    @property
    def url(self) -> str:
        host, port = self.address
        return f"http://{host}:{port}"

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="BatchHttpServer", daemon=True
        )
        self._thread.start()
        logger.info("event_server_started", host=self.address[0], port=self.address[1])

    def stop(self) -> None:
        try:
            self._server.shutdown()
            self._server.server_close()
        finally:
            if self._thread:
                self._thread.join(timeout=5)
                self._thread = None
            logger.info("event_server_stopped")


__all__ = ["BatchHttpServer", "DEFAULT_BATCH_PATHS"]
