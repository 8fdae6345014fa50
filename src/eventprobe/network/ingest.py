from __future__ import annotations

import json
from typing import Any

from eventprobe.utils.logging import get_logger

from .events import EventStore, RequestInfo

logger = get_logger(__name__)

BATCH_EVENT_NAME = "BATCH"
UNKNOWN_EVENT_NAME = "UNKNOWN"


class JsonEventIngestor:
    """
    Normalizes raw analytics payloads into named events and appends them to an EventStore.

    Supported formats:

    1) Analytics envelope:
       {
         "meta": {...},
         "events": [
           { "name": ..., "event_time": ..., "data": {...} },
           ...
         ]
       }

       Every element becomes its own event named by its "name", with payload
       {"meta": <meta>, "event": <element>} so that patterns can refer to both.

    2) Any other JSON document becomes a single "BATCH" event with the decoded body.

    3) Text that is not JSON becomes a single "BATCH" event with the raw text as payload.

    Every appended event keeps the RequestInfo it arrived with, if any.

    Ingestion never raises: the capture side must not be disturbed by bad payloads.
    """

    def __init__(self, store: EventStore) -> None:
        self.store = store

    def ingest(
        self,
        raw: str | bytes | dict[str, Any],
        *,
        request: RequestInfo | None = None,
    ) -> list[int]:
        """Decode one request body and return the ids of the appended events."""
        ids: list[int] = []
        source = f"{request.remote_address}{request.uri}" if request else None
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8", errors="replace")
            try:
                data = json.loads(raw) if isinstance(raw, str) else raw
            except (ValueError, RecursionError):
                ids.append(self.store.append(BATCH_EVENT_NAME, raw, request=request))
                logger.debug("ingest_raw_body", source=source, size=len(raw))
                return ids

            if isinstance(data, dict) and isinstance(data.get("events"), list):
                meta = data.get("meta")
                for item in data["events"]:
                    name = UNKNOWN_EVENT_NAME
                    event_time = None
                    if isinstance(item, dict):
                        name = str(item.get("name") or UNKNOWN_EVENT_NAME)
                        event_time = item.get("event_time")
                    ids.append(
                        self.store.append(
                            name,
                            {"meta": meta, "event": item},
                            event_time=str(event_time) if event_time else None,
                            request=request,
                        )
                    )
            else:
                ids.append(self.store.append(BATCH_EVENT_NAME, data, request=request))
        except Exception as e:
            logger.warning("failed_to_ingest_event", source=source, error=str(e))

        logger.info("batch_ingested", source=source, count=len(ids))
        return ids
