import logging
import os
import threading
from collections import deque
from typing import Any, Dict, List, Optional

from safeharbor.events import EventSink
from .db import Database, SqliteEventLog


class StructuredLogEventSink(EventSink):
    """Writes each event as one structured log line.
    Keeps the most recent events in memory so /events still answers; the
    durable copy is whatever the log pipeline ships.
    """
    def __init__(self, logger_name: str = "safeharbor.events", retain: int = 1000):
        self._logger = logging.getLogger(logger_name)
        self._recent = deque(maxlen=retain)
        self._lock = threading.Lock()

    def emit(self, event) -> None:
        body = event.to_dict()
        record = self._logger.makeRecord(
            self._logger.name, logging.INFO, "", 0, f"{body['event_type']}", (), None
        )
        record.extra_fields = body
        self._logger.handle(record)
        with self._lock:
            self._recent.append(body)

    def query(self, event_type: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        with self._lock:
            results = [e for e in self._recent if event_type is None or e["event_type"] == event_type]
        return list(reversed(results))[:limit]


def get_event_backend(db: Database, backend: Optional[str] = None) -> EventSink:
    backend = backend or os.getenv("SAFEHARBOR_EVENT_BACKEND", "sqlite_hash_chain")
    if backend == "structured_log":
        retain = int(os.getenv("SAFEHARBOR_EVENT_RETAIN", "1000"))
        return StructuredLogEventSink(retain=retain)
    return SqliteEventLog(db)
