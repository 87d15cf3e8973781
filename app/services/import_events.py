"""
app/services/import_events.py

Analytics events emitted by the destination import pipeline.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class ImportEvent:
    UPLOAD_INITIATED = "csv_upload_initiated"
    VALIDATION_COMPLETED = "csv_validation_completed"
    DESTINATIONS_IMPORTED = "destinations_imported"
    ERRORS_REPORTED = "import_errors_reported"


class ImportEventSink(Protocol):
    def emit(self, event: str, properties: dict[str, Any]) -> None:
        ...


class LoggingImportEventSink:
    """
    Writes each event as one JSON log line.
    """

    def __init__(self, event_logger: logging.Logger | None = None, *, level: int = logging.INFO) -> None:
        self._logger = event_logger or logger
        self._level = level

    def emit(self, event: str, properties: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(self._level):
            return
        self._logger.log(self._level, "%s", format_event_line(event, properties))


def format_event_line(event: str, properties: dict[str, Any]) -> str:
    """
    Event name plus properties as sorted JSON; values JSON cannot encode are
    rendered with str().
    """

    return json.dumps({"event": event, **properties}, default=str, sort_keys=True, ensure_ascii=False)


@dataclass(frozen=True)
class RecordedEvent:
    name: str
    properties: dict[str, Any] = field(default_factory=dict)


class RecordingImportEventSink:
    """
    Keeps emitted events in memory.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[RecordedEvent] = []

    def emit(self, event: str, properties: dict[str, Any]) -> None:
        with self._lock:
            self._events.append(RecordedEvent(name=event, properties=dict(properties)))

    @property
    def events(self) -> list[RecordedEvent]:
        with self._lock:
            return list(self._events)

    def names(self) -> list[str]:
        return [event.name for event in self.events]
