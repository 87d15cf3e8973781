from __future__ import annotations

import json
import logging
from datetime import date

import pytest

from app.config import get_destination_import_settings, get_image_probe_settings
from app.services.import_events import ImportEvent, LoggingImportEventSink, format_event_line


@pytest.fixture()
def fresh_settings():
    get_destination_import_settings.cache_clear()
    get_image_probe_settings.cache_clear()
    yield
    get_destination_import_settings.cache_clear()
    get_image_probe_settings.cache_clear()


def test_import_settings_read_environment(monkeypatch, fresh_settings) -> None:
    monkeypatch.setenv("DESTINATION_IMPORT_MAX_ROWS", "250")
    monkeypatch.setenv("DESTINATION_IMPORT_MAX_MOOD_TAGS", "4")
    monkeypatch.setenv("DESTINATION_IMPORT_MAX_WORKERS", "not-a-number")
    monkeypatch.setenv("DESTINATION_IMPORT_LOG_VALIDATION_ERRORS", "off")
    monkeypatch.delenv("DESTINATION_IMPORT_RECOMMENDED_MOOD_TAGS", raising=False)

    settings = get_destination_import_settings()

    assert settings.max_rows == 250
    assert settings.max_mood_tags == 4
    assert settings.recommended_mood_tags == 4
    assert settings.max_workers == 8
    assert settings.log_validation_errors is False


def test_probe_timeout_has_a_floor(monkeypatch, fresh_settings) -> None:
    monkeypatch.setenv("IMAGE_PROBE_TIMEOUT_SECONDS", "0")
    monkeypatch.setenv("IMAGE_PROBE_USER_AGENT", "   ")

    settings = get_image_probe_settings()

    assert settings.timeout_seconds == 0.5
    assert settings.user_agent == "destination-import/1.0"


def test_logging_event_sink_writes_json(caplog) -> None:
    sink = LoggingImportEventSink(logging.getLogger("destination.events"))

    with caplog.at_level(logging.INFO, logger="destination.events"):
        sink.emit(ImportEvent.DESTINATIONS_IMPORTED, {"inserted": 2, "file_name": "จตุจักร.csv"})

    [record] = caplog.records
    assert json.loads(record.getMessage()) == {
        "event": "destinations_imported",
        "file_name": "จตุจักร.csv",
        "inserted": 2,
    }


def test_event_line_stringifies_unencodable_values() -> None:
    line = format_event_line(ImportEvent.VALIDATION_COMPLETED, {"run_date": date(2026, 10, 18), "error_rows": 0})

    assert line == '{"error_rows": 0, "event": "csv_validation_completed", "run_date": "2026-10-18"}'


def test_logging_event_sink_respects_level(caplog) -> None:
    sink = LoggingImportEventSink(logging.getLogger("destination.events"), level=logging.DEBUG)

    with caplog.at_level(logging.INFO, logger="destination.events"):
        sink.emit(ImportEvent.UPLOAD_INITIATED, {"file_size_bytes": 10})

    assert caplog.records == []
