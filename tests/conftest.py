"""
Shared fixtures for the destination import tests.

Everything here is in-process: a static image probe, an in-memory sink and
status store, and a clock that only moves when a test advances it.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import DestinationImportSettings
from app.connectors.image_probe import StaticImageProbe
from app.services.destination_import_service import DestinationImportService
from app.services.import_events import RecordingImportEventSink
from app.services.import_status_store import InMemoryImportStatusStore
from app.storage.memory_storage import InMemoryDestinationSink
from app.validators.destination_schema import REQUIRED_COLUMNS
from db.base import Base
from db.session import build_session_factory

import db.models  # noqa: F401  registers tables on Base.metadata

VALID_ROW: dict[str, str] = {
    "name_th": "จตุจักร วีคเอนด์ มาร์เก็ต",
    "name_en": "Chatuchak Weekend Market",
    "description_th": "ตลาดนัดที่ใหญ่ที่สุดในไทย",
    "description_en": "Largest weekend market in Thailand",
    "category": "market",
    "budget_band": "mid",
    "district": "Chatuchak",
    "lat": "13.7995",
    "lng": "100.5497",
    "mood_tags": "foodie,cultural,social",
    "image_url": "https://images.unsplash.com/chatuchak",
    "instagram_score": "9",
    "opening_hours": '{"sat":"09:00-18:00","sun":"09:00-18:00"}',
    "transport_access": "bts_mrt",
    "is_active": "true",
}


class FakeClock:
    """Monotonic clock stand-in; returns ``now`` until advanced."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_row(**overrides: Any) -> dict[str, str]:
    row = dict(VALID_ROW)
    row.update({key: str(value) for key, value in overrides.items()})
    return row


def make_csv(
    rows: Iterable[Mapping[str, str]],
    columns: Sequence[str] = REQUIRED_COLUMNS,
) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(columns)
    for row in rows:
        writer.writerow([row.get(column, "") for column in columns])
    return buffer.getvalue().encode("utf-8")


@pytest.fixture()
def valid_row_values() -> Callable[..., dict[str, str]]:
    return make_row


@pytest.fixture()
def build_csv() -> Callable[..., bytes]:
    return make_csv


@pytest.fixture()
def settings() -> DestinationImportSettings:
    return DestinationImportSettings(max_workers=4)


@pytest.fixture()
def image_probe() -> StaticImageProbe:
    return StaticImageProbe()


@pytest.fixture()
def sink() -> InMemoryDestinationSink:
    return InMemoryDestinationSink()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def status_store(clock: FakeClock) -> InMemoryImportStatusStore:
    return InMemoryImportStatusStore(default_ttl_seconds=3600, clock=clock)


@pytest.fixture()
def event_sink() -> RecordingImportEventSink:
    return RecordingImportEventSink()


@pytest.fixture()
def service(
    image_probe: StaticImageProbe,
    sink: InMemoryDestinationSink,
    status_store: InMemoryImportStatusStore,
    event_sink: RecordingImportEventSink,
    settings: DestinationImportSettings,
    clock: FakeClock,
) -> DestinationImportService:
    return DestinationImportService(
        image_probe=image_probe,
        index_provider=sink,
        sink=sink,
        status_store=status_store,
        event_sink=event_sink,
        settings=settings,
        clock=clock,
    )


@pytest.fixture()
def session_factory() -> Iterator[sessionmaker[Session]]:
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    try:
        yield build_session_factory(engine)
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()
