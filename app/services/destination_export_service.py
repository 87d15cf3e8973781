"""
app/services/destination_export_service.py

CSV template generation and destination export.

Exports are flat: one row per destination with mood tags joined by commas,
opening hours as a JSON string and booleans as ``true``/``false``, so a CSV
export of valid destinations can be fed back into the importer.
"""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from app.schemas.destination_import import DestinationFilters, ExportOptions
from app.storage.memory_storage import StoredDestination
from app.validators.destination_schema import REQUIRED_COLUMNS
from db.models.destination import Destination

EXPORT_FIELDS: tuple[str, ...] = ("id", *REQUIRED_COLUMNS, "created_at", "updated_at")

TEMPLATE_SAMPLE_ROW: tuple[str, ...] = (
    "จตุจักร วีคเอนด์ มาร์เก็ต",
    "Chatuchak Weekend Market",
    "ตลาดนัดที่ใหญ่ที่สุดในไทย",
    "Largest weekend market in Thailand",
    "market",
    "mid",
    "Chatuchak",
    "13.7995",
    "100.5497",
    "foodie,cultural,social",
    "https://images.unsplash.com/chatuchak",
    "9",
    '{"sat":"09:00-18:00","sun":"09:00-18:00"}',
    "bts_mrt",
    "true",
)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
JSON_MEDIA_TYPE = "application/json"


class ExportFieldError(ValueError):
    """
    Raised when selected fields name columns that cannot be exported.
    """


@dataclass(frozen=True)
class DestinationExport:
    content: str
    media_type: str
    file_name: str
    count: int


def generate_csv_template() -> str:
    """
    Canonical header line followed by one fully quoted sample row.
    """

    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(REQUIRED_COLUMNS)
    csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="").writerow(TEMPLATE_SAMPLE_ROW)
    return buffer.getvalue()


def template_file_name(today: date | None = None) -> str:
    return f"destinations_template_{(today or _today()).isoformat()}.csv"


def export_row_from_model(destination: Destination) -> dict[str, Any]:
    return {
        "id": str(destination.id),
        "name_th": destination.name_th,
        "name_en": destination.name_en,
        "description_th": destination.description_th,
        "description_en": destination.description_en,
        "category": destination.category,
        "budget_band": destination.budget_band,
        "district": destination.district,
        "lat": destination.lat,
        "lng": destination.lng,
        "mood_tags": list(destination.mood_tags or []),
        "image_url": destination.image_url,
        "instagram_score": destination.instagram_score,
        "opening_hours": dict(destination.opening_hours or {}),
        "transport_access": destination.transport_access,
        "is_active": destination.is_active,
        "created_at": destination.created_at,
        "updated_at": destination.updated_at,
    }


def export_row_from_stored(record: StoredDestination) -> dict[str, Any]:
    return {
        "id": record.id,
        **record.candidate.to_dict(),
        "created_at": None,
        "updated_at": None,
    }


def export_destinations(
    records: Iterable[Mapping[str, Any]],
    options: ExportOptions | None = None,
    *,
    today: date | None = None,
) -> DestinationExport:
    """
    Filter export rows and render them as CSV or JSON.

    Raises ExportFieldError when ``selected_fields`` names unknown columns.
    """

    resolved = options or ExportOptions()
    fields = _resolve_fields(resolved.selected_fields)
    rows = [
        record
        for record in records
        if (resolved.include_inactive or record.get("is_active"))
        and _matches_filters(record, resolved.filters)
    ]
    stamp = (today or _today()).isoformat()

    if resolved.format == "json":
        payload = [{name: _json_value(row.get(name)) for name in fields} for row in rows]
        return DestinationExport(
            content=json.dumps(payload, ensure_ascii=False, indent=2),
            media_type=JSON_MEDIA_TYPE,
            file_name=f"destinations_export_{stamp}.json",
            count=len(rows),
        )

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=fields, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({name: _csv_value(row.get(name)) for name in fields})
    return DestinationExport(
        content=buffer.getvalue(),
        media_type=CSV_MEDIA_TYPE,
        file_name=f"destinations_export_{stamp}.csv",
        count=len(rows),
    )


def _resolve_fields(selected: list[str] | None) -> list[str]:
    if not selected:
        return list(REQUIRED_COLUMNS)

    unknown = [name for name in selected if name not in EXPORT_FIELDS]
    if unknown:
        raise ExportFieldError(
            f"Unknown export fields: {', '.join(unknown)}. Allowed fields: {', '.join(EXPORT_FIELDS)}."
        )
    return list(dict.fromkeys(selected))


def _matches_filters(record: Mapping[str, Any], filters: DestinationFilters | None) -> bool:
    if filters is None:
        return True
    if filters.category and record.get("category") != filters.category:
        return False
    if filters.district and record.get("district") != filters.district:
        return False
    if filters.budget_band and record.get("budget_band") != filters.budget_band:
        return False
    if filters.mood_tags:
        tags = set(record.get("mood_tags") or ())
        if not tags.intersection(filters.mood_tags):
            return False
    if filters.is_active is not None and record.get("is_active") is not filters.is_active:
        return False
    return True


def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    if isinstance(value, Mapping):
        return json.dumps(dict(value), ensure_ascii=False, separators=(",", ":"))
    if isinstance(value, datetime):
        return _iso(value)
    return str(value)


def _json_value(value: Any) -> Any:
    if isinstance(value, tuple):
        return list(value)
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, datetime):
        return _iso(value)
    return value


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _today() -> date:
    return datetime.now(timezone.utc).date()
