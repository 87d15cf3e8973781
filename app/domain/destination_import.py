"""
app/domain/destination_import.py

Domain models used by the destination import pipeline.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

FILE_FIELD = "file"
OPTIONS_FIELD = "options"


class Severity:
    ERROR = "error"
    WARNING = "warning"


class RowStatus:
    VALID = "valid"
    WARNING = "warning"
    ERROR = "error"


class DuplicateAction:
    SKIP = "skip"
    OVERWRITE = "overwrite"


@dataclass(frozen=True)
class RawRow:
    """
    One tokenized data line: column name -> raw string, in header order.
    """

    row_number: int
    values: Mapping[str, str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def get(self, column: str) -> str | None:
        return self.values.get(column)

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(self.values.keys())

    def to_dict(self) -> dict[str, str]:
        return dict(self.values)


@dataclass(frozen=True)
class ValidationIssue:
    """
    One row- or file-level validation finding.
    """

    row: int
    field: str
    message: str
    value: Any = None
    severity: str = Severity.ERROR

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row,
            "field": self.field,
            "message": self.message,
            "value": self.value,
            "severity": self.severity,
        }


@dataclass(frozen=True)
class ExistingMatch:
    """
    Identity of a stored destination that collides with an incoming row.
    """

    id: str
    name_en: str
    name_th: str


@dataclass(frozen=True)
class DestinationCandidate:
    """
    Fully typed destination row produced by schema validation.
    """

    name_th: str
    name_en: str
    description_th: str
    description_en: str
    category: str
    budget_band: str
    district: str
    lat: float
    lng: float
    mood_tags: tuple[str, ...]
    image_url: str
    instagram_score: int
    opening_hours: Mapping[str, str]
    transport_access: str
    is_active: bool

    def __post_init__(self) -> None:
        object.__setattr__(self, "mood_tags", tuple(self.mood_tags))
        object.__setattr__(self, "opening_hours", MappingProxyType(dict(self.opening_hours)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name_th": self.name_th,
            "name_en": self.name_en,
            "description_th": self.description_th,
            "description_en": self.description_en,
            "category": self.category,
            "budget_band": self.budget_band,
            "district": self.district,
            "lat": self.lat,
            "lng": self.lng,
            "mood_tags": list(self.mood_tags),
            "image_url": self.image_url,
            "instagram_score": self.instagram_score,
            "opening_hours": dict(self.opening_hours),
            "transport_access": self.transport_access,
            "is_active": self.is_active,
        }


RowData = Union[DestinationCandidate, RawRow]


def resolve_row_status(
    errors: tuple[ValidationIssue, ...],
    warnings: tuple[ValidationIssue, ...],
) -> str:
    if errors:
        return RowStatus.ERROR
    if warnings:
        return RowStatus.WARNING
    return RowStatus.VALID


@dataclass(frozen=True)
class RowPreview:
    """
    Validation outcome for one row. Status is derived from the issue lists.
    """

    row: int
    data: RowData
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()
    is_duplicate: bool = False
    existing_match: ExistingMatch | None = None
    status: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "warnings", tuple(self.warnings))
        object.__setattr__(self, "status", resolve_row_status(self.errors, self.warnings))

    @property
    def candidate(self) -> DestinationCandidate | None:
        if isinstance(self.data, DestinationCandidate):
            return self.data
        return None


@dataclass(frozen=True)
class DuplicateEntry:
    """
    A row whose identity already exists in the store.
    """

    row: int
    existing_id: str
    name_en: str
    name_th: str
    action: str = DuplicateAction.SKIP


@dataclass(frozen=True)
class ImportSummary:
    """
    End-of-run import counts.
    """

    total_rows: int
    successful_rows: int
    error_rows: int
    warning_rows: int
    duplicate_rows: int
    skipped_rows: int
    processing_time_ms: int


@dataclass(frozen=True)
class ImportResult:
    """
    Single return value of one pipeline run.
    """

    summary: ImportSummary
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    duplicates: list[DuplicateEntry] = field(default_factory=list)
    preview: list[RowPreview] | None = None
    import_id: str | None = None

    @property
    def success(self) -> bool:
        return not self.errors

    @classmethod
    def file_failure(
        cls,
        *,
        message: str,
        processing_time_ms: int,
        value: Any = None,
        field_name: str = FILE_FIELD,
    ) -> "ImportResult":
        """
        Result for a run aborted before (or instead of) row processing.
        """

        return cls(
            summary=ImportSummary(
                total_rows=0,
                successful_rows=0,
                error_rows=0,
                warning_rows=0,
                duplicate_rows=0,
                skipped_rows=0,
                processing_time_ms=processing_time_ms,
            ),
            errors=[
                ValidationIssue(
                    row=0,
                    field=field_name,
                    message=message,
                    value=value,
                    severity=Severity.ERROR,
                )
            ],
        )


@dataclass(frozen=True)
class DestinationWrite:
    """
    Storage payload for one destination. existing_id is set when the write
    replaces a stored record.
    """

    identity_key: str
    candidate: DestinationCandidate
    source_row: int
    existing_id: str | None = None

    @property
    def is_overwrite(self) -> bool:
        return self.existing_id is not None


def normalize_name(name: str) -> str:
    """
    Collapse internal whitespace, trim, and case-fold.
    """

    return " ".join(name.split()).casefold()


def build_identity_key(name_en: str, lat: float, lng: float) -> str:
    return f"{normalize_name(name_en)}|{lat:.6f}|{lng:.6f}"


@dataclass(frozen=True)
class IndexedDestination:
    """
    Identity fields of a stored destination, as loaded for duplicate checks.
    """

    id: str
    name_en: str
    name_th: str
    lat: float
    lng: float

    @property
    def identity_key(self) -> str:
        return build_identity_key(self.name_en, self.lat, self.lng)


class DuplicateIndex:
    """
    Immutable identity key -> stored destination lookup.
    """

    def __init__(self, entries: Mapping[str, ExistingMatch] | None = None) -> None:
        self._entries: Mapping[str, ExistingMatch] = MappingProxyType(dict(entries or {}))

    @classmethod
    def from_records(cls, records: Iterable[IndexedDestination]) -> "DuplicateIndex":
        entries: dict[str, ExistingMatch] = {}
        for record in records:
            entries.setdefault(
                record.identity_key,
                ExistingMatch(id=record.id, name_en=record.name_en, name_th=record.name_th),
            )
        return cls(entries)

    def lookup(self, identity_key: str) -> ExistingMatch | None:
        return self._entries.get(identity_key)

    def __contains__(self, identity_key: object) -> bool:
        return identity_key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)
