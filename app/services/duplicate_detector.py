"""
app/services/duplicate_detector.py

Identity-key duplicate detection against a preloaded, read-only index.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from app.domain.destination_import import (
    DuplicateIndex,
    ExistingMatch,
    IndexedDestination,
    build_identity_key,
    normalize_name,
)
from app.validators.destination_schema import SchemaValidationOutcome

_IDENTITY_COLUMNS = ("name_en", "lat", "lng")


__all__ = [
    "DuplicateCheck",
    "DuplicateDetector",
    "DuplicateIndex",
    "DuplicateIndexProvider",
    "IndexedDestination",
    "StaticDuplicateIndexProvider",
    "build_identity_key",
    "normalize_name",
]


class DuplicateIndexProvider(Protocol):
    def load_duplicate_index(self) -> DuplicateIndex:
        ...


class StaticDuplicateIndexProvider:
    """
    Serves a fixed index; used when the caller already holds the identities.
    """

    def __init__(self, index: DuplicateIndex | None = None) -> None:
        self._index = index if index is not None else DuplicateIndex()

    def load_duplicate_index(self) -> DuplicateIndex:
        return self._index


@dataclass(frozen=True)
class DuplicateCheck:
    is_duplicate: bool
    identity_key: str | None = None
    existing_match: ExistingMatch | None = None


class DuplicateDetector:
    """
    Checks rows whose name_en, lat and lng all passed schema validation.
    """

    def __init__(self, index: DuplicateIndex) -> None:
        self._index = index

    def check(self, outcome: SchemaValidationOutcome) -> DuplicateCheck:
        if not all(outcome.passed(column) for column in _IDENTITY_COLUMNS):
            return DuplicateCheck(is_duplicate=False)

        identity_key = build_identity_key(
            outcome.parsed["name_en"],
            outcome.parsed["lat"],
            outcome.parsed["lng"],
        )
        match = self._index.lookup(identity_key)
        return DuplicateCheck(
            is_duplicate=match is not None,
            identity_key=identity_key,
            existing_match=match,
        )
