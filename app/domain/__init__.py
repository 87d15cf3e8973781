"""
app/domain package marker.
"""

from app.domain.destination_import import (
    DestinationCandidate,
    DuplicateEntry,
    DuplicateIndex,
    ImportResult,
    ImportSummary,
    RawRow,
    RowPreview,
    ValidationIssue,
)

__all__ = [
    "DestinationCandidate",
    "DuplicateEntry",
    "DuplicateIndex",
    "ImportResult",
    "ImportSummary",
    "RawRow",
    "RowPreview",
    "ValidationIssue",
]
