"""
app/schemas package marker.
"""

from app.schemas.destination_import import (
    DestinationFilters,
    DuplicateEntryResponse,
    ExportOptions,
    ImportOptions,
    ImportResultResponse,
    ImportStatusResponse,
    ImportSummaryResponse,
    RowPreviewResponse,
    ValidationIssueResponse,
)

__all__ = [
    "DestinationFilters",
    "DuplicateEntryResponse",
    "ExportOptions",
    "ImportOptions",
    "ImportResultResponse",
    "ImportStatusResponse",
    "ImportSummaryResponse",
    "RowPreviewResponse",
    "ValidationIssueResponse",
]
