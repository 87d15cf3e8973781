"""
app/services/result_aggregator.py

Folds per-row previews into one ImportResult.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence

from app.domain.destination_import import (
    DuplicateAction,
    DuplicateEntry,
    ImportResult,
    ImportSummary,
    RowPreview,
    RowStatus,
    ValidationIssue,
)

Clock = Callable[[], float]


def elapsed_ms(started_at: float, clock: Clock = time.monotonic) -> int:
    return max(0, int(round((clock() - started_at) * 1000)))


class ResultAggregator:
    """
    Single pass over row previews: counts, issue concatenation, duplicates.
    """

    def __init__(self, *, clock: Clock = time.monotonic) -> None:
        self._clock = clock

    def aggregate(
        self,
        previews: Sequence[RowPreview],
        *,
        started_at: float,
        include_preview: bool,
    ) -> ImportResult:
        ordered = sorted(previews, key=lambda preview: preview.row)

        counts = {RowStatus.VALID: 0, RowStatus.WARNING: 0, RowStatus.ERROR: 0}
        duplicate_rows = 0
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []
        duplicates: list[DuplicateEntry] = []

        for preview in ordered:
            counts[preview.status] += 1
            errors.extend(preview.errors)
            warnings.extend(preview.warnings)
            if preview.is_duplicate:
                duplicate_rows += 1
                if preview.existing_match is not None:
                    duplicates.append(
                        DuplicateEntry(
                            row=preview.row,
                            existing_id=preview.existing_match.id,
                            name_en=_row_text(preview, "name_en"),
                            name_th=_row_text(preview, "name_th"),
                            action=DuplicateAction.SKIP,
                        )
                    )

        summary = ImportSummary(
            total_rows=len(ordered),
            successful_rows=counts[RowStatus.VALID],
            error_rows=counts[RowStatus.ERROR],
            warning_rows=counts[RowStatus.WARNING],
            duplicate_rows=duplicate_rows,
            skipped_rows=0,
            processing_time_ms=elapsed_ms(started_at, self._clock),
        )

        return ImportResult(
            summary=summary,
            errors=errors,
            warnings=warnings,
            duplicates=duplicates,
            preview=list(ordered) if include_preview else None,
        )


def _row_text(preview: RowPreview, column: str) -> str:
    candidate = preview.candidate
    if candidate is not None:
        return getattr(candidate, column)
    return preview.data.get(column) or ""
