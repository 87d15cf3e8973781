"""
app/schemas/destination_import.py

Caller-facing option models and report serialization for destination imports.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.domain.destination_import import (
    DuplicateEntry,
    ImportResult,
    ImportSummary,
    RowPreview,
    ValidationIssue,
)

if TYPE_CHECKING:
    from app.services.import_status_store import ImportStatusRecord

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 500


class ImportOptions(BaseModel):
    """
    Run options. Accepts snake_case or camelCase keys.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    validate_only: bool = True
    overwrite: bool = False
    skip_duplicates: bool = True
    batch_size: int = Field(default=100, ge=MIN_BATCH_SIZE, le=MAX_BATCH_SIZE)


class DestinationFilters(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    category: str | None = None
    district: str | None = None
    budget_band: Literal["low", "mid", "high"] | None = None
    mood_tags: list[Literal["chill", "adventure", "foodie", "cultural", "social", "romantic"]] | None = None
    is_active: bool | None = None


class ExportOptions(BaseModel):
    """
    Options for exporting stored destinations.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    format: Literal["csv", "json"] = "csv"
    include_inactive: bool = False
    selected_fields: list[str] | None = None
    filters: DestinationFilters | None = None


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ValidationIssueResponse(_CamelModel):
    row: int = Field(..., ge=0)
    field: str
    message: str
    value: Any = None
    severity: Literal["error", "warning"]

    @classmethod
    def from_issue(cls, issue: ValidationIssue) -> "ValidationIssueResponse":
        return cls(
            row=issue.row,
            field=issue.field,
            message=issue.message,
            value=issue.value,
            severity=issue.severity,
        )


class ExistingMatchResponse(BaseModel):
    id: str
    name_en: str
    name_th: str


class RowPreviewResponse(_CamelModel):
    row: int = Field(..., ge=1)
    data: dict[str, Any]
    status: Literal["valid", "warning", "error"]
    errors: list[ValidationIssueResponse] = Field(default_factory=list)
    warnings: list[ValidationIssueResponse] = Field(default_factory=list)
    is_duplicate: bool = False
    existing_match: ExistingMatchResponse | None = None

    @classmethod
    def from_preview(cls, preview: RowPreview) -> "RowPreviewResponse":
        match = preview.existing_match
        return cls(
            row=preview.row,
            data=preview.data.to_dict(),
            status=preview.status,
            errors=[ValidationIssueResponse.from_issue(issue) for issue in preview.errors],
            warnings=[ValidationIssueResponse.from_issue(issue) for issue in preview.warnings],
            is_duplicate=preview.is_duplicate,
            existing_match=(
                ExistingMatchResponse(id=match.id, name_en=match.name_en, name_th=match.name_th)
                if match is not None
                else None
            ),
        )


class DuplicateEntryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    row: int = Field(..., ge=1)
    existing_id: str = Field(serialization_alias="existingId")
    name_en: str
    name_th: str
    action: Literal["skip", "overwrite"]

    @classmethod
    def from_entry(cls, entry: DuplicateEntry) -> "DuplicateEntryResponse":
        return cls(
            row=entry.row,
            existing_id=entry.existing_id,
            name_en=entry.name_en,
            name_th=entry.name_th,
            action=entry.action,
        )


class ImportSummaryResponse(_CamelModel):
    total_rows: int = Field(..., ge=0)
    successful_rows: int = Field(..., ge=0)
    error_rows: int = Field(..., ge=0)
    warning_rows: int = Field(..., ge=0)
    duplicate_rows: int = Field(..., ge=0)
    skipped_rows: int = Field(..., ge=0)
    processing_time_ms: int = Field(..., ge=0)

    @classmethod
    def from_summary(cls, summary: ImportSummary) -> "ImportSummaryResponse":
        return cls(
            total_rows=summary.total_rows,
            successful_rows=summary.successful_rows,
            error_rows=summary.error_rows,
            warning_rows=summary.warning_rows,
            duplicate_rows=summary.duplicate_rows,
            skipped_rows=summary.skipped_rows,
            processing_time_ms=summary.processing_time_ms,
        )


class ImportResultResponse(_CamelModel):
    """
    Machine-readable import report. Dump with ``by_alias=True`` for camelCase.
    """

    success: bool
    summary: ImportSummaryResponse
    errors: list[ValidationIssueResponse] = Field(default_factory=list)
    warnings: list[ValidationIssueResponse] = Field(default_factory=list)
    duplicates: list[DuplicateEntryResponse] = Field(default_factory=list)
    preview: list[RowPreviewResponse] | None = None
    import_id: str | None = None

    @classmethod
    def from_result(cls, result: ImportResult) -> "ImportResultResponse":
        return cls(
            success=result.success,
            summary=ImportSummaryResponse.from_summary(result.summary),
            errors=[ValidationIssueResponse.from_issue(issue) for issue in result.errors],
            warnings=[ValidationIssueResponse.from_issue(issue) for issue in result.warnings],
            duplicates=[DuplicateEntryResponse.from_entry(entry) for entry in result.duplicates],
            preview=(
                [RowPreviewResponse.from_preview(preview) for preview in result.preview]
                if result.preview is not None
                else None
            ),
            import_id=result.import_id,
        )


class ImportStatusResponse(_CamelModel):
    import_id: str
    status: Literal["processing", "completed", "failed"]
    created_at: datetime
    result: dict[str, Any] | None = None
    error_message: str | None = None

    @classmethod
    def from_record(cls, record: ImportStatusRecord) -> "ImportStatusResponse":
        return cls(
            import_id=record.import_id,
            status=record.status,
            created_at=record.created_at,
            result=record.result,
            error_message=record.error_message,
        )
