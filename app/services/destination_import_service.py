"""
app/services/destination_import_service.py

Entry point of the destination bulk import pipeline.

A run tokenizes the uploaded bytes, validates every row (schema, business
rules, duplicate lookup) on a bounded worker pool, aggregates the outcomes
into one ImportResult and, when the caller asked for it and no row carries
an error, commits the valid rows. ``run_import`` never raises; every failure
is reported inside the returned result.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import replace
from functools import lru_cache, partial
from typing import Any, Union

from pydantic import ValidationError

from app.config import DestinationImportSettings, get_destination_import_settings
from app.connectors.image_probe import HttpImageProbe, ImageProbe
from app.domain.destination_import import (
    FILE_FIELD,
    OPTIONS_FIELD,
    ImportResult,
    RawRow,
    RowPreview,
    Severity,
    ValidationIssue,
    build_identity_key,
)
from app.parsers.csv_tokenizer import CSVTokenizeError, CSVTokenizer
from app.schemas.destination_import import ImportOptions
from app.services.duplicate_detector import DuplicateDetector, DuplicateIndexProvider
from app.services.import_committer import ImportCommitError, ImportCommitter
from app.services.import_events import ImportEvent, ImportEventSink, LoggingImportEventSink
from app.services.import_status_store import (
    ImportStatusRecord,
    ImportStatusStore,
    SqlAlchemyImportStatusStore,
)
from app.services.result_aggregator import Clock, ResultAggregator, elapsed_ms
from app.storage.base import DestinationSink
from app.storage.sqlalchemy_storage import SQLAlchemyDestinationStore
from app.validators.business_rules import DestinationBusinessRuleValidator
from app.validators.destination_schema import DestinationSchemaValidator
from db.session import get_session_factory

logger = logging.getLogger(__name__)

_BYTES_PER_MB = 1024 * 1024
_ROW_FIELD = "row"

ImportOptionsInput = Union[ImportOptions, Mapping[str, Any], None]


class InvalidImportOptionsError(ValueError):
    """
    Raised when caller-supplied options fail validation.
    """


class CommitGate:
    """
    Settles, once, whether a timed run may still commit or was abandoned by
    its caller.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._abandoned = False
        self._committing = False

    def try_begin_commit(self) -> bool:
        with self._lock:
            if self._abandoned:
                return False
            self._committing = True
            return True

    def abandon(self) -> bool:
        """
        Returns False when the commit had already begun.
        """

        with self._lock:
            if self._committing:
                return False
            self._abandoned = True
            return True


class DestinationImportService:
    """
    Runs the import pipeline against injected collaborators.
    """

    def __init__(
        self,
        *,
        image_probe: ImageProbe,
        index_provider: DuplicateIndexProvider,
        sink: DestinationSink,
        status_store: ImportStatusStore,
        event_sink: ImportEventSink | None = None,
        settings: DestinationImportSettings | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self._settings = settings or get_destination_import_settings()
        self._clock = clock
        self._tokenizer = CSVTokenizer(max_rows=self._settings.max_rows)
        self._schema_validator = DestinationSchemaValidator(settings=self._settings)
        self._business_validator = DestinationBusinessRuleValidator(
            image_probe=image_probe,
            settings=self._settings,
        )
        self._index_provider = index_provider
        self._aggregator = ResultAggregator(clock=clock)
        self._committer = ImportCommitter(sink=sink, status_store=status_store)
        self._status_store = status_store
        self._event_sink = event_sink or LoggingImportEventSink()

    def run_import(
        self,
        content: bytes,
        options: ImportOptionsInput = None,
        *,
        file_name: str | None = None,
    ) -> ImportResult:
        return self._run_safely(content, options, file_name=file_name, gate=None)

    def run_import_with_timeout(
        self,
        content: bytes,
        options: ImportOptionsInput = None,
        *,
        file_name: str | None = None,
        timeout_seconds: float,
    ) -> ImportResult:
        """
        Run an import bounded by a wall-clock timeout. On expiry the worker is
        left to finish validation in the background but never commits. A commit
        already under way at expiry is waited for, so the returned result always
        matches what reached the store.
        """

        started_at = self._clock()
        gate = CommitGate()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="destination-import-run")
        future = executor.submit(self._run_safely, content, options, file_name=file_name, gate=gate)
        try:
            return future.result(timeout=timeout_seconds)
        except FuturesTimeoutError:
            if not gate.abandon():
                logger.info("Destination import commit in progress at timeout file_name=%s", file_name)
                return future.result()
            logger.warning(
                "Destination import timed out file_name=%s timeout_seconds=%s",
                file_name,
                timeout_seconds,
            )
            return ImportResult.file_failure(
                message=f"Import did not finish within {timeout_seconds:g} seconds.",
                processing_time_ms=elapsed_ms(started_at, self._clock),
            )
        finally:
            executor.shutdown(wait=False)

    def get_import_status(self, import_id: str) -> ImportStatusRecord | None:
        return self._status_store.get(import_id)

    def delete_import(self, import_id: str) -> bool:
        return self._status_store.delete(import_id)

    def find_previous_import(self, content: bytes) -> ImportStatusRecord | None:
        """
        Completed import of byte-identical content, for callers that want to
        avoid committing the same file twice.
        """

        return self._status_store.find_completed_by_file_hash(compute_file_hash(content))

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _run_safely(
        self,
        content: bytes,
        options: ImportOptionsInput,
        *,
        file_name: str | None,
        gate: CommitGate | None,
    ) -> ImportResult:
        started_at = self._clock()
        try:
            return self._run(content, options, file_name=file_name, started_at=started_at, gate=gate)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Destination import failed unexpectedly file_name=%s", file_name)
            result = ImportResult.file_failure(
                message=f"Import failed unexpectedly: {exc}",
                processing_time_ms=elapsed_ms(started_at, self._clock),
            )
            self._emit(ImportEvent.ERRORS_REPORTED, file_name=file_name, error_count=1, stage="internal")
            return result

    def _run(
        self,
        content: bytes,
        raw_options: ImportOptionsInput,
        *,
        file_name: str | None,
        started_at: float,
        gate: CommitGate | None = None,
    ) -> ImportResult:
        try:
            options = resolve_import_options(raw_options)
        except InvalidImportOptionsError as exc:
            logger.warning("Rejected import options file_name=%s error=%s", file_name, exc)
            return ImportResult.file_failure(
                message=str(exc),
                processing_time_ms=elapsed_ms(started_at, self._clock),
                field_name=OPTIONS_FIELD,
            )

        self._emit(
            ImportEvent.UPLOAD_INITIATED,
            file_name=file_name,
            file_size_bytes=len(content),
            validate_only=options.validate_only,
        )

        if len(content) > self._settings.max_file_size_bytes:
            limit_mb = self._settings.max_file_size_bytes / _BYTES_PER_MB
            return self._file_failure(
                f"File is too large (maximum {limit_mb:g}MB).",
                started_at=started_at,
                file_name=file_name,
                value=len(content),
            )

        try:
            rows = self._tokenizer.tokenize_bytes(content)
        except CSVTokenizeError as exc:
            return self._file_failure(str(exc), started_at=started_at, file_name=file_name)

        detector = DuplicateDetector(self._index_provider.load_duplicate_index())
        previews = flag_repeated_identities(self._validate_rows(rows, options, detector))
        result = self._aggregator.aggregate(
            previews,
            started_at=started_at,
            include_preview=options.validate_only,
        )

        self._log_validation_errors(result)
        summary = result.summary
        self._emit(
            ImportEvent.VALIDATION_COMPLETED,
            file_name=file_name,
            total_rows=summary.total_rows,
            successful_rows=summary.successful_rows,
            warning_rows=summary.warning_rows,
            error_rows=summary.error_rows,
            duplicate_rows=summary.duplicate_rows,
            processing_time_ms=summary.processing_time_ms,
        )

        if result.errors:
            self._emit(
                ImportEvent.ERRORS_REPORTED,
                file_name=file_name,
                error_count=len(result.errors),
                stage="validation",
            )
            return result

        if options.validate_only:
            return result

        if gate is not None and not gate.try_begin_commit():
            return self._file_failure(
                "Import was abandoned before commit.",
                started_at=started_at,
                file_name=file_name,
            )

        return self._commit(result, previews, options, content=content, file_name=file_name, started_at=started_at)

    def _commit(
        self,
        result: ImportResult,
        previews: Sequence[RowPreview],
        options: ImportOptions,
        *,
        content: bytes,
        file_name: str | None,
        started_at: float,
    ) -> ImportResult:
        try:
            outcome = self._committer.commit(
                previews,
                options,
                file_name=file_name,
                file_hash=compute_file_hash(content),
            )
        except ImportCommitError as exc:
            self._emit(ImportEvent.ERRORS_REPORTED, file_name=file_name, error_count=1, stage="commit")
            return replace(
                result,
                errors=[
                    ValidationIssue(row=0, field=FILE_FIELD, message=str(exc), severity=Severity.ERROR)
                ],
                summary=replace(
                    result.summary,
                    processing_time_ms=elapsed_ms(started_at, self._clock),
                ),
            )

        applied = {entry.row: entry.action for entry in outcome.duplicates}
        duplicates = [
            replace(entry, action=applied.get(entry.row, entry.action)) for entry in result.duplicates
        ]
        committed = replace(
            result,
            summary=replace(
                result.summary,
                skipped_rows=outcome.skipped,
                processing_time_ms=elapsed_ms(started_at, self._clock),
            ),
            duplicates=duplicates,
            import_id=outcome.import_id,
        )
        self._emit(
            ImportEvent.DESTINATIONS_IMPORTED,
            file_name=file_name,
            import_id=outcome.import_id,
            inserted=outcome.inserted,
            updated=outcome.updated,
            skipped=outcome.skipped,
        )
        return committed

    def _validate_rows(
        self,
        rows: Sequence[RawRow],
        options: ImportOptions,
        detector: DuplicateDetector,
    ) -> list[RowPreview]:
        if not rows:
            return []

        batch_size = options.batch_size
        workers = max(1, min(batch_size, self._settings.max_workers))
        by_row: dict[int, RowPreview] = {}
        validate = partial(self._validate_row_safely, detector=detector)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="destination-import") as executor:
            for start in range(0, len(rows), batch_size):
                chunk = rows[start : start + batch_size]
                for preview in executor.map(validate, chunk):
                    by_row[preview.row] = preview

        return [by_row[row_number] for row_number in sorted(by_row)]

    def _validate_row_safely(self, raw_row: RawRow, *, detector: DuplicateDetector) -> RowPreview:
        try:
            return self._validate_row(raw_row, detector=detector)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Row validation failed unexpectedly row=%s", raw_row.row_number)
            return RowPreview(
                row=raw_row.row_number,
                data=raw_row,
                errors=(
                    ValidationIssue(
                        row=raw_row.row_number,
                        field=_ROW_FIELD,
                        message=f"Row could not be validated: {exc}",
                        severity=Severity.ERROR,
                    ),
                ),
            )

    def _validate_row(self, raw_row: RawRow, *, detector: DuplicateDetector) -> RowPreview:
        outcome = self._schema_validator.validate(raw_row)
        findings = self._business_validator.validate(outcome)
        check = detector.check(outcome)

        warnings = list(findings.warnings)
        if check.is_duplicate:
            warnings.append(
                ValidationIssue(
                    row=raw_row.row_number,
                    field="name_en",
                    message="Destination already exists in the store.",
                    value=outcome.parsed["name_en"],
                    severity=Severity.WARNING,
                )
            )

        return RowPreview(
            row=raw_row.row_number,
            data=outcome.candidate if outcome.candidate is not None else raw_row,
            errors=(*outcome.errors, *findings.errors),
            warnings=tuple(warnings),
            is_duplicate=check.is_duplicate,
            existing_match=check.existing_match,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _file_failure(
        self,
        message: str,
        *,
        started_at: float,
        file_name: str | None,
        value: Any = None,
    ) -> ImportResult:
        logger.warning("Destination import rejected file_name=%s reason=%s", file_name, message)
        self._emit(ImportEvent.ERRORS_REPORTED, file_name=file_name, error_count=1, stage="file")
        return ImportResult.file_failure(
            message=message,
            processing_time_ms=elapsed_ms(started_at, self._clock),
            value=value,
        )

    def _log_validation_errors(self, result: ImportResult) -> None:
        if not self._settings.log_validation_errors:
            return
        for issue in result.errors:
            logger.warning(
                "Destination validation error row=%s field=%s message=%s value=%r",
                issue.row,
                issue.field,
                issue.message,
                issue.value,
            )

    def _emit(self, event: str, **properties: Any) -> None:
        try:
            self._event_sink.emit(event, properties)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Import event emission failed event=%s error=%s", event, exc)


def resolve_import_options(options: ImportOptionsInput) -> ImportOptions:
    if options is None:
        return ImportOptions()
    if isinstance(options, ImportOptions):
        return options
    if not isinstance(options, Mapping):
        raise InvalidImportOptionsError(
            f"Invalid import options: expected a mapping, got {type(options).__name__}."
        )
    try:
        return ImportOptions.model_validate(dict(options))
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'options'}: {error['msg']}"
            for error in exc.errors()
        )
        raise InvalidImportOptionsError(f"Invalid import options: {details}") from exc


def flag_repeated_identities(previews: Sequence[RowPreview]) -> list[RowPreview]:
    """
    Warn on rows repeating the identity of an earlier row in the same file.
    """

    first_rows: dict[str, int] = {}
    flagged: list[RowPreview] = []
    for preview in previews:
        candidate = preview.candidate
        if candidate is None:
            flagged.append(preview)
            continue

        identity_key = build_identity_key(candidate.name_en, candidate.lat, candidate.lng)
        first_row = first_rows.setdefault(identity_key, preview.row)
        if first_row == preview.row:
            flagged.append(preview)
            continue

        flagged.append(
            replace(
                preview,
                warnings=(
                    *preview.warnings,
                    ValidationIssue(
                        row=preview.row,
                        field="name_en",
                        message=(
                            f"Duplicate of row {first_row} in this file; "
                            "only the first occurrence will be imported."
                        ),
                        value=candidate.name_en,
                        severity=Severity.WARNING,
                    ),
                ),
            )
        )
    return flagged


def compute_file_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


@lru_cache(maxsize=1)
def get_destination_import_service() -> DestinationImportService:
    """
    Build and cache the import service against the configured database.
    """
    session_factory = get_session_factory()
    store = SQLAlchemyDestinationStore(session_factory=session_factory)
    return DestinationImportService(
        image_probe=HttpImageProbe(),
        index_provider=store,
        sink=store,
        status_store=SqlAlchemyImportStatusStore(session_factory=session_factory),
        event_sink=LoggingImportEventSink(),
    )
