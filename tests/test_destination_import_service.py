"""
tests/test_destination_import_service.py

End-to-end pipeline runs against in-memory collaborators.

Coverage
--------
- validate-only and committing runs
- file-level failures (tokenizer, size, row limit, options, internal errors)
- duplicate handling against the store and within one file
- determinism of validate-only runs
- timeout wrapper and status lookups
"""

from __future__ import annotations

import threading
import uuid

import pytest

from app.config import DestinationImportSettings
from app.connectors.image_probe import ImageProbe, ImageProbeError, ImageProbeResult, StaticImageProbe
from app.domain.destination_import import (
    FILE_FIELD,
    OPTIONS_FIELD,
    DestinationCandidate,
    DuplicateAction,
    RowStatus,
    Severity,
    build_identity_key,
)
from app.services.destination_import_service import CommitGate, DestinationImportService, compute_file_hash
from app.services.import_events import ImportEvent, RecordingImportEventSink
from app.storage.base import DestinationSinkError
from app.storage.memory_storage import InMemoryDestinationSink
from db.models.destination_import_job import ImportJobStatus

SIAM = {"name_en": "Siam Square", "name_th": "สยามสแควร์", "lat": "13.7456", "lng": "100.5341"}


def _build(sink, status_store, clock, *, probe=None, settings=None, index_provider=None, event_sink=None):
    return DestinationImportService(
        image_probe=probe or StaticImageProbe(),
        index_provider=index_provider or sink,
        sink=sink,
        status_store=status_store,
        event_sink=event_sink,
        settings=settings or DestinationImportSettings(max_workers=4),
        clock=clock,
    )


def _seed(sink: InMemoryDestinationSink, service: DestinationImportService, content: bytes) -> str:
    result = service.run_import(content, {"validate_only": False})
    assert result.import_id is not None
    return sink.records[0].id


# ---------------------------------------------------------------------------
# Validate-only runs
# ---------------------------------------------------------------------------


class TestValidateOnly:
    def test_valid_file_produces_preview_and_no_writes(
        self, service, sink, event_sink, build_csv, valid_row_values
    ) -> None:
        content = build_csv([valid_row_values(), valid_row_values(**SIAM)])

        result = service.run_import(content, file_name="destinations.csv")

        assert result.success is True
        assert result.import_id is None
        assert result.summary.total_rows == 2
        assert result.summary.successful_rows == 2
        assert [preview.row for preview in result.preview] == [1, 2]
        assert all(isinstance(preview.data, DestinationCandidate) for preview in result.preview)
        assert sink.records == []
        assert event_sink.names() == [ImportEvent.UPLOAD_INITIATED, ImportEvent.VALIDATION_COMPLETED]

    def test_missing_columns_fail_only_their_row(self, service, build_csv) -> None:
        content = build_csv(
            [{"name_th": "จตุจักร", "name_en": "Chatuchak", "category": "market"}],
            columns=("name_th", "name_en", "category"),
        )

        result = service.run_import(content)

        assert result.success is False
        assert result.summary.error_rows == 1
        [preview] = result.preview
        assert preview.status == RowStatus.ERROR
        assert len(preview.errors) == 12
        assert {issue.message for issue in preview.errors} == {"Required column is missing."}

    def test_row_errors_do_not_affect_siblings(self, service, build_csv, valid_row_values) -> None:
        content = build_csv(
            [
                valid_row_values(),
                valid_row_values(budget_band="extreme", **SIAM),
                valid_row_values(name_en="Wat Arun", lat="13.7437", lng="100.4888", instagram_score="2"),
            ]
        )

        result = service.run_import(content)

        assert [preview.status for preview in result.preview] == [
            RowStatus.VALID,
            RowStatus.ERROR,
            RowStatus.WARNING,
        ]
        assert [(issue.row, issue.field) for issue in result.errors] == [(2, "budget_band")]
        assert [(issue.row, issue.field) for issue in result.warnings] == [(3, "instagram_score")]
        summary = result.summary
        assert summary.successful_rows + summary.warning_rows + summary.error_rows == summary.total_rows

    def test_probe_failure_on_one_row_is_a_warning(self, sink, status_store, clock, build_csv, valid_row_values) -> None:
        broken_url = "https://images.example.com/slow.jpg"
        probe = StaticImageProbe({broken_url: ImageProbeError("Image probe timed out after 10.0s.")})
        service = _build(sink, status_store, clock, probe=probe)

        result = service.run_import(build_csv([valid_row_values(image_url=broken_url), valid_row_values(**SIAM)]))

        assert result.success is True
        assert [preview.status for preview in result.preview] == [RowStatus.WARNING, RowStatus.VALID]

    def test_row_order_survives_small_batches(self, service, build_csv, valid_row_values) -> None:
        rows = [
            valid_row_values(name_en=f"Stall {index}", lat=f"13.{7000 + index}")
            for index in range(1, 12)
        ]

        result = service.run_import(build_csv(rows), {"batch_size": 2})

        assert [preview.row for preview in result.preview] == list(range(1, 12))
        assert [preview.data.name_en for preview in result.preview] == [f"Stall {index}" for index in range(1, 12)]

    def test_repeated_validate_only_runs_are_identical(self, service, build_csv, valid_row_values) -> None:
        content = build_csv(
            [valid_row_values(), valid_row_values(lat="12.0", lng="99.0"), valid_row_values(instagram_score="1", **SIAM)]
        )

        first = service.run_import(content)
        second = service.run_import(content)

        assert first.summary == second.summary
        assert first.errors == second.errors
        assert first.warnings == second.warnings


# ---------------------------------------------------------------------------
# File-level failures
# ---------------------------------------------------------------------------


class TestFileLevelFailures:
    def _assert_single_file_error(self, result, *, field: str = FILE_FIELD) -> str:
        assert result.success is False
        assert result.summary.total_rows == 0
        assert result.summary.successful_rows == 0
        assert result.preview is None
        assert len(result.errors) == 1
        issue = result.errors[0]
        assert issue.row == 0
        assert issue.field == field
        assert issue.severity == Severity.ERROR
        return issue.message

    def test_field_count_mismatch(self, service) -> None:
        message = self._assert_single_file_error(service.run_import(b"name_en,lat\nSiam,13.7\nWat Arun\n"))

        assert message.startswith("Line 3")

    def test_empty_file(self, service) -> None:
        assert "empty" in self._assert_single_file_error(service.run_import(b""))

    def test_row_limit_boundary(self, sink, status_store, clock, build_csv, valid_row_values) -> None:
        service = _build(sink, status_store, clock, settings=DestinationImportSettings(max_rows=3))
        rows = [valid_row_values(name_en=f"Stall {index}") for index in range(4)]

        at_limit = service.run_import(build_csv(rows[:3]))
        over_limit = service.run_import(build_csv(rows))

        assert at_limit.summary.total_rows == 3
        assert at_limit.errors == []
        assert self._assert_single_file_error(over_limit) == "File contains too many rows (maximum 3)."

    def test_oversized_file(self, sink, status_store, clock, build_csv, valid_row_values) -> None:
        service = _build(sink, status_store, clock, settings=DestinationImportSettings(max_file_size_bytes=64))

        result = service.run_import(build_csv([valid_row_values()]))

        assert "too large" in self._assert_single_file_error(result)

    @pytest.mark.parametrize(
        "options",
        [{"batchSize": 0}, {"batch_size": 501}, {"validateOnly": "sometimes"}, ["validate_only"]],
    )
    def test_malformed_options(self, service, event_sink, build_csv, valid_row_values, options) -> None:
        result = service.run_import(build_csv([valid_row_values()]), options)

        assert "Invalid import options" in self._assert_single_file_error(result, field=OPTIONS_FIELD)
        assert event_sink.names() == []

    def test_unexpected_failure_is_reported_not_raised(
        self, sink, status_store, clock, event_sink, build_csv, valid_row_values
    ) -> None:
        class ExplodingIndex:
            def load_duplicate_index(self):
                clock.advance(0.5)
                raise RuntimeError("index backend unavailable")

        service = _build(sink, status_store, clock, index_provider=ExplodingIndex(), event_sink=event_sink)

        result = service.run_import(build_csv([valid_row_values()]))

        message = self._assert_single_file_error(result)
        assert "index backend unavailable" in message
        assert result.summary.processing_time_ms == 500
        assert event_sink.names()[-1] == ImportEvent.ERRORS_REPORTED

    def test_event_sink_failures_are_ignored(self, sink, status_store, clock, build_csv, valid_row_values) -> None:
        class BrokenEvents:
            def emit(self, event, properties):
                raise ConnectionError("analytics down")

        service = _build(sink, status_store, clock, event_sink=BrokenEvents())

        assert service.run_import(build_csv([valid_row_values()])).success is True


# ---------------------------------------------------------------------------
# Committing runs
# ---------------------------------------------------------------------------


class TestCommit:
    def test_commit_persists_rows_and_records_status(
        self, service, sink, event_sink, build_csv, valid_row_values
    ) -> None:
        content = build_csv([valid_row_values(), valid_row_values(**SIAM)])

        result = service.run_import(content, {"validateOnly": False}, file_name="batch.csv")

        assert result.success is True
        assert result.preview is None
        assert uuid.UUID(result.import_id)
        assert len(sink.records) == 2
        assert ImportEvent.DESTINATIONS_IMPORTED in event_sink.names()

        status = service.get_import_status(result.import_id)
        assert status.status == ImportJobStatus.COMPLETED
        assert status.file_name == "batch.csv"
        assert status.file_hash == compute_file_hash(content)
        assert service.find_previous_import(content).import_id == result.import_id

    def test_errors_block_the_commit(self, service, sink, build_csv, valid_row_values) -> None:
        content = build_csv([valid_row_values(), valid_row_values(name_en="Elsewhere", lat="12.0")])

        result = service.run_import(content, {"validate_only": False})

        assert result.success is False
        assert result.import_id is None
        assert sink.records == []

    def test_unreachable_image_blocks_the_commit(self, sink, status_store, clock, build_csv, valid_row_values) -> None:
        url = "https://images.example.com/missing.jpg"
        probe = StaticImageProbe({url: ImageProbeResult(url=url, is_accessible=False, status_code=404, error="HTTP 404")})
        service = _build(sink, status_store, clock, probe=probe)

        result = service.run_import(build_csv([valid_row_values(image_url=url)]), {"validate_only": False})

        assert [issue.field for issue in result.errors] == ["image_url"]
        assert sink.records == []

    def test_header_only_commit_is_a_no_op_with_id(self, service, sink, build_csv) -> None:
        result = service.run_import(build_csv([]), {"validate_only": False})

        assert result.success is True
        assert result.summary.total_rows == 0
        assert uuid.UUID(result.import_id)
        assert sink.records == []

    def test_stored_duplicate_is_flagged_and_skipped(
        self, service, sink, build_csv, valid_row_values
    ) -> None:
        existing_id = _seed(sink, service, build_csv([valid_row_values()]))
        content = build_csv([valid_row_values(name_en="  chatuchak weekend MARKET "), valid_row_values(**SIAM)])

        preview = service.run_import(content)
        committed = service.run_import(content, {"validate_only": False})

        [duplicate_row, _] = preview.preview
        assert duplicate_row.is_duplicate is True
        assert duplicate_row.existing_match.id == existing_id
        assert duplicate_row.status == RowStatus.WARNING
        assert "Destination already exists in the store." in [issue.message for issue in duplicate_row.warnings]
        assert preview.summary.duplicate_rows == 1

        assert committed.summary.skipped_rows == 1
        assert [(entry.row, entry.action) for entry in committed.duplicates] == [(1, DuplicateAction.SKIP)]
        assert len(sink.records) == 2

    def test_stored_duplicate_is_overwritten_on_request(self, service, sink, build_csv, valid_row_values) -> None:
        existing_id = _seed(sink, service, build_csv([valid_row_values()]))
        content = build_csv([valid_row_values(description_en="Now with night market")])

        result = service.run_import(content, {"validate_only": False, "overwrite": True})

        assert [entry.action for entry in result.duplicates] == [DuplicateAction.OVERWRITE]
        assert result.summary.skipped_rows == 0
        [record] = sink.records
        assert record.id == existing_id
        assert record.candidate.description_en == "Now with night market"

    def test_unresolved_duplicates_fail_at_file_level(self, service, sink, build_csv, valid_row_values) -> None:
        _seed(sink, service, build_csv([valid_row_values()]))

        result = service.run_import(
            build_csv([valid_row_values(), valid_row_values(**SIAM)]),
            {"validate_only": False, "skip_duplicates": False},
        )

        assert [(issue.row, issue.field) for issue in result.errors] == [(0, FILE_FIELD)]
        assert result.import_id is None
        assert len(sink.records) == 1

    def test_repeated_identity_in_file_is_warned_and_imported_once(
        self, service, sink, build_csv, valid_row_values
    ) -> None:
        content = build_csv([valid_row_values(), valid_row_values(name_en="CHATUCHAK WEEKEND MARKET")])

        preview = service.run_import(content)
        committed = service.run_import(content, {"validate_only": False})

        second = preview.preview[1]
        assert second.is_duplicate is False
        assert second.warnings[-1].message == (
            "Duplicate of row 1 in this file; only the first occurrence will be imported."
        )
        assert committed.summary.skipped_rows == 1
        assert len(sink.records) == 1

    def test_sink_failure_becomes_file_error_and_failed_status(
        self, status_store, clock, build_csv, valid_row_values
    ) -> None:
        class RejectingSink(InMemoryDestinationSink):
            def persist(self, writes, *, import_id, batch_size):
                raise DestinationSinkError("A destination with the same identity was stored concurrently.")

        sink = RejectingSink()
        service = _build(sink, status_store, clock)

        result = service.run_import(build_csv([valid_row_values()]), {"validate_only": False})

        assert [issue.field for issue in result.errors] == [FILE_FIELD]
        assert "stored concurrently" in result.errors[0].message
        assert result.import_id is None
        assert result.summary.total_rows == 1


# ---------------------------------------------------------------------------
# Status lookup and timeout wrapper
# ---------------------------------------------------------------------------


def test_delete_import_removes_status(service, build_csv, valid_row_values) -> None:
    import_id = service.run_import(build_csv([valid_row_values()]), {"validate_only": False}).import_id

    assert service.delete_import(import_id) is True
    assert service.get_import_status(import_id) is None
    assert service.delete_import(import_id) is False


def test_unknown_import_id_has_no_status(service) -> None:
    assert service.get_import_status(str(uuid.uuid4())) is None


def test_identity_key_of_committed_rows_is_stable(service, sink, build_csv, valid_row_values) -> None:
    service.run_import(build_csv([valid_row_values()]), {"validate_only": False})

    assert sink.records[0].identity_key == build_identity_key("Chatuchak Weekend Market", 13.7995, 100.5497)


def test_timeout_wrapper_returns_file_error(sink, status_store, clock, build_csv, valid_row_values) -> None:
    release = threading.Event()

    class BlockingProbe(ImageProbe):
        def probe(self, url: str) -> ImageProbeResult:
            release.wait(5)
            return ImageProbeResult(url=url, is_accessible=True, status_code=200)

    service = _build(sink, status_store, clock, probe=BlockingProbe())
    try:
        result = service.run_import_with_timeout(build_csv([valid_row_values()]), timeout_seconds=0.05)
    finally:
        release.set()

    assert [issue.field for issue in result.errors] == [FILE_FIELD]
    assert result.errors[0].message == "Import did not finish within 0.05 seconds."


def test_timed_out_run_never_commits(sink, status_store, clock, build_csv, valid_row_values) -> None:
    release = threading.Event()
    worker_done = threading.Event()

    class SlowImageLookup(ImageProbe):
        def probe(self, url: str) -> ImageProbeResult:
            release.wait(5)
            return ImageProbeResult(url=url, is_accessible=True, status_code=200)

    class SignallingEvents(RecordingImportEventSink):
        def emit(self, event, properties) -> None:
            super().emit(event, properties)
            if event == ImportEvent.ERRORS_REPORTED:
                worker_done.set()

    events = SignallingEvents()
    service = _build(sink, status_store, clock, probe=SlowImageLookup(), event_sink=events)
    content = build_csv([valid_row_values()])
    try:
        result = service.run_import_with_timeout(content, {"validate_only": False}, timeout_seconds=0.05)
    finally:
        release.set()

    assert worker_done.wait(5)
    assert result.errors[0].message == "Import did not finish within 0.05 seconds."
    assert sink.records == []
    assert status_store.find_completed_by_file_hash(compute_file_hash(content)) is None
    assert ImportEvent.DESTINATIONS_IMPORTED not in events.names()
    assert events.events[-1].properties["stage"] == "file"


def test_commit_gate_settles_once() -> None:
    committing = CommitGate()
    abandoned = CommitGate()

    assert committing.try_begin_commit() is True
    assert committing.abandon() is False
    assert abandoned.abandon() is True
    assert abandoned.try_begin_commit() is False


def test_timeout_wrapper_returns_result_when_fast(service, build_csv, valid_row_values) -> None:
    result = service.run_import_with_timeout(build_csv([valid_row_values()]), timeout_seconds=5)

    assert result.success is True
    assert result.summary.total_rows == 1
