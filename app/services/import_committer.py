"""
app/services/import_committer.py

Gated persistence step of the destination import pipeline.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from app.domain.destination_import import (
    DestinationWrite,
    DuplicateAction,
    DuplicateEntry,
    RowPreview,
    build_identity_key,
)
from app.schemas.destination_import import ImportOptions
from app.services.import_status_store import (
    ImportStatusRecord,
    ImportStatusStore,
    ImportStatusStoreError,
)
from app.storage.base import DestinationSink, DestinationSinkError

logger = logging.getLogger(__name__)


class ImportCommitError(RuntimeError):
    """
    Raised when a commit is refused or the sink rejects the batch.
    ``import_id`` is set once an id was issued for the attempt.
    """

    def __init__(self, message: str, *, import_id: str | None = None) -> None:
        super().__init__(message)
        self.import_id = import_id


@dataclass(frozen=True)
class CommitOutcome:
    import_id: str
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    duplicates: list[DuplicateEntry] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "import_id": self.import_id,
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
            "duplicates": [
                {
                    "row": entry.row,
                    "existing_id": entry.existing_id,
                    "name_en": entry.name_en,
                    "name_th": entry.name_th,
                    "action": entry.action,
                }
                for entry in self.duplicates
            ],
        }


class ImportCommitter:
    """
    Turns validated previews into storage writes and persists them in one
    sink transaction. Every call issues a new import id.
    """

    def __init__(self, *, sink: DestinationSink, status_store: ImportStatusStore) -> None:
        self._sink = sink
        self._status_store = status_store

    def commit(
        self,
        previews: Sequence[RowPreview],
        options: ImportOptions,
        *,
        file_name: str | None = None,
        file_hash: str | None = None,
    ) -> CommitOutcome:
        blocked = [preview.row for preview in previews if preview.errors]
        if blocked:
            raise ImportCommitError(
                f"Import has blocking errors on {len(blocked)} row(s); nothing was committed."
            )

        import_id = str(uuid.uuid4())
        writes, skipped, duplicates = self._plan_writes(previews, options)

        try:
            outcome = self._sink.persist(writes, import_id=import_id, batch_size=options.batch_size)
        except DestinationSinkError as exc:
            logger.error(
                "Destination import commit failed import_id=%s rows=%s error=%s",
                import_id,
                len(writes),
                exc,
            )
            self._record(
                ImportStatusRecord.failed(
                    import_id=import_id,
                    error_message=str(exc),
                    file_name=file_name,
                    file_hash=file_hash,
                )
            )
            raise ImportCommitError(str(exc), import_id=import_id) from exc

        result = CommitOutcome(
            import_id=import_id,
            inserted=outcome.inserted,
            updated=outcome.updated,
            skipped=skipped,
            duplicates=duplicates,
        )
        self._record(
            ImportStatusRecord.completed(
                import_id=import_id,
                result=result.to_payload(),
                file_name=file_name,
                file_hash=file_hash,
            )
        )
        logger.info(
            "Destination import committed import_id=%s inserted=%s updated=%s skipped=%s",
            import_id,
            result.inserted,
            result.updated,
            result.skipped,
        )
        return result

    @staticmethod
    def _plan_writes(
        previews: Sequence[RowPreview],
        options: ImportOptions,
    ) -> tuple[list[DestinationWrite], int, list[DuplicateEntry]]:
        writes: list[DestinationWrite] = []
        duplicates: list[DuplicateEntry] = []
        seen_keys: set[str] = set()
        skipped = 0

        for preview in sorted(previews, key=lambda item: item.row):
            candidate = preview.candidate
            if candidate is None:
                continue

            identity_key = build_identity_key(candidate.name_en, candidate.lat, candidate.lng)
            if identity_key in seen_keys:
                # Repeated identity within the file; the first occurrence wins.
                skipped += 1
                continue
            seen_keys.add(identity_key)

            match = preview.existing_match
            if not preview.is_duplicate or match is None:
                writes.append(
                    DestinationWrite(identity_key=identity_key, candidate=candidate, source_row=preview.row)
                )
                continue

            if options.overwrite:
                writes.append(
                    DestinationWrite(
                        identity_key=identity_key,
                        candidate=candidate,
                        source_row=preview.row,
                        existing_id=match.id,
                    )
                )
                action = DuplicateAction.OVERWRITE
            elif options.skip_duplicates:
                skipped += 1
                action = DuplicateAction.SKIP
            else:
                raise ImportCommitError(
                    f"Row {preview.row} duplicates stored destination {match.id}; "
                    "enable overwrite or skip_duplicates to import this file."
                )

            duplicates.append(
                DuplicateEntry(
                    row=preview.row,
                    existing_id=match.id,
                    name_en=candidate.name_en,
                    name_th=candidate.name_th,
                    action=action,
                )
            )

        return writes, skipped, duplicates

    def _record(self, record: ImportStatusRecord) -> None:
        try:
            self._status_store.put(record)
        except ImportStatusStoreError:
            logger.exception(
                "Failed to record import status import_id=%s status=%s",
                record.import_id,
                record.status,
            )
