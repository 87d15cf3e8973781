"""
Process-local destination store.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from app.domain.destination_import import (
    DestinationCandidate,
    DestinationWrite,
    DuplicateIndex,
    IndexedDestination,
)
from app.storage.base import DestinationSink, DestinationSinkError, PersistOutcome


@dataclass(frozen=True)
class StoredDestination:
    id: str
    identity_key: str
    candidate: DestinationCandidate
    import_id: str | None = None


class InMemoryDestinationSink(DestinationSink):
    """
    Dict-backed store enforcing one record per identity key. Doubles as a
    duplicate index provider.
    """

    def __init__(self, records: Sequence[StoredDestination] = ()) -> None:
        self._lock = threading.Lock()
        self._by_id: dict[str, StoredDestination] = {record.id: record for record in records}

    @property
    def records(self) -> list[StoredDestination]:
        with self._lock:
            return list(self._by_id.values())

    def seed(self, candidate: DestinationCandidate, *, identity_key: str) -> StoredDestination:
        record = StoredDestination(id=str(uuid.uuid4()), identity_key=identity_key, candidate=candidate)
        with self._lock:
            self._by_id[record.id] = record
        return record

    def persist(
        self,
        writes: Sequence[DestinationWrite],
        *,
        import_id: str,
        batch_size: int,
    ) -> PersistOutcome:
        with self._lock:
            staged = dict(self._by_id)
            keys = {record.identity_key for record in staged.values()}
            inserted = 0
            updated = 0

            for write in writes:
                if write.existing_id is not None and write.existing_id in staged:
                    staged[write.existing_id] = StoredDestination(
                        id=write.existing_id,
                        identity_key=write.identity_key,
                        candidate=write.candidate,
                        import_id=import_id,
                    )
                    updated += 1
                    continue

                if write.identity_key in keys:
                    raise DestinationSinkError(
                        f"Destination identity already stored (row {write.source_row})."
                    )

                record = StoredDestination(
                    id=str(uuid.uuid4()),
                    identity_key=write.identity_key,
                    candidate=write.candidate,
                    import_id=import_id,
                )
                staged[record.id] = record
                keys.add(write.identity_key)
                inserted += 1

            self._by_id = staged
            return PersistOutcome(inserted=inserted, updated=updated)

    def load_duplicate_index(self) -> DuplicateIndex:
        return DuplicateIndex.from_records(
            IndexedDestination(
                id=record.id,
                name_en=record.candidate.name_en,
                name_th=record.candidate.name_th,
                lat=record.candidate.lat,
                lng=record.candidate.lng,
            )
            for record in self.records
        )

    def list_candidates(self) -> list[DestinationCandidate]:
        return [record.candidate for record in self.records]
