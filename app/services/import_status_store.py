"""
app/services/import_status_store.py

Import status storage keyed by import id, with optional expiry.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.config import get_import_status_settings
from db.models.destination_import_job import DestinationImportJob, ImportJobStatus
from db.repositories.destination_import_job_repository import DestinationImportJobRepository

logger = logging.getLogger(__name__)


class ImportStatusStoreError(RuntimeError):
    """
    Raised when the status backend cannot be read or written.
    """


@dataclass(frozen=True)
class ImportStatusRecord:
    """
    Status snapshot of one committed (or failed) import.
    """

    import_id: str
    status: str
    created_at: datetime
    result: dict[str, Any] | None = None
    error_message: str | None = None
    file_name: str | None = None
    file_hash: str | None = None

    @classmethod
    def completed(
        cls,
        *,
        import_id: str,
        result: dict[str, Any],
        file_name: str | None = None,
        file_hash: str | None = None,
    ) -> "ImportStatusRecord":
        return cls(
            import_id=import_id,
            status=ImportJobStatus.COMPLETED,
            created_at=datetime.now(timezone.utc),
            result=result,
            file_name=file_name,
            file_hash=file_hash,
        )

    @classmethod
    def failed(
        cls,
        *,
        import_id: str,
        error_message: str,
        file_name: str | None = None,
        file_hash: str | None = None,
    ) -> "ImportStatusRecord":
        return cls(
            import_id=import_id,
            status=ImportJobStatus.FAILED,
            created_at=datetime.now(timezone.utc),
            error_message=error_message,
            file_name=file_name,
            file_hash=file_hash,
        )


class ImportStatusStore(ABC):
    """
    put/get/delete abstraction for import status lookups.
    """

    @abstractmethod
    def put(self, record: ImportStatusRecord, *, ttl_seconds: float | None = None) -> None:
        """
        Insert or replace the record for ``record.import_id``.
        """

    @abstractmethod
    def get(self, import_id: str) -> ImportStatusRecord | None:
        """
        Return the live record, or None when unknown or expired.
        """

    @abstractmethod
    def delete(self, import_id: str) -> bool:
        """
        Remove a record. Returns False when nothing was stored.
        """

    @abstractmethod
    def find_completed_by_file_hash(self, file_hash: str) -> ImportStatusRecord | None:
        """
        Latest live completed import of the same file bytes, if any.
        """


class InMemoryImportStatusStore(ImportStatusStore):
    """
    Process-local store with per-entry expiry.
    """

    def __init__(
        self,
        *,
        default_ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl_seconds = (
            default_ttl_seconds
            if default_ttl_seconds is not None
            else get_import_status_settings().ttl_seconds
        )
        self._clock = clock
        self._entries: dict[str, tuple[ImportStatusRecord, float | None]] = {}
        self._lock = threading.Lock()

    def put(self, record: ImportStatusRecord, *, ttl_seconds: float | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl_seconds
        expires_at = self._clock() + ttl if ttl and ttl > 0 else None
        with self._lock:
            self._entries[record.import_id] = (record, expires_at)

    def get(self, import_id: str) -> ImportStatusRecord | None:
        with self._lock:
            entry = self._entries.get(import_id)
            if entry is None:
                return None
            record, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._entries[import_id]
                return None
            return record

    def delete(self, import_id: str) -> bool:
        with self._lock:
            return self._entries.pop(import_id, None) is not None

    def find_completed_by_file_hash(self, file_hash: str) -> ImportStatusRecord | None:
        now = self._clock()
        with self._lock:
            matches = [
                record
                for record, expires_at in self._entries.values()
                if record.file_hash == file_hash
                and record.status == ImportJobStatus.COMPLETED
                and (expires_at is None or now < expires_at)
            ]
        if not matches:
            return None
        return max(matches, key=lambda record: record.created_at)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [
                import_id
                for import_id, (_, expires_at) in self._entries.items()
                if expires_at is not None and now >= expires_at
            ]
            for import_id in expired:
                del self._entries[import_id]
        return len(expired)


class SqlAlchemyImportStatusStore(ImportStatusStore):
    """
    Status store backed by the destination_import_jobs table.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session],
        default_ttl_seconds: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._default_ttl_seconds = (
            default_ttl_seconds
            if default_ttl_seconds is not None
            else get_import_status_settings().ttl_seconds
        )

    def put(self, record: ImportStatusRecord, *, ttl_seconds: float | None = None) -> None:
        job_id = _parse_import_id(record.import_id)
        if job_id is None:
            raise ImportStatusStoreError(f"Import id '{record.import_id}' is not a UUID.")

        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl_seconds
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl) if ttl and ttl > 0 else None

        try:
            with self._session_factory() as session, session.begin():
                DestinationImportJobRepository(session).upsert_job(
                    job_id=job_id,
                    status=record.status,
                    file_name=record.file_name,
                    file_hash=record.file_hash,
                    result_payload=record.result,
                    error_message=record.error_message,
                    expires_at=expires_at,
                )
        except SQLAlchemyError as exc:
            raise ImportStatusStoreError("Failed to persist import status.") from exc

    def get(self, import_id: str) -> ImportStatusRecord | None:
        job_id = _parse_import_id(import_id)
        if job_id is None:
            return None

        try:
            with self._session_factory() as session:
                return _to_live_record(DestinationImportJobRepository(session).get_job(job_id))
        except SQLAlchemyError as exc:
            raise ImportStatusStoreError("Failed to read import status.") from exc

    def delete(self, import_id: str) -> bool:
        job_id = _parse_import_id(import_id)
        if job_id is None:
            return False

        try:
            with self._session_factory() as session, session.begin():
                return DestinationImportJobRepository(session).delete_job(job_id)
        except SQLAlchemyError as exc:
            raise ImportStatusStoreError("Failed to delete import status.") from exc

    def find_completed_by_file_hash(self, file_hash: str) -> ImportStatusRecord | None:
        try:
            with self._session_factory() as session:
                job = DestinationImportJobRepository(session).find_completed_by_file_hash(file_hash)
                return _to_live_record(job)
        except SQLAlchemyError as exc:
            raise ImportStatusStoreError("Failed to look up import status by file hash.") from exc

    def purge_expired(self) -> int:
        try:
            with self._session_factory() as session, session.begin():
                return DestinationImportJobRepository(session).purge_expired()
        except SQLAlchemyError as exc:
            raise ImportStatusStoreError("Failed to purge expired import statuses.") from exc


def _to_live_record(job: DestinationImportJob | None) -> ImportStatusRecord | None:
    if job is None:
        return None
    if job.expires_at is not None and _as_utc(job.expires_at) <= datetime.now(timezone.utc):
        return None
    return ImportStatusRecord(
        import_id=str(job.id),
        status=job.status,
        created_at=_as_utc(job.created_at),
        result=job.result_payload,
        error_message=job.error_message,
        file_name=job.file_name,
        file_hash=job.file_hash,
    )


def _parse_import_id(import_id: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(import_id))
    except ValueError:
        return None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
