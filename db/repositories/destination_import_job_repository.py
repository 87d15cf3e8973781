"""
Repository for destination import job persistence and status lookup.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, delete, select
from sqlalchemy.orm import Session

from db.models.destination_import_job import DestinationImportJob, ImportJobStatus


class DestinationImportJobRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def upsert_job(
        self,
        *,
        job_id: uuid.UUID,
        status: str,
        file_name: str | None = None,
        file_hash: str | None = None,
        result_payload: dict[str, Any] | None = None,
        error_message: str | None = None,
        expires_at: datetime | None = None,
    ) -> DestinationImportJob:
        job = self.get_job(job_id)
        if job is None:
            job = DestinationImportJob(id=job_id)
            self._session.add(job)

        job.status = status
        job.file_name = file_name
        job.file_hash = file_hash
        job.result_payload = result_payload
        job.error_message = error_message
        job.expires_at = expires_at
        self._session.flush()
        return job

    def get_job(self, job_id: uuid.UUID) -> DestinationImportJob | None:
        return self._session.get(DestinationImportJob, job_id)

    def find_completed_by_file_hash(self, file_hash: str) -> DestinationImportJob | None:
        stmt: Select[tuple[DestinationImportJob]] = (
            select(DestinationImportJob)
            .where(DestinationImportJob.file_hash == file_hash)
            .where(DestinationImportJob.status == ImportJobStatus.COMPLETED)
            .order_by(DestinationImportJob.created_at.desc())
            .limit(1)
        )
        return self._session.scalars(stmt).first()

    def delete_job(self, job_id: uuid.UUID) -> bool:
        job = self.get_job(job_id)
        if job is None:
            return False
        self._session.delete(job)
        self._session.flush()
        return True

    def purge_expired(self, *, now: datetime | None = None) -> int:
        cutoff = now or datetime.now(timezone.utc)
        result = self._session.execute(
            delete(DestinationImportJob).where(DestinationImportJob.expires_at < cutoff)
        )
        return result.rowcount or 0
