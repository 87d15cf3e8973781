"""
db/models/destination_import_job.py

Import run tracking, keyed by the import id handed back to callers.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class ImportJobStatus:
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class DestinationImportJob(Base, TimestampMixin):
    __tablename__ = "destination_import_jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ImportJobStatus.PROCESSING,
        comment="processing, completed, failed",
    )
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="SHA-256 of the uploaded bytes",
    )
    result_payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
        comment="Summary and issue counts of the committed run",
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_destination_import_jobs_status", "status"),
        Index("ix_destination_import_jobs_expires_at", "expires_at"),
        Index("ix_destination_import_jobs_file_hash", "file_hash"),
    )
