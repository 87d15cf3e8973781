"""
SQLAlchemy-backed destination store.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.domain.destination_import import DestinationWrite, DuplicateIndex
from app.repositories.destination_repository import DestinationRepository
from app.storage.base import DestinationSink, DestinationSinkError, PersistOutcome
from db.models.destination import Destination

logger = logging.getLogger(__name__)


class SQLAlchemyDestinationStore(DestinationSink):
    """
    Persists destinations through the repository in one transaction per
    commit, and serves the duplicate index from the same table.
    """

    def __init__(self, *, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def persist(
        self,
        writes: Sequence[DestinationWrite],
        *,
        import_id: str,
        batch_size: int,
    ) -> PersistOutcome:
        if not writes:
            return PersistOutcome()

        import_uuid = uuid.UUID(import_id)
        inserts = [write for write in writes if not write.is_overwrite]
        updated = 0

        try:
            with self._session_factory() as session, session.begin():
                repository = DestinationRepository(session)
                for write in writes:
                    if not write.is_overwrite:
                        continue
                    if repository.overwrite(write, import_id=import_uuid):
                        updated += 1
                    else:
                        logger.warning(
                            "Overwrite target vanished, inserting instead import_id=%s row=%s existing_id=%s",
                            import_id,
                            write.source_row,
                            write.existing_id,
                        )
                        inserts.append(write)
                inserted = repository.bulk_insert(inserts, import_id=import_uuid, batch_size=batch_size)
        except IntegrityError as exc:
            raise DestinationSinkError(
                "A destination with the same identity was stored concurrently; nothing was imported."
            ) from exc
        except SQLAlchemyError as exc:
            raise DestinationSinkError("Failed to persist destinations.") from exc

        return PersistOutcome(inserted=inserted, updated=updated)

    def load_duplicate_index(self) -> DuplicateIndex:
        with self._session_factory() as session:
            return DuplicateIndex.from_records(DestinationRepository(session).load_index_records())

    def list_destinations(self, **filters: object) -> list[Destination]:
        with self._session_factory() as session:
            return DestinationRepository(session).list_destinations(**filters)
