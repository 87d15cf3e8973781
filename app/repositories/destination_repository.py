"""
app/repositories/destination_repository.py

Persistence layer for stored destinations.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import Select, insert, select
from sqlalchemy.orm import Session

from app.domain.destination_import import DestinationWrite, IndexedDestination
from db.models.destination import Destination

_DEFAULT_BATCH_SIZE = 100


class DestinationRepository:
    """
    Repository for destination reads and batch writes.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def load_index_records(self) -> list[IndexedDestination]:
        """
        Identity fields of every stored destination, active or not.
        """

        stmt = select(
            Destination.id,
            Destination.name_en,
            Destination.name_th,
            Destination.lat,
            Destination.lng,
        )
        return [
            IndexedDestination(
                id=str(row.id),
                name_en=row.name_en,
                name_th=row.name_th,
                lat=row.lat,
                lng=row.lng,
            )
            for row in self._session.execute(stmt)
        ]

    def bulk_insert(
        self,
        writes: Sequence[DestinationWrite],
        *,
        import_id: uuid.UUID,
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Insert new destinations in chunks. Relies on the identity_key unique
        constraint to reject identities another import stored concurrently.
        """

        if not writes:
            return 0

        size = max(1, batch_size)
        payloads = [self._to_payload(write, import_id=import_id) for write in writes]
        for start in range(0, len(payloads), size):
            chunk = payloads[start : start + size]
            self._session.execute(insert(Destination), chunk)
        self._session.flush()
        return len(payloads)

    def overwrite(self, write: DestinationWrite, *, import_id: uuid.UUID) -> bool:
        """
        Replace the stored record ``write.existing_id``. Returns False when
        that record no longer exists.
        """

        if write.existing_id is None:
            return False

        destination = self._session.get(Destination, uuid.UUID(write.existing_id))
        if destination is None:
            return False

        for column, value in self._to_payload(write, import_id=import_id).items():
            if column == "id":
                continue
            setattr(destination, column, value)
        self._session.flush()
        return True

    def list_destinations(
        self,
        *,
        include_inactive: bool = False,
        category: str | None = None,
        district: str | None = None,
        budget_band: str | None = None,
        is_active: bool | None = None,
    ) -> list[Destination]:
        stmt: Select[tuple[Destination]] = select(Destination)

        if is_active is not None:
            stmt = stmt.where(Destination.is_active.is_(is_active))
        elif not include_inactive:
            stmt = stmt.where(Destination.is_active.is_(True))
        if category:
            stmt = stmt.where(Destination.category == category)
        if district:
            stmt = stmt.where(Destination.district == district)
        if budget_band:
            stmt = stmt.where(Destination.budget_band == budget_band)

        stmt = stmt.order_by(Destination.name_en)
        return list(self._session.scalars(stmt).all())

    @staticmethod
    def _to_payload(write: DestinationWrite, *, import_id: uuid.UUID) -> dict[str, Any]:
        candidate = write.candidate
        return {
            "id": uuid.uuid4(),
            "identity_key": write.identity_key,
            "name_th": candidate.name_th,
            "name_en": candidate.name_en,
            "description_th": candidate.description_th,
            "description_en": candidate.description_en,
            "category": candidate.category,
            "budget_band": candidate.budget_band,
            "district": candidate.district,
            "lat": candidate.lat,
            "lng": candidate.lng,
            "mood_tags": list(candidate.mood_tags),
            "image_url": candidate.image_url,
            "instagram_score": candidate.instagram_score,
            "opening_hours": dict(candidate.opening_hours),
            "transport_access": candidate.transport_access,
            "is_active": candidate.is_active,
            "import_id": import_id,
        }
