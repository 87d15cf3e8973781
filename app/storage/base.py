"""
Storage layer interfaces for committed destinations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

from app.domain.destination_import import DestinationWrite


class DestinationSinkError(RuntimeError):
    """
    Raised when a commit batch cannot be persisted. Nothing from the batch
    is stored when this is raised.
    """


@dataclass(frozen=True)
class PersistOutcome:
    inserted: int = 0
    updated: int = 0


class DestinationSink(ABC):
    """
    Persistence abstraction for validated destinations.
    """

    @abstractmethod
    def persist(
        self,
        writes: Sequence[DestinationWrite],
        *,
        import_id: str,
        batch_size: int,
    ) -> PersistOutcome:
        """
        Store all writes atomically and report how many were inserted/updated.
        """
