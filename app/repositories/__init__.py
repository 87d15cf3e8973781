"""
app/repositories package marker.
"""

from app.repositories.destination_repository import DestinationRepository

__all__ = [
    "DestinationRepository",
]
