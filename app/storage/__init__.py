"""
app/storage package marker.
"""

from app.storage.base import DestinationSink, DestinationSinkError, PersistOutcome
from app.storage.memory_storage import InMemoryDestinationSink, StoredDestination
from app.storage.sqlalchemy_storage import SQLAlchemyDestinationStore

__all__ = [
    "DestinationSink",
    "DestinationSinkError",
    "InMemoryDestinationSink",
    "PersistOutcome",
    "SQLAlchemyDestinationStore",
    "StoredDestination",
]
