"""
Repository layer exports.
"""

from db.repositories.destination_import_job_repository import DestinationImportJobRepository

__all__ = [
    "DestinationImportJobRepository",
]
