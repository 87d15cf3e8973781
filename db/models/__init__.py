"""
Model package exports.

Import all SQLAlchemy models here so metadata registration works without
extra imports.
"""

from db.models.destination import Destination
from db.models.destination_import_job import DestinationImportJob

__all__ = [
    "Destination",
    "DestinationImportJob",
]
