"""
app/services package marker.
"""

from app.services.destination_export_service import export_destinations, generate_csv_template
from app.services.destination_import_service import (
    DestinationImportService,
    get_destination_import_service,
)
from app.services.import_committer import ImportCommitError, ImportCommitter

__all__ = [
    "DestinationImportService",
    "ImportCommitError",
    "ImportCommitter",
    "export_destinations",
    "generate_csv_template",
    "get_destination_import_service",
]
