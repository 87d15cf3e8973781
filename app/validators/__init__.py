"""
app/validators package marker.
"""

from app.validators.business_rules import BusinessRuleFindings, DestinationBusinessRuleValidator
from app.validators.destination_schema import (
    REQUIRED_COLUMNS,
    DestinationSchemaValidator,
    FieldRuleViolation,
    FieldSchema,
    SchemaValidationOutcome,
)

__all__ = [
    "BusinessRuleFindings",
    "DestinationBusinessRuleValidator",
    "DestinationSchemaValidator",
    "FieldRuleViolation",
    "FieldSchema",
    "REQUIRED_COLUMNS",
    "SchemaValidationOutcome",
]
