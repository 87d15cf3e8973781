"""
app/validators/destination_schema.py

Table-driven structural validation of destination rows.

Each column maps to an ordered chain of rules. A rule receives the value
produced by the previous rule (the raw string for the first one) and returns
the converted value, or raises FieldRuleViolation. The first violation in a
chain is the column's only error; columns are validated independently.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any
from urllib.parse import urlparse

from app.config import DestinationImportSettings, get_destination_import_settings
from app.domain.destination_import import (
    DestinationCandidate,
    RawRow,
    Severity,
    ValidationIssue,
)
from db.models.destination import BangkokBounds, BudgetBand, MoodTag, TransportAccess

REQUIRED_COLUMNS: tuple[str, ...] = (
    "name_th",
    "name_en",
    "description_th",
    "description_en",
    "category",
    "budget_band",
    "district",
    "lat",
    "lng",
    "mood_tags",
    "image_url",
    "instagram_score",
    "opening_hours",
    "transport_access",
    "is_active",
)

_CLOCK_TIME = r"(?:[01]\d|2[0-3]):[0-5]\d"
TIME_RANGE_PATTERN = re.compile(rf"^{_CLOCK_TIME}-(?:{_CLOCK_TIME}|24:00)$")

_TRUE_VALUES = {"true", "1", "yes"}
_FALSE_VALUES = {"false", "0", "no"}

MIN_INSTAGRAM_SCORE = 1
MAX_INSTAGRAM_SCORE = 10


class FieldRuleViolation(ValueError):
    """
    Raised by a field rule when the value breaks the column contract.
    """


FieldRule = Callable[[Any], Any]


# ---------------------------------------------------------------------------
# Rule factories
# ---------------------------------------------------------------------------


def required() -> FieldRule:
    def rule(value: str) -> str:
        if value.strip() == "":
            raise FieldRuleViolation("Required value is missing.")
        return value

    return rule


def max_length(limit: int) -> FieldRule:
    def rule(value: str) -> str:
        if len(value) > limit:
            raise FieldRuleViolation(f"Value must be at most {limit} characters (got {len(value)}).")
        return value

    return rule


def one_of(allowed: Iterable[str]) -> FieldRule:
    choices = tuple(allowed)

    def rule(value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in choices:
            raise FieldRuleViolation(f"Unsupported value. Allowed values: {', '.join(choices)}.")
        return normalized

    return rule


def as_float() -> FieldRule:
    def rule(value: str) -> float:
        try:
            number = float(value)
        except ValueError as exc:
            raise FieldRuleViolation("Value must be a number.") from exc
        if not math.isfinite(number):
            raise FieldRuleViolation("Value must be a finite number.")
        return number

    return rule


def as_whole_number() -> FieldRule:
    def rule(value: str) -> int:
        number = as_float()(value)
        if not number.is_integer():
            raise FieldRuleViolation("Value must be a whole number.")
        return int(number)

    return rule


def between(minimum: float, maximum: float, message: str) -> FieldRule:
    def rule(value: float) -> float:
        if value < minimum or value > maximum:
            raise FieldRuleViolation(message)
        return value

    return rule


def as_bool() -> FieldRule:
    def rule(value: str) -> bool:
        normalized = value.strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
        raise FieldRuleViolation("Value must be true or false.")

    return rule


def http_url() -> FieldRule:
    def rule(value: str) -> str:
        if any(character.isspace() for character in value):
            raise FieldRuleViolation("Invalid URL: whitespace is not allowed.")
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise FieldRuleViolation("Invalid URL: expected an absolute http(s) URL.")
        return value

    return rule


def time_range_object() -> FieldRule:
    def rule(value: str) -> dict[str, str]:
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError as exc:
            raise FieldRuleViolation("Opening hours must be a valid JSON object.") from exc
        if not isinstance(parsed, dict):
            raise FieldRuleViolation("Opening hours must be a JSON object.")
        for day, hours in parsed.items():
            if not isinstance(hours, str) or not TIME_RANGE_PATTERN.match(hours):
                raise FieldRuleViolation(
                    f"Opening hours for '{day}' must match HH:MM-HH:MM."
                )
        return parsed

    return rule


def tag_list(vocabulary: Iterable[str], *, max_tags: int) -> FieldRule:
    allowed = tuple(vocabulary)

    def rule(value: str) -> tuple[str, ...]:
        tags = [tag.strip().lower() for tag in value.split(",")]
        if any(tag == "" for tag in tags):
            raise FieldRuleViolation("Mood tags must not contain empty entries.")
        if len(tags) > max_tags:
            raise FieldRuleViolation(f"At most {max_tags} mood tags are allowed (got {len(tags)}).")
        unknown = [tag for tag in tags if tag not in allowed]
        if unknown:
            raise FieldRuleViolation(
                f"Unsupported mood tags: {', '.join(unknown)}. Allowed values: {', '.join(allowed)}."
            )
        return tuple(dict.fromkeys(tags))

    return rule


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldSchema:
    name: str
    rules: tuple[FieldRule, ...]


def build_field_schemas(settings: DestinationImportSettings) -> dict[str, FieldSchema]:
    """
    Column name -> rule chain, in canonical column order.
    """

    lat_message = (
        f"Latitude must be within the Bangkok area "
        f"({BangkokBounds.LAT_MIN} to {BangkokBounds.LAT_MAX})."
    )
    lng_message = (
        f"Longitude must be within the Bangkok area "
        f"({BangkokBounds.LNG_MIN} to {BangkokBounds.LNG_MAX})."
    )
    score_message = (
        f"Instagram score must be between {MIN_INSTAGRAM_SCORE} and {MAX_INSTAGRAM_SCORE}."
    )

    rules: dict[str, tuple[FieldRule, ...]] = {
        "name_th": (required(), max_length(settings.max_name_length)),
        "name_en": (required(), max_length(settings.max_name_length)),
        "description_th": (max_length(settings.max_description_length),),
        "description_en": (max_length(settings.max_description_length),),
        "category": (required(), max_length(settings.max_category_length)),
        "budget_band": (required(), one_of(BudgetBand.ALL)),
        "district": (required(), max_length(settings.max_district_length)),
        "lat": (
            required(),
            as_float(),
            between(BangkokBounds.LAT_MIN, BangkokBounds.LAT_MAX, lat_message),
        ),
        "lng": (
            required(),
            as_float(),
            between(BangkokBounds.LNG_MIN, BangkokBounds.LNG_MAX, lng_message),
        ),
        "mood_tags": (required(), tag_list(MoodTag.ALL, max_tags=settings.max_mood_tags)),
        "image_url": (required(), http_url()),
        "instagram_score": (
            required(),
            as_whole_number(),
            between(MIN_INSTAGRAM_SCORE, MAX_INSTAGRAM_SCORE, score_message),
        ),
        "opening_hours": (required(), time_range_object()),
        "transport_access": (required(), one_of(TransportAccess.ALL)),
        "is_active": (required(), as_bool()),
    }
    return {name: FieldSchema(name=name, rules=rules[name]) for name in REQUIRED_COLUMNS}


@dataclass(frozen=True)
class SchemaValidationOutcome:
    """
    Per-row schema result. ``parsed`` holds only the columns that passed.
    """

    row_number: int
    parsed: Mapping[str, Any]
    errors: tuple[ValidationIssue, ...]
    candidate: DestinationCandidate | None

    def passed(self, column: str) -> bool:
        return column in self.parsed


class DestinationSchemaValidator:
    """
    Validates raw rows against the field registry.
    """

    def __init__(
        self,
        *,
        settings: DestinationImportSettings | None = None,
        schemas: Mapping[str, FieldSchema] | None = None,
    ) -> None:
        resolved_settings = settings or get_destination_import_settings()
        self._schemas = dict(schemas) if schemas is not None else build_field_schemas(resolved_settings)

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(self._schemas)

    def validate(self, raw_row: RawRow) -> SchemaValidationOutcome:
        parsed: dict[str, Any] = {}
        errors: list[ValidationIssue] = []

        for name, schema in self._schemas.items():
            raw_value = raw_row.get(name)
            if raw_value is None:
                errors.append(
                    ValidationIssue(
                        row=raw_row.row_number,
                        field=name,
                        message="Required column is missing.",
                        value=None,
                        severity=Severity.ERROR,
                    )
                )
                continue

            try:
                parsed[name] = self._apply_rules(schema.rules, raw_value)
            except FieldRuleViolation as exc:
                errors.append(
                    ValidationIssue(
                        row=raw_row.row_number,
                        field=name,
                        message=str(exc),
                        value=raw_value,
                        severity=Severity.ERROR,
                    )
                )

        candidate = None
        if not errors and set(REQUIRED_COLUMNS).issubset(parsed):
            candidate = DestinationCandidate(**{column: parsed[column] for column in REQUIRED_COLUMNS})

        return SchemaValidationOutcome(
            row_number=raw_row.row_number,
            parsed=MappingProxyType(parsed),
            errors=tuple(errors),
            candidate=candidate,
        )

    @staticmethod
    def _apply_rules(rules: tuple[FieldRule, ...], raw_value: str) -> Any:
        value: Any = raw_value
        for rule in rules:
            value = rule(value)
        return value
