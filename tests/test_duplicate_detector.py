from __future__ import annotations

import pytest

from app.domain.destination_import import RawRow
from app.services.duplicate_detector import (
    DuplicateDetector,
    DuplicateIndex,
    IndexedDestination,
    StaticDuplicateIndexProvider,
    build_identity_key,
    normalize_name,
)
from app.validators.destination_schema import DestinationSchemaValidator


@pytest.fixture()
def schema_validator(settings) -> DestinationSchemaValidator:
    return DestinationSchemaValidator(settings=settings)


def _index_from_outcome(outcome, record_id: str = "dest-1") -> DuplicateIndex:
    candidate = outcome.candidate
    return DuplicateIndex.from_records(
        [
            IndexedDestination(
                id=record_id,
                name_en=candidate.name_en,
                name_th=candidate.name_th,
                lat=candidate.lat,
                lng=candidate.lng,
            )
        ]
    )


def test_normalize_name_collapses_whitespace_and_case() -> None:
    assert normalize_name("  Chatuchak   WEEKEND\tMarket ") == "chatuchak weekend market"


def test_identity_key_rounds_coordinates_to_six_decimals() -> None:
    assert build_identity_key("Siam", 13.7456, 100.5341) == "siam|13.745600|100.534100"
    assert build_identity_key("Siam", 13.74560001, 100.5341) == build_identity_key("SIAM ", 13.7456, 100.5341)


def test_second_row_matches_index_built_from_first(schema_validator, valid_row_values) -> None:
    first = schema_validator.validate(RawRow(row_number=1, values=valid_row_values()))
    second = schema_validator.validate(
        RawRow(row_number=2, values=valid_row_values(name_en="chatuchak  weekend MARKET"))
    )

    first_check = DuplicateDetector(DuplicateIndex()).check(first)
    second_check = DuplicateDetector(_index_from_outcome(first)).check(second)

    assert first_check.is_duplicate is False
    assert second_check.is_duplicate is True
    assert second_check.existing_match is not None
    assert second_check.existing_match.id == "dest-1"
    assert second_check.existing_match.name_en == "Chatuchak Weekend Market"


def test_different_coordinates_are_not_duplicates(schema_validator, valid_row_values) -> None:
    stored = schema_validator.validate(RawRow(row_number=1, values=valid_row_values()))
    moved = schema_validator.validate(RawRow(row_number=2, values=valid_row_values(lat="13.8")))

    check = DuplicateDetector(_index_from_outcome(stored)).check(moved)

    assert check.is_duplicate is False
    assert check.identity_key is not None


def test_rows_with_invalid_identity_fields_are_not_checked(schema_validator, valid_row_values) -> None:
    stored = schema_validator.validate(RawRow(row_number=1, values=valid_row_values()))
    broken = schema_validator.validate(RawRow(row_number=2, values=valid_row_values(lat="12.0")))

    check = DuplicateDetector(_index_from_outcome(stored)).check(broken)

    assert check.is_duplicate is False
    assert check.identity_key is None


def test_index_is_read_only_and_keeps_first_record() -> None:
    index = DuplicateIndex.from_records(
        [
            IndexedDestination(id="a", name_en="Siam", name_th="สยาม", lat=13.7, lng=100.5),
            IndexedDestination(id="b", name_en="siam", name_th="สยาม", lat=13.7, lng=100.5),
        ]
    )

    assert len(index) == 1
    key = next(iter(index))
    assert key in index
    assert index.lookup(key).id == "a"
    with pytest.raises(TypeError):
        index._entries[key] = None  # type: ignore[index]


def test_static_provider_serves_empty_index_by_default() -> None:
    assert len(StaticDuplicateIndexProvider().load_duplicate_index()) == 0
