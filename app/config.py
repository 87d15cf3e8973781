"""
app/config.py

Application-level configuration helpers for destination imports.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


@dataclass(frozen=True)
class DestinationImportSettings:
    """
    Limits and thresholds for destination CSV imports.

    recommended_mood_tags defaults to the max_mood_tags cap, so the tag-count
    warning only fires when it is configured below the cap.
    """

    max_file_size_bytes: int = 10 * 1024 * 1024
    max_rows: int = 1000
    max_name_length: int = 100
    max_description_length: int = 200
    max_category_length: int = 50
    max_district_length: int = 50
    max_mood_tags: int = 5
    recommended_mood_tags: int = 5
    low_score_threshold: int = 3
    image_max_size_bytes: int = 5 * 1024 * 1024
    max_workers: int = 8
    log_validation_errors: bool = True


@dataclass(frozen=True)
class ImageProbeSettings:
    """
    HTTP behavior for image accessibility probes.
    """

    timeout_seconds: float = 10.0
    user_agent: str = "destination-import/1.0"
    allow_redirects: bool = True


@dataclass(frozen=True)
class ImportStatusSettings:
    """
    Retention for import status entries.
    """

    ttl_seconds: float = 24 * 60 * 60


@lru_cache(maxsize=1)
def get_destination_import_settings() -> DestinationImportSettings:
    """
    Return cached destination import settings from environment variables.
    """

    max_mood_tags = max(1, _get_int_env("DESTINATION_IMPORT_MAX_MOOD_TAGS", 5))
    return DestinationImportSettings(
        max_file_size_bytes=max(1, _get_int_env("DESTINATION_IMPORT_MAX_FILE_SIZE_BYTES", 10 * 1024 * 1024)),
        max_rows=max(1, _get_int_env("DESTINATION_IMPORT_MAX_ROWS", 1000)),
        max_name_length=max(1, _get_int_env("DESTINATION_IMPORT_MAX_NAME_LENGTH", 100)),
        max_description_length=max(1, _get_int_env("DESTINATION_IMPORT_MAX_DESCRIPTION_LENGTH", 200)),
        max_category_length=max(1, _get_int_env("DESTINATION_IMPORT_MAX_CATEGORY_LENGTH", 50)),
        max_district_length=max(1, _get_int_env("DESTINATION_IMPORT_MAX_DISTRICT_LENGTH", 50)),
        max_mood_tags=max_mood_tags,
        recommended_mood_tags=max(1, _get_int_env("DESTINATION_IMPORT_RECOMMENDED_MOOD_TAGS", max_mood_tags)),
        low_score_threshold=_get_int_env("DESTINATION_IMPORT_LOW_SCORE_THRESHOLD", 3),
        image_max_size_bytes=max(1, _get_int_env("DESTINATION_IMPORT_IMAGE_MAX_SIZE_BYTES", 5 * 1024 * 1024)),
        max_workers=max(1, _get_int_env("DESTINATION_IMPORT_MAX_WORKERS", 8)),
        log_validation_errors=_get_bool_env("DESTINATION_IMPORT_LOG_VALIDATION_ERRORS", True),
    )


@lru_cache(maxsize=1)
def get_image_probe_settings() -> ImageProbeSettings:
    """
    Return image probe HTTP settings from environment variables.
    """

    return ImageProbeSettings(
        timeout_seconds=max(0.5, _get_float_env("IMAGE_PROBE_TIMEOUT_SECONDS", 10.0)),
        user_agent=_get_str_env("IMAGE_PROBE_USER_AGENT", "destination-import/1.0"),
        allow_redirects=_get_bool_env("IMAGE_PROBE_ALLOW_REDIRECTS", True),
    )


@lru_cache(maxsize=1)
def get_import_status_settings() -> ImportStatusSettings:
    """
    Return import status retention settings.
    """

    return ImportStatusSettings(
        ttl_seconds=max(1.0, _get_float_env("IMPORT_STATUS_TTL_SECONDS", 24 * 60 * 60)),
    )
