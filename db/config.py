"""
Environment-driven configuration for the destination store.
"""

from __future__ import annotations

import os
from pathlib import Path

_ENV_FILENAMES = (".env", ".env.local")
_SUPPORTED_URL_PREFIXES = ("postgresql", "sqlite")


def load_env_files(project_root: Path | None = None) -> None:
    """
    Load KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Variables already set in the process environment win.
    """

    root = project_root or Path(__file__).resolve().parents[1]
    for filename in _ENV_FILENAMES:
        env_path = root / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            if key.startswith("export "):
                key = key[len("export ") :].strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


def normalize_database_url(url: str) -> str:
    """
    Map bare postgres URLs onto SQLAlchemy's psycopg driver form.
    """

    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def resolve_database_url() -> str:
    """
    Resolve the destination store URL.

    Priority:
    1) DESTINATIONS_DATABASE_URL
    2) DATABASE_URL
    """

    load_env_files()

    for name in ("DESTINATIONS_DATABASE_URL", "DATABASE_URL"):
        raw = os.getenv(name)
        if raw and raw.strip():
            url = normalize_database_url(raw.strip())
            if not url.startswith(_SUPPORTED_URL_PREFIXES):
                raise RuntimeError(
                    f"{name} must be a PostgreSQL or SQLite URL, got scheme "
                    f"'{url.split(':', 1)[0]}'."
                )
            return url

    raise RuntimeError(
        "No database URL configured. Set DESTINATIONS_DATABASE_URL or DATABASE_URL."
    )
