"""
db/models/destination.py

Stored destination record and its closed vocabularies.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import JSON, Boolean, Float, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class BudgetBand:
    LOW = "low"
    MID = "mid"
    HIGH = "high"

    ALL = (LOW, MID, HIGH)


class TransportAccess:
    BTS_MRT = "bts_mrt"
    TAXI = "taxi"
    WALK = "walk"
    MIXED = "mixed"

    ALL = (BTS_MRT, TAXI, WALK, MIXED)


class MoodTag:
    CHILL = "chill"
    ADVENTURE = "adventure"
    FOODIE = "foodie"
    CULTURAL = "cultural"
    SOCIAL = "social"
    ROMANTIC = "romantic"

    ALL = (CHILL, ADVENTURE, FOODIE, CULTURAL, SOCIAL, ROMANTIC)


class BangkokBounds:
    LAT_MIN = 13.0
    LAT_MAX = 14.0
    LNG_MIN = 100.0
    LNG_MAX = 101.0


class Destination(Base, TimestampMixin):
    __tablename__ = "destinations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    identity_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Normalized name_en + coordinates; one stored row per identity",
    )
    name_th: Mapped[str] = mapped_column(String(100), nullable=False)
    name_en: Mapped[str] = mapped_column(String(100), nullable=False)
    description_th: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description_en: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    budget_band: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="low, mid, high",
    )
    district: Mapped[str] = mapped_column(String(50), nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)
    mood_tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    instagram_score: Mapped[int] = mapped_column(Integer, nullable=False)
    opening_hours: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    transport_access: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="bts_mrt, taxi, walk, mixed",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    import_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        comment="Import run that last wrote this record",
    )

    __table_args__ = (
        UniqueConstraint("identity_key"),
        Index("ix_destinations_category", "category"),
        Index("ix_destinations_district", "district"),
        Index("ix_destinations_is_active", "is_active"),
    )
