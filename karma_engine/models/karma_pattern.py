"""
KarmaPattern — per-user cache of one detected behavioral pattern.

Derived from karma_entries; the ledger stays the source of truth.
One row per (user_id, pattern_key), upserted after every analysis run.
"""
from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import Integer, String, Text, DateTime, Date, Numeric, Enum, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from karma_engine.db.base import Base
from karma_engine.models.karma_entry import KarmaType


class KarmaPattern(Base):
    __tablename__ = "karma_patterns"
    __table_args__ = (
        UniqueConstraint("user_id", "pattern_key", name="uq_karma_pattern_user_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    pattern_key: Mapped[str] = mapped_column(String(100), nullable=False)
    pattern_name: Mapped[str] = mapped_column(String(200), nullable=False)
    pattern_type: Mapped[str] = mapped_column(
        Enum(KarmaType, name="karma_type_enum"), nullable=False
    )
    frequency_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_score_impact: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    first_detected_date: Mapped[date] = mapped_column(Date, nullable=False)
    last_detected_date: Mapped[date] = mapped_column(Date, nullable=False)
    sample_actions: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON array, at most 5 truncated action texts",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )
