"""
KarmaScoreSummary — per-user rollup of one period.

period_type values:
  "daily"    — a single calendar day
  "weekly"   — Sunday-anchored 7-day window
  "monthly"  — a calendar month

Unique per (user_id, period_type, period_start). Recomputing a period
updates the existing row in place.
"""
from datetime import datetime, date
from decimal import Decimal

from sqlalchemy import Integer, String, Text, DateTime, Date, Numeric, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from karma_engine.db.base import Base


class KarmaScoreSummary(Base):
    __tablename__ = "karma_score_summaries"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "period_type", "period_start",
            name="uq_score_summary_user_period",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    period_type: Mapped[str] = mapped_column(
        String(16), nullable=False,
        comment='"daily", "weekly" or "monthly"',
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    karma_score: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("50"),
        comment="0.00–100.00, 50 is neutral",
    )
    total_good_actions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_bad_actions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_neutral_actions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_positive_points: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    total_negative_points: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    ai_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    prediction: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
