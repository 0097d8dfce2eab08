"""
KarmaEntry — one classified user action.

Append-only ledger. The only mutation after creation is the soft-delete
flag; rows are never hard-deleted.

classification: JSON-encoded dict stored as Text with the keys
  type, confidence, emotion, category, weight, pattern_key, reasoning,
  habit_recommendation, tier
"""
import enum
import json
from datetime import datetime, date
from decimal import Decimal
from typing import Any

from sqlalchemy import Integer, String, Text, Boolean, DateTime, Date, Numeric, Enum, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from karma_engine.db.base import Base


class KarmaType(str, enum.Enum):
    good = "good"
    bad = "bad"
    neutral = "neutral"


class KarmaEntry(Base):
    __tablename__ = "karma_entries"
    __table_args__ = (
        Index("ix_karma_entries_user_date", "user_id", "entry_date"),
        Index("ix_karma_entries_user_type", "user_id", "karma_type", "is_deleted"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    karma_type: Mapped[str] = mapped_column(
        Enum(KarmaType, name="karma_type_enum"), nullable=False, default=KarmaType.neutral
    )
    score: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0"),
        comment="good: >= 0, bad: <= 0, neutral: 0",
    )
    category_slug: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pattern_key: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    self_assessment: Mapped[str | None] = mapped_column(
        Enum(KarmaType, name="karma_type_enum"), nullable=True,
        comment="Optional user override; does not change the classified score",
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    classification: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON-encoded classification result",
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    @property
    def analysis(self) -> dict[str, Any]:
        if not self.classification:
            return {}
        try:
            data = json.loads(self.classification)
        except (ValueError, TypeError):
            return {}
        return data if isinstance(data, dict) else {}
