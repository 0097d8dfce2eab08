from datetime import datetime

from sqlalchemy import Integer, String, Text, Boolean, DateTime, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from karma_engine.db.base import Base


class HabitSuggestion(Base):
    """Remediation content for a pattern. Several rows per pattern, ranked by priority."""

    __tablename__ = "karma_habit_suggestions"
    __table_args__ = (
        Index("ix_habit_pattern_priority", "pattern_key", "priority"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    pattern_key: Mapped[str] = mapped_column(String(100), nullable=False)
    habit_title: Mapped[str] = mapped_column(String(200), nullable=False)
    habit_description: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    daily_tasks: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON array of task strings, cycled over the plan",
    )
    motivational_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
