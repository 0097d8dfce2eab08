from datetime import datetime
from decimal import Decimal

from sqlalchemy import Integer, String, Text, Boolean, DateTime, Numeric, Enum, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from karma_engine.db.base import Base
from karma_engine.models.karma_entry import KarmaType


class WeightRule(Base):
    """Admin-authored keyword rule used by the rule tier of the classifier."""

    __tablename__ = "karma_weight_rules"
    __table_args__ = (
        UniqueConstraint("category_slug", "pattern_key", name="uq_weight_rule_category_pattern"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    category_slug: Mapped[str] = mapped_column(String(100), nullable=False)
    pattern_key: Mapped[str] = mapped_column(String(100), nullable=False)
    pattern_name: Mapped[str] = mapped_column(String(200), nullable=False)
    karma_type: Mapped[str] = mapped_column(
        Enum(KarmaType, name="karma_type_enum"), nullable=False
    )
    base_weight: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    keywords: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON array of lowercase keywords",
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
