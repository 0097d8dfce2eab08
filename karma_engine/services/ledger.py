"""
Ledger store — the engine's only view of persistence.

Public API (LedgerStore protocol)
---------------------------------
find_by_user(user_id)                               -> list[KarmaEntry]  (non-deleted, any order)
create(entry)                                       -> KarmaEntry
soft_delete(user_id, entry_id)                      -> bool
upsert_pattern(row)                                 -> KarmaPattern
find_patterns(user_id)                              -> list[KarmaPattern]
upsert_score_summary(row)                           -> KarmaScoreSummary
find_score_summary(user_id, period_type, start)     -> KarmaScoreSummary | None
active_rules()                                      -> list[WeightRule]
habit_suggestions(pattern_key, limit)               -> list[HabitSuggestion]

Ordering is the engine's responsibility; the store returns rows as-is.
Upserts are keyed by natural identity and are last-writer-wins.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from karma_engine.models.customer import Customer
from karma_engine.models.habit_suggestion import HabitSuggestion
from karma_engine.models.karma_entry import KarmaEntry
from karma_engine.models.karma_pattern import KarmaPattern
from karma_engine.models.score_summary import KarmaScoreSummary
from karma_engine.models.weight_rule import WeightRule
from karma_engine.services.common import jdump


# ---------------------------------------------------------------------------
# Row DTOs handed to the upsert methods
# ---------------------------------------------------------------------------

@dataclass
class PatternRow:
    user_id: int
    pattern_key: str
    pattern_name: str
    pattern_type: str
    frequency: int
    total_impact: Decimal
    first_detected: date
    last_detected: date
    sample_actions: list[str] = field(default_factory=list)


@dataclass
class ScoreSummaryRow:
    user_id: int
    period_type: str
    period_start: date
    period_end: date
    karma_score: Decimal
    good_count: int
    bad_count: int
    neutral_count: int
    positive_points: Decimal
    negative_points: Decimal


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class IdentityCheck(Protocol):
    def user_exists(self, user_id: int) -> bool:
        ...


class LedgerStore(Protocol):
    def find_by_user(self, user_id: int) -> list[KarmaEntry]: ...
    def create(self, entry: KarmaEntry) -> KarmaEntry: ...
    def soft_delete(self, user_id: int, entry_id: int) -> bool: ...
    def upsert_pattern(self, row: PatternRow) -> KarmaPattern: ...
    def find_patterns(self, user_id: int) -> list[KarmaPattern]: ...
    def upsert_score_summary(self, row: ScoreSummaryRow) -> KarmaScoreSummary: ...
    def find_score_summary(
        self, user_id: int, period_type: str, period_start: date
    ) -> Optional[KarmaScoreSummary]: ...
    def save_summary_texts(
        self, summary: KarmaScoreSummary, ai_summary: Optional[str], prediction: Optional[str]
    ) -> KarmaScoreSummary: ...
    def active_rules(self) -> list[WeightRule]: ...
    def habit_suggestions(self, pattern_key: str, limit: Optional[int] = None) -> list[HabitSuggestion]: ...


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------

class SqlIdentityCheck:
    def __init__(self, db: Session):
        self.db = db

    def user_exists(self, user_id: int) -> bool:
        return (
            self.db.query(Customer.id)
            .filter(Customer.id == user_id, Customer.is_deleted == False)  # noqa: E712
            .first()
            is not None
        )


class SqlLedgerStore:
    def __init__(self, db: Session):
        self.db = db

    # --- entries ---

    def find_by_user(self, user_id: int) -> list[KarmaEntry]:
        return (
            self.db.query(KarmaEntry)
            .filter(KarmaEntry.user_id == user_id, KarmaEntry.is_deleted == False)  # noqa: E712
            .all()
        )

    def create(self, entry: KarmaEntry) -> KarmaEntry:
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def soft_delete(self, user_id: int, entry_id: int) -> bool:
        entry = (
            self.db.query(KarmaEntry)
            .filter(
                KarmaEntry.id == entry_id,
                KarmaEntry.user_id == user_id,
                KarmaEntry.is_deleted == False,  # noqa: E712
            )
            .first()
        )
        if entry is None:
            return False
        entry.is_deleted = True
        self.db.commit()
        return True

    # --- pattern cache ---

    def _find_pattern(self, user_id: int, pattern_key: str) -> Optional[KarmaPattern]:
        return (
            self.db.query(KarmaPattern)
            .filter(KarmaPattern.user_id == user_id, KarmaPattern.pattern_key == pattern_key)
            .first()
        )

    def upsert_pattern(self, row: PatternRow) -> KarmaPattern:
        """
        Insert or merge the cached pattern for (user_id, pattern_key).
        Counts come from the full ledger, so they replace; dates widen.
        """
        existing = self._find_pattern(row.user_id, row.pattern_key)
        if existing is None:
            created = KarmaPattern(
                user_id=row.user_id,
                pattern_key=row.pattern_key,
                pattern_name=row.pattern_name,
                pattern_type=row.pattern_type,
                frequency_count=row.frequency,
                total_score_impact=row.total_impact,
                first_detected_date=row.first_detected,
                last_detected_date=row.last_detected,
                sample_actions=jdump(row.sample_actions),
            )
            self.db.add(created)
            try:
                self.db.commit()
            except IntegrityError:
                # Concurrent analysis inserted first; merge into that row.
                self.db.rollback()
                existing = self._find_pattern(row.user_id, row.pattern_key)
                if existing is None:
                    raise
            else:
                self.db.refresh(created)
                return created

        existing.pattern_name = row.pattern_name
        existing.pattern_type = row.pattern_type
        existing.frequency_count = row.frequency
        existing.total_score_impact = row.total_impact
        existing.first_detected_date = min(existing.first_detected_date, row.first_detected)
        existing.last_detected_date = max(existing.last_detected_date, row.last_detected)
        existing.sample_actions = jdump(row.sample_actions)
        self.db.commit()
        self.db.refresh(existing)
        return existing

    def find_patterns(self, user_id: int) -> list[KarmaPattern]:
        return (
            self.db.query(KarmaPattern)
            .filter(KarmaPattern.user_id == user_id)
            .order_by(KarmaPattern.frequency_count.desc(), KarmaPattern.pattern_key)
            .all()
        )

    # --- score summaries ---

    def find_score_summary(
        self, user_id: int, period_type: str, period_start: date
    ) -> Optional[KarmaScoreSummary]:
        return (
            self.db.query(KarmaScoreSummary)
            .filter(
                KarmaScoreSummary.user_id == user_id,
                KarmaScoreSummary.period_type == period_type,
                KarmaScoreSummary.period_start == period_start,
            )
            .first()
        )

    def upsert_score_summary(self, row: ScoreSummaryRow) -> KarmaScoreSummary:
        """Insert or refresh the summary for (user_id, period_type, period_start)."""
        existing = self.find_score_summary(row.user_id, row.period_type, row.period_start)
        if existing is None:
            created = KarmaScoreSummary(
                user_id=row.user_id,
                period_type=row.period_type,
                period_start=row.period_start,
                period_end=row.period_end,
                karma_score=row.karma_score,
                total_good_actions=row.good_count,
                total_bad_actions=row.bad_count,
                total_neutral_actions=row.neutral_count,
                total_positive_points=row.positive_points,
                total_negative_points=row.negative_points,
            )
            self.db.add(created)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                existing = self.find_score_summary(row.user_id, row.period_type, row.period_start)
                if existing is None:
                    raise
            else:
                self.db.refresh(created)
                return created

        changed = (
            existing.karma_score != row.karma_score
            or existing.total_good_actions != row.good_count
            or existing.total_bad_actions != row.bad_count
            or existing.total_neutral_actions != row.neutral_count
        )
        if changed:
            # narrative text describes the old numbers
            existing.ai_summary = None
            existing.prediction = None
        existing.period_end = row.period_end
        existing.karma_score = row.karma_score
        existing.total_good_actions = row.good_count
        existing.total_bad_actions = row.bad_count
        existing.total_neutral_actions = row.neutral_count
        existing.total_positive_points = row.positive_points
        existing.total_negative_points = row.negative_points
        self.db.commit()
        self.db.refresh(existing)
        return existing

    def save_summary_texts(
        self,
        summary: KarmaScoreSummary,
        ai_summary: Optional[str],
        prediction: Optional[str],
    ) -> KarmaScoreSummary:
        summary.ai_summary = ai_summary
        summary.prediction = prediction
        self.db.commit()
        self.db.refresh(summary)
        return summary

    # --- reference data ---

    def active_rules(self) -> list[WeightRule]:
        return (
            self.db.query(WeightRule)
            .filter(WeightRule.is_active == True)  # noqa: E712
            .all()
        )

    def habit_suggestions(self, pattern_key: str, limit: Optional[int] = None) -> list[HabitSuggestion]:
        q = (
            self.db.query(HabitSuggestion)
            .filter(
                HabitSuggestion.pattern_key == pattern_key,
                HabitSuggestion.is_active == True,  # noqa: E712
            )
            .order_by(HabitSuggestion.priority.asc(), HabitSuggestion.id.asc())
        )
        if limit is not None:
            q = q.limit(limit)
        return q.all()
