"""
Score Aggregator — karma point balance mapped onto a 0–100 scale.

Formula
-------
  good_points = Σ |score| over good entries
  bad_points  = Σ |score| over bad entries      (neutral entries are only counted)
  raw         = good_points − bad_points
  karma_score = clamp(0, 100, 50 + raw / 10)     rounded to 2 decimals

Every 10 net points move the score by 1, centred on neutral = 50.

Trend
-----
Current score vs. the cached summary of the immediately preceding period of
the same type:  diff > 2 → improving,  diff < −2 → declining,  else stable.
trend_percentage = round(|diff| / previous × 100), 0 when there is no
previous summary (or it is exactly 0).

Periods
-------
  daily    one calendar day
  weekly   Sunday-anchored 7-day window
  monthly  calendar month

Public API
----------
Pure:   tally_points, normalize_score, period_bounds, previous_period_start,
        compute_trend, summarize_period, compute_user_score,
        category_breakdown, grade_for_score
Store:  ScoreAggregator.score_for_user / score_for_period / compare_periods
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from karma_engine.core.errors import InvalidPeriodTypeError
from karma_engine.models.karma_entry import KarmaEntry
from karma_engine.models.score_summary import KarmaScoreSummary
from karma_engine.services.common import ev, quantize2, round_half_up, to_decimal, today
from karma_engine.services.ledger import LedgerStore, ScoreSummaryRow


class PeriodType:
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    ALL = (DAILY, WEEKLY, MONTHLY)


class Trend:
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


NEUTRAL_SCORE = Decimal("50")
_TREND_DEAD_BAND = Decimal("2")
_POINTS_PER_SCORE_UNIT = Decimal("10")


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class PointTally:
    good_points: Decimal
    bad_points: Decimal
    good_count: int
    bad_count: int
    neutral_count: int

    @property
    def total(self) -> int:
        return self.good_count + self.bad_count + self.neutral_count


@dataclass
class KarmaScoreResult:
    karma_score: Decimal
    total_good_points: Decimal
    total_bad_points: Decimal
    total_actions: int
    good_actions_count: int
    bad_actions_count: int
    neutral_actions_count: int
    trend: str
    trend_percentage: int


@dataclass
class PeriodComparison:
    period_type: str
    current_start: date
    previous_start: date
    current_score: Decimal
    previous_score: Decimal
    change: Decimal
    change_percentage: int


@dataclass
class CategoryScore:
    category_slug: str
    category_name: str
    good_points: Decimal
    bad_points: Decimal
    score: int
    status: str


# ---------------------------------------------------------------------------
# Pure computation
# ---------------------------------------------------------------------------

def tally_points(entries: Iterable[KarmaEntry]) -> PointTally:
    good = bad = Decimal("0")
    good_n = bad_n = neutral_n = 0
    for entry in entries:
        score = abs(to_decimal(entry.score))
        karma_type = ev(entry.karma_type)
        if karma_type == "good":
            good += score
            good_n += 1
        elif karma_type == "bad":
            bad += score
            bad_n += 1
        else:
            neutral_n += 1
    return PointTally(good, bad, good_n, bad_n, neutral_n)


def normalize_score(raw: Decimal) -> Decimal:
    value = NEUTRAL_SCORE + to_decimal(raw) / _POINTS_PER_SCORE_UNIT
    value = max(Decimal("0"), min(Decimal("100"), value))
    return quantize2(value)


def period_bounds(period_type: str, day: date) -> tuple[date, date]:
    """Return the inclusive [start, end] calendar days of the period containing `day`."""
    if period_type == PeriodType.DAILY:
        return day, day
    if period_type == PeriodType.WEEKLY:
        start = day - timedelta(days=(day.weekday() + 1) % 7)  # back to Sunday
        return start, start + timedelta(days=6)
    if period_type == PeriodType.MONTHLY:
        last = calendar.monthrange(day.year, day.month)[1]
        return day.replace(day=1), day.replace(day=last)
    raise InvalidPeriodTypeError(period_type)


def previous_period_start(period_type: str, start: date) -> date:
    """Start of the period immediately before the one starting at `start`."""
    if period_type == PeriodType.DAILY:
        return start - timedelta(days=1)
    if period_type == PeriodType.WEEKLY:
        return start - timedelta(days=7)
    if period_type == PeriodType.MONTHLY:
        return (start - timedelta(days=1)).replace(day=1)
    raise InvalidPeriodTypeError(period_type)


def entries_between(entries: Iterable[KarmaEntry], start: date, end: date) -> list[KarmaEntry]:
    return [e for e in entries if start <= e.entry_date <= end]


def compute_trend(current: Decimal, previous: Optional[Decimal]) -> tuple[str, int]:
    if previous is None:
        return Trend.STABLE, 0
    previous = to_decimal(previous)
    diff = to_decimal(current) - previous
    pct = round_half_up(abs(diff) / previous * 100) if previous != 0 else 0
    if diff > _TREND_DEAD_BAND:
        return Trend.IMPROVING, pct
    if diff < -_TREND_DEAD_BAND:
        return Trend.DECLINING, pct
    return Trend.STABLE, pct


def summarize_period(
    user_id: int,
    period_type: str,
    day: date,
    entries: Iterable[KarmaEntry],
) -> ScoreSummaryRow:
    """Build the summary row for the period containing `day` (pure)."""
    start, end = period_bounds(period_type, day)
    tally = tally_points(entries_between(entries, start, end))
    return ScoreSummaryRow(
        user_id=user_id,
        period_type=period_type,
        period_start=start,
        period_end=end,
        karma_score=normalize_score(tally.good_points - tally.bad_points),
        good_count=tally.good_count,
        bad_count=tally.bad_count,
        neutral_count=tally.neutral_count,
        positive_points=quantize2(tally.good_points),
        negative_points=quantize2(tally.bad_points),
    )


def compute_user_score(
    entries: Sequence[KarmaEntry],
    previous_score: Optional[Decimal] = None,
) -> KarmaScoreResult:
    tally = tally_points(entries)
    score = normalize_score(tally.good_points - tally.bad_points)
    direction, pct = compute_trend(score, previous_score)
    return KarmaScoreResult(
        karma_score=score,
        total_good_points=quantize2(tally.good_points),
        total_bad_points=quantize2(tally.bad_points),
        total_actions=tally.total,
        good_actions_count=tally.good_count,
        bad_actions_count=tally.bad_count,
        neutral_actions_count=tally.neutral_count,
        trend=direction,
        trend_percentage=pct,
    )


def grade_for_score(score: Decimal | float) -> str:
    value = to_decimal(score)
    for threshold, grade in (
        (90, "A+"), (85, "A"), (80, "A-"), (75, "B+"), (70, "B"),
        (65, "B-"), (60, "C+"), (55, "C"), (50, "C-"), (40, "D"),
    ):
        if value >= threshold:
            return grade
    return "F"


def _category_status(score: Decimal) -> str:
    if score >= 70:
        return "High"
    if score >= 50:
        return "Medium"
    return "Needs Work"


def category_breakdown(entries: Iterable[KarmaEntry]) -> list[CategoryScore]:
    """Per-category good/bad points and normalised score, best first."""
    buckets: dict[str, list] = {}
    for entry in entries:
        slug = entry.category_slug or "general"
        bucket = buckets.setdefault(slug, [entry.category_name or "General", Decimal("0"), Decimal("0")])
        karma_type = ev(entry.karma_type)
        if karma_type == "good":
            bucket[1] += abs(to_decimal(entry.score))
        elif karma_type == "bad":
            bucket[2] += abs(to_decimal(entry.score))

    result = []
    for slug, (name, good, bad) in buckets.items():
        normalized = normalize_score(good - bad)
        result.append(CategoryScore(
            category_slug=slug,
            category_name=name,
            good_points=quantize2(good),
            bad_points=quantize2(bad),
            score=round_half_up(normalized),
            status=_category_status(normalized),
        ))
    result.sort(key=lambda c: (-c.score, c.category_slug))
    return result


# ---------------------------------------------------------------------------
# Store-backed aggregator
# ---------------------------------------------------------------------------

class ScoreAggregator:
    def __init__(self, store: LedgerStore):
        self.store = store

    def score_for_user(self, user_id: int, as_of: Optional[date] = None) -> KarmaScoreResult:
        """All-time score; trend compares against last week's cached summary."""
        current_week, _ = period_bounds(PeriodType.WEEKLY, as_of or today())
        previous = self.store.find_score_summary(
            user_id, PeriodType.WEEKLY, previous_period_start(PeriodType.WEEKLY, current_week)
        )
        return compute_user_score(
            self.store.find_by_user(user_id),
            previous.karma_score if previous is not None else None,
        )

    def score_for_period(self, user_id: int, period_type: str, day: date) -> KarmaScoreSummary:
        """Compute the period containing `day` and upsert its cached summary."""
        if period_type not in PeriodType.ALL:
            raise InvalidPeriodTypeError(period_type)
        row = summarize_period(user_id, period_type, day, self.store.find_by_user(user_id))
        return self.store.upsert_score_summary(row)

    def period_trend(self, user_id: int, summary: KarmaScoreSummary) -> tuple[str, int]:
        """Trend of a summary against the cached summary one period earlier."""
        previous = self.store.find_score_summary(
            user_id,
            summary.period_type,
            previous_period_start(summary.period_type, summary.period_start),
        )
        return compute_trend(
            summary.karma_score,
            previous.karma_score if previous is not None else None,
        )

    def compare_periods(
        self, user_id: int, period_type: str, as_of: Optional[date] = None
    ) -> PeriodComparison:
        """Recompute the current and previous period and report the change."""
        current = self.score_for_period(user_id, period_type, as_of or today())
        previous = self.score_for_period(
            user_id, period_type, previous_period_start(period_type, current.period_start)
        )
        current_score = to_decimal(current.karma_score)
        previous_score = to_decimal(previous.karma_score)
        change = quantize2(current_score - previous_score)
        return PeriodComparison(
            period_type=period_type,
            current_start=current.period_start,
            previous_start=previous.period_start,
            current_score=current_score,
            previous_score=previous_score,
            change=change,
            change_percentage=(
                round_half_up(abs(change) / previous_score * 100) * (1 if change >= 0 else -1)
                if previous_score > 0 else 0
            ),
        )
