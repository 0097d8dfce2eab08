"""
Unit tests for score aggregation. Entries are transient KarmaEntry objects.
"""
import json
from datetime import date
from decimal import Decimal

import pytest

from karma_engine.core.errors import InvalidPeriodTypeError
from karma_engine.models.karma_entry import KarmaEntry
from karma_engine.services.score_service import (
    ScoreAggregator,
    category_breakdown,
    compute_trend,
    compute_user_score,
    grade_for_score,
    normalize_score,
    period_bounds,
    previous_period_start,
    summarize_period,
)
from karma_engine.services.ledger import SqlLedgerStore


def entry(karma_type, score, day=date(2024, 1, 3), category="general", entry_id=None):
    e = KarmaEntry(
        user_id=1,
        text=f"{karma_type} action",
        karma_type=karma_type,
        score=Decimal(score),
        category_slug=category,
        category_name=category.title(),
        entry_date=day,
        classification=json.dumps({"pattern_key": karma_type, "emotion": karma_type}),
        is_deleted=False,
    )
    e.id = entry_id
    return e


class TestNormalization:
    def test_good_bad_balance(self):
        entries = [entry("good", 20), entry("good", 30), entry("bad", -10)]
        result = compute_user_score(entries)
        assert result.total_good_points == Decimal("50")
        assert result.total_bad_points == Decimal("10")
        assert result.karma_score == Decimal("54.00")
        assert result.good_actions_count == 2
        assert result.bad_actions_count == 1
        assert result.total_actions == 3

    def test_empty_ledger_is_neutral(self):
        result = compute_user_score([])
        assert result.karma_score == Decimal("50.00")
        assert result.total_actions == 0
        assert result.good_actions_count == result.bad_actions_count == result.neutral_actions_count == 0
        assert result.trend == "stable"
        assert result.trend_percentage == 0

    def test_neutral_counted_without_points(self):
        result = compute_user_score([entry("neutral", 0), entry("good", 10)])
        assert result.neutral_actions_count == 1
        assert result.karma_score == Decimal("51.00")

    @pytest.mark.parametrize("raw,expected", [
        (Decimal("10000"), Decimal("100.00")),
        (Decimal("-10000"), Decimal("0.00")),
        (Decimal("500"), Decimal("100.00")),
        (Decimal("-500"), Decimal("0.00")),
        (Decimal("-499"), Decimal("0.10")),
        (Decimal("0.05"), Decimal("50.01")),
    ])
    def test_clamped_and_rounded(self, raw, expected):
        assert normalize_score(raw) == expected

    def test_monotonic(self):
        values = [normalize_score(Decimal(raw)) for raw in range(-700, 701, 7)]
        assert values == sorted(values)


class TestPeriods:
    def test_weekly_is_sunday_anchored(self):
        # 2024-01-03 is a Wednesday
        assert period_bounds("weekly", date(2024, 1, 3)) == (date(2023, 12, 31), date(2024, 1, 6))

    def test_weekly_on_sunday_starts_same_day(self):
        assert period_bounds("weekly", date(2023, 12, 31)) == (date(2023, 12, 31), date(2024, 1, 6))

    def test_monthly_leap_february(self):
        assert period_bounds("monthly", date(2024, 2, 14)) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_daily(self):
        assert period_bounds("daily", date(2024, 5, 5)) == (date(2024, 5, 5), date(2024, 5, 5))

    def test_previous_month_across_year(self):
        assert previous_period_start("monthly", date(2024, 1, 1)) == date(2023, 12, 1)

    def test_unknown_period_rejected(self):
        with pytest.raises(InvalidPeriodTypeError):
            period_bounds("yearly", date(2024, 1, 1))

    def test_summary_only_counts_period_entries(self):
        entries = [
            entry("good", 20, day=date(2024, 1, 3)),
            entry("bad", -30, day=date(2024, 1, 8)),
        ]
        row = summarize_period(1, "weekly", date(2024, 1, 2), entries)
        assert row.period_start == date(2023, 12, 31)
        assert row.good_count == 1
        assert row.bad_count == 0
        assert row.karma_score == Decimal("52.00")


class TestTrend:
    def test_no_previous_is_stable(self):
        assert compute_trend(Decimal("70"), None) == ("stable", 0)

    def test_improving(self):
        assert compute_trend(Decimal("60"), Decimal("50")) == ("improving", 20)

    def test_declining(self):
        assert compute_trend(Decimal("45"), Decimal("50")) == ("declining", 10)

    def test_dead_band(self):
        assert compute_trend(Decimal("52"), Decimal("50"))[0] == "stable"

    def test_previous_zero(self):
        assert compute_trend(Decimal("10"), Decimal("0")) == ("improving", 0)


class TestGradesAndCategories:
    @pytest.mark.parametrize("score,grade", [
        (95, "A+"), (90, "A+"), (86, "A"), (72, "B"), (50, "C-"), (45, "D"), (10, "F"),
    ])
    def test_grade(self, score, grade):
        assert grade_for_score(Decimal(score)) == grade

    def test_category_breakdown_sorted_best_first(self):
        entries = [
            entry("good", 300, category="social"),
            entry("bad", -100, category="behavioral"),
            entry("good", 50, category="behavioral"),
        ]
        cats = category_breakdown(entries)
        assert [c.category_slug for c in cats] == ["social", "behavioral"]
        assert cats[0].score == 80
        assert cats[0].status == "High"
        assert cats[1].score == 45
        assert cats[1].status == "Needs Work"


class TestStoredSummaries:
    def test_recomputing_a_period_updates_one_row(self, db, user_id):
        store = SqlLedgerStore(db)
        aggregator = ScoreAggregator(store)
        first = aggregator.score_for_period(user_id, "weekly", date(2024, 1, 3))
        second = aggregator.score_for_period(user_id, "weekly", date(2024, 1, 5))
        assert first.id == second.id
        assert second.period_start == date(2023, 12, 31)
        assert second.karma_score == Decimal("50.00")

    def test_invalid_period_type(self, db, user_id):
        with pytest.raises(InvalidPeriodTypeError):
            ScoreAggregator(SqlLedgerStore(db)).score_for_period(user_id, "hourly", date(2024, 1, 1))
