"""
SqlLedgerStore upserts against SQLite: first-time inserts come back fully
populated, repeats merge into the same row.
"""
from datetime import date
from decimal import Decimal

from karma_engine.models.karma_pattern import KarmaPattern
from karma_engine.models.score_summary import KarmaScoreSummary
from karma_engine.services.ledger import PatternRow, ScoreSummaryRow, SqlLedgerStore


def summary_row(user_id, score="62.50", good=3, bad=1):
    return ScoreSummaryRow(
        user_id=user_id,
        period_type="weekly",
        period_start=date(2024, 3, 3),
        period_end=date(2024, 3, 9),
        karma_score=Decimal(score),
        good_count=good,
        bad_count=bad,
        neutral_count=0,
        positive_points=Decimal("60"),
        negative_points=Decimal("25"),
    )


def pattern_row(user_id, frequency=2, first=date(2024, 3, 4), last=date(2024, 3, 6)):
    return PatternRow(
        user_id=user_id,
        pattern_key="helping",
        pattern_name="Helping Others",
        pattern_type="good",
        frequency=frequency,
        total_impact=Decimal(20 * frequency),
        first_detected=first,
        last_detected=last,
        sample_actions=["helped at the shelter"],
    )


class TestScoreSummaryUpsert:
    def test_first_insert_returns_populated_row(self, db, user_id):
        saved = SqlLedgerStore(db).upsert_score_summary(summary_row(user_id))
        assert saved.id is not None
        assert saved.period_end == date(2024, 3, 9)
        assert saved.karma_score == Decimal("62.50")
        assert saved.total_good_actions == 3
        assert saved.total_negative_points == Decimal("25")
        assert db.query(KarmaScoreSummary).filter_by(user_id=user_id).count() == 1

    def test_changed_numbers_update_in_place_and_clear_texts(self, db, user_id):
        store = SqlLedgerStore(db)
        first = store.upsert_score_summary(summary_row(user_id))
        store.save_summary_texts(first, "A kind week.", "More of the same.")

        second = store.upsert_score_summary(summary_row(user_id, score="70.00", good=4))
        assert second.id == first.id
        assert second.total_good_actions == 4
        assert second.ai_summary is None
        assert second.prediction is None

    def test_unchanged_numbers_keep_texts(self, db, user_id):
        store = SqlLedgerStore(db)
        first = store.upsert_score_summary(summary_row(user_id))
        store.save_summary_texts(first, "A kind week.", None)

        again = store.upsert_score_summary(summary_row(user_id))
        assert again.ai_summary == "A kind week."


class TestPatternUpsert:
    def test_first_insert_returns_populated_row(self, db, user_id):
        saved = SqlLedgerStore(db).upsert_pattern(pattern_row(user_id))
        assert saved.id is not None
        assert saved.pattern_name == "Helping Others"
        assert saved.pattern_type == "good"
        assert saved.frequency_count == 2
        assert saved.first_detected_date == date(2024, 3, 4)

    def test_repeat_merges_and_widens_dates(self, db, user_id):
        store = SqlLedgerStore(db)
        first = store.upsert_pattern(pattern_row(user_id))
        merged = store.upsert_pattern(
            pattern_row(user_id, frequency=5, first=date(2024, 3, 5), last=date(2024, 3, 20))
        )
        assert merged.id == first.id
        assert merged.frequency_count == 5
        assert merged.total_score_impact == Decimal("100")
        assert merged.first_detected_date == date(2024, 3, 4)
        assert merged.last_detected_date == date(2024, 3, 20)
        assert db.query(KarmaPattern).filter_by(user_id=user_id).count() == 1
