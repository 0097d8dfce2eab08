"""
Pattern analysis: pure grouping over transient entries, plus the cached
KarmaPattern upsert against SQLite.
"""
import json
from datetime import date, timedelta
from decimal import Decimal

from karma_engine.models.karma_entry import KarmaEntry
from karma_engine.models.karma_pattern import KarmaPattern
from karma_engine.services.ledger import SqlLedgerStore
from karma_engine.services.pattern_service import (
    PatternAnalyzer,
    analyze_entries,
    behavioral_insights,
)

_ids = iter(range(1, 10_000))


def entry(karma_type, score, pattern_key, emotion, day, text="did something", user_id=1):
    e = KarmaEntry(
        user_id=user_id,
        text=text,
        karma_type=karma_type,
        score=Decimal(score),
        pattern_key=pattern_key,
        entry_date=day,
        classification=json.dumps({"pattern_key": pattern_key, "emotion": emotion}),
        is_deleted=False,
    )
    e.id = next(_ids)
    return e


D0 = date(2024, 6, 1)


def mixed_ledger():
    return [
        entry("good", 20, "helping", "kindness", D0),
        entry("good", 20, "helping", "kindness", D0 + timedelta(days=1)),
        entry("good", 20, "helping", "kindness", D0 + timedelta(days=2)),
        entry("bad", -25, "anger", "anger", D0 + timedelta(days=1)),
        entry("bad", -25, "anger", "anger", D0 + timedelta(days=3)),
        entry("bad", -15, "laziness", "laziness", D0 + timedelta(days=4)),
    ]


class TestAnalyzeEntries:
    def test_groups_and_orders_by_frequency(self):
        analysis = analyze_entries(mixed_ledger())
        keys = [p.pattern_key for p in analysis.detected_patterns]
        assert keys == ["helping", "anger", "laziness"]
        helping = analysis.detected_patterns[0]
        assert helping.frequency == 3
        assert helping.total_impact == Decimal("60.00")
        assert helping.first_detected == D0
        assert helping.last_detected == D0 + timedelta(days=2)

    def test_strengths_and_weaknesses(self):
        analysis = analyze_entries(mixed_ledger())
        assert analysis.strengths == ["kindness"]
        assert analysis.strength_keys == ["helping"]
        assert analysis.weaknesses == ["anger"]
        assert analysis.weakness_keys == ["anger"]
        assert analysis.dominant_emotion == "helping"

    def test_insights_mention_every_strength_and_weakness(self):
        analysis = analyze_entries(mixed_ledger())
        assert "kindness" in analysis.behavioral_insights
        assert "anger" in analysis.behavioral_insights
        assert '"kindness" (appeared 3 times)' in analysis.behavioral_insights

    def test_frequency_ties_sorted_by_key(self):
        entries = [
            entry("good", 10, "zen", "calm", D0),
            entry("good", 10, "art", "joy", D0),
        ]
        assert [p.pattern_key for p in analyze_entries(entries).detected_patterns] == ["art", "zen"]

    def test_type_taken_from_first_entry_by_date(self):
        later = entry("good", 10, "mixed", "mixed", D0 + timedelta(days=5))
        earlier = entry("bad", -10, "mixed", "mixed", D0)
        analysis = analyze_entries([later, earlier])
        assert analysis.detected_patterns[0].pattern_type == "bad"

    def test_samples_capped_and_truncated(self):
        entries = [
            entry("good", 5, "helping", "kindness", D0 + timedelta(days=i), text="x" * 150)
            for i in range(7)
        ]
        samples = analyze_entries(entries).detected_patterns[0].sample_actions
        assert len(samples) == 5
        assert all(len(s) == 100 for s in samples)

    def test_missing_classification_defaults(self):
        e = entry("neutral", 0, None, None, D0)
        e.classification = None
        pattern = analyze_entries([e]).detected_patterns[0]
        assert pattern.pattern_key == "unknown"
        assert pattern.pattern_name == "Unknown Pattern"

    def test_empty_ledger(self):
        analysis = analyze_entries([])
        assert analysis.detected_patterns == []
        assert analysis.dominant_emotion == "neutral"
        assert "balanced karma profile" in analysis.behavioral_insights

    def test_insights_for_bad_top_pattern(self):
        analysis = analyze_entries([
            entry("bad", -25, "anger", "anger", D0),
        ])
        assert "Consider focusing on transforming this pattern" in analysis.behavioral_insights

    def test_insight_text_without_patterns(self):
        assert behavioral_insights([], [], []).startswith("You have a balanced karma profile")


class TestSavedPatterns:
    def _seed(self, db, user_id):
        for e in mixed_ledger():
            e.id = None
            e.user_id = user_id
            db.add(e)
        db.commit()

    def test_analysis_is_idempotent(self, db, user_id):
        self._seed(db, user_id)
        analyzer = PatternAnalyzer(SqlLedgerStore(db))

        analyzer.analyze(user_id)
        first = [(p.pattern_key, p.frequency_count, p.total_score_impact) for p in analyzer.stored_patterns(user_id)]
        analyzer.analyze(user_id)
        second = [(p.pattern_key, p.frequency_count, p.total_score_impact) for p in analyzer.stored_patterns(user_id)]

        assert first == second
        assert db.query(KarmaPattern).filter(KarmaPattern.user_id == user_id).count() == 3

    def test_stored_patterns_ordered_by_frequency(self, db, user_id):
        self._seed(db, user_id)
        analyzer = PatternAnalyzer(SqlLedgerStore(db))
        analyzer.analyze(user_id)
        stored = analyzer.stored_patterns(user_id)
        assert [p.pattern_key for p in stored] == ["helping", "anger", "laziness"]
        assert json.loads(stored[0].sample_actions) == ["did something"] * 3

    def test_soft_deleted_entries_excluded(self, db, user_id):
        self._seed(db, user_id)
        store = SqlLedgerStore(db)
        victim = (
            db.query(KarmaEntry)
            .filter(KarmaEntry.user_id == user_id, KarmaEntry.pattern_key == "laziness")
            .first()
        )
        assert store.soft_delete(user_id, victim.id) is True
        analysis = PatternAnalyzer(store).analyze(user_id, save=False)
        assert "laziness" not in [p.pattern_key for p in analysis.detected_patterns]
