"""
Unit tests for rule snapshot building, matching and the TTL cache.
"""
import json
from decimal import Decimal

from karma_engine.models.weight_rule import WeightRule
from karma_engine.services.rule_table import (
    RuleSpec,
    RuleTableCache,
    build_rule_snapshot,
    match_rule,
)


def make_row(category, key, karma_type, weight, keywords, is_active=True):
    r = WeightRule()
    r.category_slug = category
    r.pattern_key = key
    r.pattern_name = key.title()
    r.karma_type = karma_type
    r.base_weight = Decimal(weight)
    r.keywords = json.dumps(keywords)
    r.is_active = is_active
    return r


def rule_spec(key, weight, keywords, category="behavioral", karma_type=None):
    karma_type = karma_type or ("good" if weight >= 0 else "bad")
    return RuleSpec(category, key, key.title(), karma_type, Decimal(weight), tuple(keywords))


class TestSnapshot:
    def test_inactive_rows_skipped(self):
        rows = [
            make_row("social", "helping", "good", 20, ["help"]),
            make_row("social", "sharing", "good", 10, ["share"], is_active=False),
        ]
        assert [s.pattern_key for s in build_rule_snapshot(rows)] == ["helping"]

    def test_sign_mismatch_skipped(self):
        rows = [
            make_row("behavioral", "anger", "bad", 25, ["anger"]),
            make_row("behavioral", "lying", "bad", -20, ["lie"]),
        ]
        assert [s.pattern_key for s in build_rule_snapshot(rows)] == ["lying"]

    def test_keywords_lowercased(self):
        rows = [make_row("social", "helping", "good", 20, [" Help ", "ASSIST", ""])]
        assert build_rule_snapshot(rows)[0].keywords == ("help", "assist")


class TestMatching:
    def test_threshold_is_exclusive(self):
        # 3 of 10 = 0.3 does not qualify
        rule = rule_spec("wide", 10, list("abcdefghij"))
        assert match_rule("abc", [rule]) is None

    def test_highest_match_score_wins(self):
        low = rule_spec("low", 40, ["help", "x", "y"])
        high = rule_spec("high", 5, ["help", "z"])
        assert match_rule("help z", [low, high]).rule.pattern_key == "high"

    def test_tie_broken_by_weight_magnitude(self):
        a = rule_spec("alpha", 10, ["cheat", "steal"])
        b = rule_spec("beta", -22, ["cheat", "fraud"], karma_type="bad")
        assert match_rule("i cheat", [a, b]).rule.pattern_key == "beta"

    def test_tie_broken_by_pattern_key(self):
        a = rule_spec("zeta", 20, ["cheat", "x"])
        b = rule_spec("eta", -20, ["cheat", "y"], karma_type="bad")
        assert match_rule("cheat", [a, b]).rule.pattern_key == "eta"

    def test_order_independent(self):
        rules = [
            rule_spec("lying", -20, ["lie", "cheat"], karma_type="bad"),
            rule_spec("dishonesty", -22, ["cheat", "steal"], karma_type="bad"),
        ]
        forward = match_rule("i cheat", rules).rule.pattern_key
        backward = match_rule("i cheat", list(reversed(rules))).rule.pattern_key
        assert forward == backward == "dishonesty"

    def test_rule_without_keywords_never_matches(self):
        assert match_rule("anything", [rule_spec("empty", 10, [])]) is None


class TestCache:
    def test_reloads_after_ttl(self):
        now = [100.0]
        cache = RuleTableCache(ttl_seconds=60, clock=lambda: now[0])
        loads = []

        def loader():
            loads.append(1)
            return (rule_spec("helping", 20, ["help"]),)

        cache.get(loader)
        now[0] += 30
        cache.get(loader)
        assert len(loads) == 1
        now[0] += 31
        cache.get(loader)
        assert len(loads) == 2
