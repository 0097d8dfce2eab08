"""
Unit tests for the three-tier action classifier.
Rules are passed as RuleSpec tuples and the LLM is a scripted fake; no DB.
"""
import json
from decimal import Decimal

import pytest
from pydantic import ValidationError

from karma_engine.core.errors import TextCompletionError
from karma_engine.services.classifier import (
    DEFAULT_HABIT_RECOMMENDATIONS,
    ActionClassifier,
    Tier,
    decode_llm_reply,
    heuristic_classification,
    signed_weight,
)
from karma_engine.services.rule_table import RuleSpec

POSITIVE = ["help", "support", "kind", "donate", "learn", "meditate"]
NEGATIVE = ["angry", "anger", "lazy", "lie", "cheat", "selfish"]

HELPING = RuleSpec(
    category_slug="social",
    pattern_key="helping",
    pattern_name="Helping Others",
    karma_type="good",
    base_weight=Decimal("20"),
    keywords=("help", "assist"),
)
ANGER = RuleSpec(
    category_slug="behavioral",
    pattern_key="anger",
    pattern_name="Anger/Rage",
    karma_type="bad",
    base_weight=Decimal("-25"),
    keywords=("anger", "angry", "rage"),
)


def llm_reply(**overrides) -> str:
    body = {
        "type": "good",
        "confidence": 0.85,
        "emotion": "Gratitude",
        "category": "spiritual",
        "weight": 12,
        "pattern_key": "gratitude",
        "reasoning": "Expressing thanks builds positive karma.",
    }
    body.update(overrides)
    return json.dumps(body)


def make_classifier(rules=(HELPING, ANGER), completion=None, habits=None):
    habits = habits or {}
    return ActionClassifier(
        rules_provider=lambda: rules,
        habit_lookup=lambda key: habits.get(key, []),
        completion=completion,
        positive_keywords=POSITIVE,
        negative_keywords=NEGATIVE,
    )


class TestEmptyInput:
    @pytest.mark.parametrize("text", [None, "", "   ", "\n\t"])
    def test_blank_text_is_neutral_with_zero_confidence(self, text):
        result = make_classifier().classify(text)
        assert result.type == "neutral"
        assert result.weight == 0
        assert result.confidence == 0
        assert result.tier == Tier.EMPTY

    def test_blank_text_never_calls_llm(self, fake_completion):
        fake = fake_completion(llm_reply())
        make_classifier(completion=fake).classify("  ")
        assert fake.calls == []


class TestRuleTier:
    def test_helping_rule_half_match(self):
        result = make_classifier().classify("I helped my neighbor move furniture")
        assert result.tier == Tier.RULE
        assert result.type == "good"
        assert result.weight == Decimal("20")
        assert result.confidence == 100
        assert result.pattern_key == "helping"
        assert result.category == "social"
        assert "50%" in result.reasoning

    def test_bad_rule_keeps_negative_weight(self):
        result = make_classifier().classify("I got ANGRY and shouted in rage")
        assert result.tier == Tier.RULE
        assert result.type == "bad"
        assert result.weight == Decimal("-25")

    def test_rule_match_skips_llm(self, fake_completion):
        fake = fake_completion(llm_reply(type="bad", weight=-40))
        result = make_classifier(completion=fake).classify("I helped my neighbor")
        assert result.tier == Tier.RULE
        assert fake.calls == []

    def test_keywords_match_as_substrings(self):
        # "anger" sits inside "stranger"; matching is on substrings, not words
        result = make_classifier().classify("I met a stranger on the train")
        assert result.tier == Tier.RULE
        assert result.pattern_key == "anger"

    def test_below_threshold_falls_through(self):
        # 1 of 6 keywords = 0.17, under the 0.3 threshold
        wide = RuleSpec("social", "helping", "Helping Others", "good", Decimal("20"),
                        ("help", "assist", "support", "aid", "volunteer", "serve"))
        result = make_classifier(rules=(wide,)).classify("I helped a friend")
        assert result.tier == Tier.HEURISTIC


class TestLLMTier:
    def test_llm_used_when_no_rule_matches(self, fake_completion):
        fake = fake_completion(llm_reply())
        result = make_classifier(completion=fake).classify("I thanked the bus driver")
        assert result.tier == Tier.LLM
        assert result.type == "good"
        assert result.weight == Decimal("12")
        assert result.confidence == 85
        assert result.emotion == "gratitude"
        assert len(fake.calls) == 1
        assert fake.calls[0]["json_response"] is True
        assert "I thanked the bus driver".lower() in fake.calls[0]["user_prompt"]

    def test_llm_weight_sign_forced_to_agree_with_type(self, fake_completion):
        fake = fake_completion(llm_reply(type="bad", weight=15, pattern_key="gossip"))
        result = make_classifier(completion=fake).classify("I gossiped about a coworker")
        assert result.type == "bad"
        assert result.weight == Decimal("-15")

    def test_llm_neutral_weight_is_zero(self, fake_completion):
        fake = fake_completion(llm_reply(type="neutral", weight=7))
        result = make_classifier(completion=fake).classify("I went to the shop")
        assert result.weight == 0

    def test_fenced_json_is_accepted(self, fake_completion):
        fake = fake_completion("```json\n" + llm_reply() + "\n```")
        result = make_classifier(completion=fake).classify("I thanked the bus driver")
        assert result.tier == Tier.LLM

    def test_malformed_json_falls_back_to_heuristic(self, fake_completion):
        fake = fake_completion("I think this is good karma!")
        result = make_classifier(completion=fake).classify("I was kind to my neighbour")
        assert result.tier == Tier.HEURISTIC
        assert result.type == "good"

    def test_missing_field_falls_back_to_heuristic(self, fake_completion):
        body = json.loads(llm_reply())
        del body["pattern_key"]
        fake = fake_completion(json.dumps(body))
        result = make_classifier(completion=fake).classify("I was lazy all day")
        assert result.tier == Tier.HEURISTIC
        assert result.type == "bad"

    def test_mistyped_field_falls_back_to_heuristic(self, fake_completion):
        fake = fake_completion(llm_reply(weight="twelve"))
        result = make_classifier(completion=fake).classify("I went for a walk")
        assert result.tier == Tier.HEURISTIC

    def test_unknown_type_falls_back_to_heuristic(self, fake_completion):
        fake = fake_completion(llm_reply(type="great"))
        result = make_classifier(completion=fake).classify("I went for a walk")
        assert result.tier == Tier.HEURISTIC

    def test_transport_error_falls_back_to_heuristic(self, fake_completion):
        fake = fake_completion(TextCompletionError("timed out"))
        result = make_classifier(completion=fake).classify("I went for a walk")
        assert result.tier == Tier.HEURISTIC
        assert result.type == "neutral"

    def test_client_exception_falls_back_to_heuristic(self, fake_completion):
        fake = fake_completion(TimeoutError("socket timed out"))
        result = make_classifier(completion=fake).classify("I walked the dog")
        assert result.tier == Tier.HEURISTIC
        assert result.type == "neutral"
        assert len(fake.calls) == 1

    def test_llm_weight_clamped(self, fake_completion):
        fake = fake_completion(llm_reply(weight=5000), llm_reply(type="bad", weight=9999))
        classifier = make_classifier(completion=fake)
        assert classifier.classify("I thanked the bus driver").weight == Decimal("50")
        assert classifier.classify("I skipped the bus fare").weight == Decimal("-50")

    def test_confidence_is_a_fraction(self, fake_completion):
        fake = fake_completion(llm_reply(confidence=1))
        result = make_classifier(completion=fake).classify("I thanked the bus driver")
        assert result.confidence == 100

    def test_decode_rejects_percent_confidence(self):
        with pytest.raises(ValidationError):
            decode_llm_reply(llm_reply(confidence=85))

    def test_decode_rejects_out_of_range_confidence(self):
        with pytest.raises(ValidationError):
            decode_llm_reply(llm_reply(confidence=250))


class TestHeuristicTier:
    def test_positive_count(self):
        result = heuristic_classification("i want to learn and help", POSITIVE, NEGATIVE)
        assert result.type == "good"
        assert result.confidence == 80
        assert result.weight == Decimal("20")
        assert result.emotion == "kindness"

    def test_negative_count(self):
        result = heuristic_classification("i was lazy", POSITIVE, NEGATIVE)
        assert result.type == "bad"
        assert result.confidence == 70
        assert result.weight == Decimal("-15")
        assert result.emotion == "laziness"
        assert result.pattern_key == "laziness"

    def test_tie_is_neutral(self):
        result = heuristic_classification("i tried to help but was lazy", POSITIVE, NEGATIVE)
        assert result.type == "neutral"
        assert result.confidence == 50
        assert result.weight == 0

    def test_confidence_capped(self):
        text = "help support kind donate learn meditate"
        result = heuristic_classification(text, POSITIVE, NEGATIVE)
        assert result.confidence == 100


class TestSignAndHabits:
    @pytest.mark.parametrize("karma_type,weight,expected", [
        ("good", -10, Decimal("10")),
        ("good", 10, Decimal("10")),
        ("bad", 10, Decimal("-10")),
        ("bad", -10, Decimal("-10")),
        ("neutral", 10, Decimal("0")),
    ])
    def test_signed_weight(self, karma_type, weight, expected):
        assert signed_weight(karma_type, weight) == expected

    def test_habit_titles_from_lookup(self):
        classifier = make_classifier(habits={"anger": ["Daily Meditation Practice", "Pause Before Reacting"]})
        result = classifier.classify("so much anger and rage")
        assert result.habit_recommendation == ["Daily Meditation Practice", "Pause Before Reacting"]

    def test_default_habits_when_none_stored(self):
        result = make_classifier().classify("I helped my neighbor")
        assert result.habit_recommendation == DEFAULT_HABIT_RECOMMENDATIONS
