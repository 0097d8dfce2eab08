"""
Action Classifier — turns free text into a typed, weighted karma result.

Tiers (first success wins)
--------------------------
  1. RULE       keyword match against the active Weight Rule Table
                (threshold and tie-break in rule_table.py)
  2. LLM        only when no rule matched and a TextCompletion is injected;
                the JSON reply is decoded by a strict schema
  3. HEURISTIC  positive/negative keyword counting

Guarantees
----------
- `classify` never raises. Empty input yields a neutral, zero-weight result
  with confidence 0.
- LLM transport/parse/validation failures are logged at WARNING and fall
  through to the heuristic tier.
- The returned weight always agrees in sign with the returned type.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, asdict
from decimal import Decimal
from typing import Callable, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from karma_engine.core.errors import TextCompletionError
from karma_engine.services.common import round_half_up, today, to_decimal
from karma_engine.services.prompts import DEFAULT_PROMPTS, PromptTemplates
from karma_engine.services.rule_table import RuleSpec, match_rule
from karma_engine.services.text_completion import TextCompletion

logger = logging.getLogger(__name__)


class Tier:
    RULE = "rule"
    LLM = "llm"
    HEURISTIC = "heuristic"
    EMPTY = "empty"


DEFAULT_HABIT_RECOMMENDATIONS = ["Daily mindfulness practice", "Reflection journaling"]

# Weights outside the range the prompt asks for are clamped to it.
LLM_WEIGHT_LIMIT = Decimal("50")

_POSITIVE_EMOTIONS: list[tuple[tuple[str, ...], str]] = [
    (("help", "support"), "kindness"),
    (("learn", "study"), "discipline"),
    (("donate", "give"), "generosity"),
    (("meditate", "mindful"), "mindfulness"),
]
_NEGATIVE_EMOTIONS: list[tuple[tuple[str, ...], str]] = [
    (("anger", "angry", "rage"), "anger"),
    (("lazy", "procrastinate"), "laziness"),
    (("lie", "cheat", "dishonest"), "dishonesty"),
    (("selfish", "greed"), "ego"),
]

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class ClassificationResult:
    type: str
    confidence: int
    emotion: str
    category: str
    weight: Decimal
    pattern_key: str
    reasoning: str
    tier: str
    habit_recommendation: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["weight"] = float(self.weight)
        return data


# ---------------------------------------------------------------------------
# Strict decode of the LLM reply
# ---------------------------------------------------------------------------

class LLMClassification(BaseModel):
    """Schema the completion must satisfy; anything else triggers the fallback."""
    model_config = ConfigDict(strict=True, extra="ignore")

    type: Literal["good", "bad", "neutral"]
    confidence: float = Field(ge=0, le=1, description="Fraction between 0 and 1.")
    emotion: str = Field(min_length=1, max_length=100)
    category: str = Field(min_length=1, max_length=100)
    weight: float = Field(allow_inf_nan=False)
    pattern_key: str = Field(min_length=1, max_length=100)
    reasoning: str = Field(min_length=1)

    @field_validator("emotion", "category", "pattern_key")
    @classmethod
    def _slug(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("must not be blank")
        return v

    @property
    def confidence_percent(self) -> int:
        return round_half_up(self.confidence * 100)

    @property
    def bounded_weight(self) -> Decimal:
        return max(-LLM_WEIGHT_LIMIT, min(LLM_WEIGHT_LIMIT, to_decimal(self.weight)))


def _strip_fences(raw: str) -> str:
    match = _FENCE_RE.match(raw)
    return match.group(1) if match else raw.strip()


def decode_llm_reply(raw: str) -> LLMClassification:
    """Raises ValidationError on anything that is not a complete, well-typed object."""
    return LLMClassification.model_validate_json(_strip_fences(raw))


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def normalize_text(text: Optional[str]) -> str:
    return (text or "").lower().strip()


def signed_weight(karma_type: str, weight: Union[Decimal, float, int]) -> Decimal:
    """Force the weight sign to agree with the karma type."""
    value = abs(to_decimal(weight))
    if karma_type == "good":
        return value
    if karma_type == "bad":
        return -value
    return Decimal("0")


def detect_emotion(text: str, sentiment: str) -> str:
    table = _POSITIVE_EMOTIONS if sentiment == "positive" else _NEGATIVE_EMOTIONS
    for needles, emotion in table:
        if any(n in text for n in needles):
            return emotion
    return "kindness" if sentiment == "positive" else "negative"


def heuristic_classification(
    text: str,
    positive_keywords: Sequence[str],
    negative_keywords: Sequence[str],
) -> ClassificationResult:
    positive = sum(1 for kw in set(positive_keywords) if kw and kw in text)
    negative = sum(1 for kw in set(negative_keywords) if kw and kw in text)

    karma_type, confidence, emotion, weight = "neutral", 50, "neutral", Decimal("0")
    if positive > negative:
        karma_type = "good"
        confidence = min(100, 60 + positive * 10)
        emotion = detect_emotion(text, "positive")
        weight = Decimal(10 + positive * 5)
    elif negative > positive:
        karma_type = "bad"
        confidence = min(100, 60 + negative * 10)
        emotion = detect_emotion(text, "negative")
        weight = -Decimal(10 + negative * 5)

    return ClassificationResult(
        type=karma_type,
        confidence=confidence,
        emotion=emotion,
        category="general",
        weight=weight,
        pattern_key=emotion,
        reasoning=(
            f"Keyword heuristic: {positive} positive indicators, "
            f"{negative} negative indicators."
        ),
        tier=Tier.HEURISTIC,
    )


def rule_classification(normalized: str, rules: Sequence[RuleSpec]) -> Optional[ClassificationResult]:
    match = match_rule(normalized, rules)
    if match is None:
        return None
    rule = match.rule
    pct = round_half_up(match.match_score * 100)
    return ClassificationResult(
        type=rule.karma_type,
        confidence=min(100, round_half_up(match.match_score * 100 + 50)),
        emotion=rule.pattern_key,
        category=rule.category_slug,
        weight=rule.base_weight,
        pattern_key=rule.pattern_key,
        reasoning=f'Matched pattern "{rule.pattern_name}" with {pct}% keyword match.',
        tier=Tier.RULE,
    )


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

class ActionClassifier:
    """
    Three-tier classifier. Collaborators are injected so the whole chain can
    be exercised without a database or network:

      rules_provider   () -> Sequence[RuleSpec]
      habit_lookup     pattern_key -> list of habit titles (may be empty)
      completion       optional TextCompletion
    """

    def __init__(
        self,
        rules_provider: Callable[[], Sequence[RuleSpec]],
        habit_lookup: Callable[[str], list[str]],
        completion: Optional[TextCompletion] = None,
        positive_keywords: Sequence[str] = (),
        negative_keywords: Sequence[str] = (),
        prompts: PromptTemplates = DEFAULT_PROMPTS,
    ):
        self._rules_provider = rules_provider
        self._habit_lookup = habit_lookup
        self._completion = completion
        self._positive = [k.lower() for k in positive_keywords]
        self._negative = [k.lower() for k in negative_keywords]
        self._prompts = prompts

    def classify(self, text: Optional[str], user_id: Optional[int] = None) -> ClassificationResult:
        normalized = normalize_text(text)
        if not normalized:
            result = ClassificationResult(
                type="neutral",
                confidence=0,
                emotion="neutral",
                category="general",
                weight=Decimal("0"),
                pattern_key="neutral",
                reasoning="No action text to classify.",
                tier=Tier.EMPTY,
            )
        else:
            result = (
                rule_classification(normalized, self._rules_provider())
                or self._classify_with_llm(normalized, user_id)
                or heuristic_classification(normalized, self._positive, self._negative)
            )
        result.weight = signed_weight(result.type, result.weight)
        result.habit_recommendation = self._habits_for(result.pattern_key)
        return result

    def _classify_with_llm(self, text: str, user_id: Optional[int]) -> Optional[ClassificationResult]:
        if self._completion is None:
            return None
        system_prompt, user_prompt = self._prompts.classification(
            action_text=text,
            user_id=str(user_id) if user_id is not None else "unknown",
            current_date=today().isoformat(),
        )
        try:
            raw = self._completion.complete(system_prompt, user_prompt, json_response=True)
            reply = decode_llm_reply(raw)
        except ValidationError as exc:
            logger.warning(
                "LLM classification reply rejected (%d schema errors), using heuristic fallback",
                exc.error_count(),
            )
            return None
        except TextCompletionError as exc:
            logger.warning("LLM classification unavailable, using heuristic fallback: %s", exc)
            return None
        except Exception as exc:
            # injected clients may raise their own transport errors
            logger.warning(
                "LLM classification failed (%s), using heuristic fallback: %s",
                type(exc).__name__, exc,
            )
            return None

        return ClassificationResult(
            type=reply.type,
            confidence=reply.confidence_percent,
            emotion=reply.emotion,
            category=reply.category,
            weight=reply.bounded_weight,
            pattern_key=reply.pattern_key,
            reasoning=reply.reasoning,
            tier=Tier.LLM,
        )

    def _habits_for(self, pattern_key: str) -> list[str]:
        titles = self._habit_lookup(pattern_key)
        return list(titles) if titles else list(DEFAULT_HABIT_RECOMMENDATIONS)
