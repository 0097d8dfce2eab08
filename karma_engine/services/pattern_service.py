"""
Pattern Analyzer — groups a user's ledger into recurring behaviors.

Computation (pure, `analyze_entries`)
-------------------------------------
- Entries are walked in (entry_date, id) order and grouped by the
  classification's pattern_key ("unknown" when missing). The group name is
  the classification emotion ("Unknown Pattern" when missing) and the type
  is the karma_type of the first entry seen.
- Per group: frequency, signed total impact, first/last dates and up to 5
  sample texts (100 chars each).
- Groups sort by frequency desc, then pattern_key asc.
- Strength  = good pattern seen at least 3 times.
  Weakness  = bad pattern seen at least 2 times.

Persistence (`PatternAnalyzer.save`)
------------------------------------
One KarmaPattern row per (user, pattern_key). Running the analysis twice on
an unchanged ledger leaves the cache unchanged.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable

from karma_engine.models.karma_entry import KarmaEntry
from karma_engine.models.karma_pattern import KarmaPattern
from karma_engine.services.common import ev, quantize2, to_decimal
from karma_engine.services.ledger import LedgerStore, PatternRow

logger = logging.getLogger(__name__)

STRENGTH_MIN_FREQUENCY = 3
WEAKNESS_MIN_FREQUENCY = 2
MAX_SAMPLE_ACTIONS = 5
SAMPLE_TEXT_LENGTH = 100

UNKNOWN_PATTERN_KEY = "unknown"
UNKNOWN_PATTERN_NAME = "Unknown Pattern"


@dataclass
class DetectedPattern:
    pattern_key: str
    pattern_name: str
    pattern_type: str
    frequency: int
    total_impact: Decimal
    first_detected: date
    last_detected: date
    sample_actions: list[str] = field(default_factory=list)

    @property
    def is_strength(self) -> bool:
        return self.pattern_type == "good" and self.frequency >= STRENGTH_MIN_FREQUENCY

    @property
    def is_weakness(self) -> bool:
        return self.pattern_type == "bad" and self.frequency >= WEAKNESS_MIN_FREQUENCY


@dataclass
class PatternAnalysis:
    detected_patterns: list[DetectedPattern]
    strengths: list[str]
    weaknesses: list[str]
    strength_keys: list[str]
    weakness_keys: list[str]
    dominant_emotion: str
    behavioral_insights: str


# ---------------------------------------------------------------------------
# Pure computation
# ---------------------------------------------------------------------------

def _entry_order(entry: KarmaEntry) -> tuple:
    return (entry.entry_date, entry.id or 0)


def analyze_entries(entries: Iterable[KarmaEntry]) -> PatternAnalysis:
    groups: dict[str, DetectedPattern] = {}

    for entry in sorted(entries, key=_entry_order):
        analysis = entry.analysis
        key = analysis.get("pattern_key") or UNKNOWN_PATTERN_KEY
        pattern = groups.get(key)
        if pattern is None:
            pattern = DetectedPattern(
                pattern_key=key,
                pattern_name=analysis.get("emotion") or UNKNOWN_PATTERN_NAME,
                pattern_type=ev(entry.karma_type),
                frequency=0,
                total_impact=Decimal("0"),
                first_detected=entry.entry_date,
                last_detected=entry.entry_date,
            )
            groups[key] = pattern

        pattern.frequency += 1
        pattern.total_impact += to_decimal(entry.score)
        pattern.first_detected = min(pattern.first_detected, entry.entry_date)
        pattern.last_detected = max(pattern.last_detected, entry.entry_date)
        if len(pattern.sample_actions) < MAX_SAMPLE_ACTIONS:
            pattern.sample_actions.append((entry.text or "")[:SAMPLE_TEXT_LENGTH])

    detected = sorted(groups.values(), key=lambda p: (-p.frequency, p.pattern_key))
    for p in detected:
        p.total_impact = quantize2(p.total_impact)

    strengths = [p for p in detected if p.is_strength]
    weaknesses = [p for p in detected if p.is_weakness]
    strength_names = [p.pattern_name for p in strengths]
    weakness_names = [p.pattern_name for p in weaknesses]

    return PatternAnalysis(
        detected_patterns=detected,
        strengths=strength_names,
        weaknesses=weakness_names,
        strength_keys=[p.pattern_key for p in strengths],
        weakness_keys=[p.pattern_key for p in weaknesses],
        dominant_emotion=detected[0].pattern_key if detected else "neutral",
        behavioral_insights=behavioral_insights(detected, strength_names, weakness_names),
    )


def behavioral_insights(
    patterns: list[DetectedPattern],
    strengths: list[str],
    weaknesses: list[str],
) -> str:
    parts: list[str] = []
    if strengths:
        parts.append(
            f"You show strong patterns of {', '.join(strengths)}. "
            "These are your key strengths that contribute positively to your karma."
        )
    if weaknesses:
        parts.append(
            f"Areas for improvement include {', '.join(weaknesses)}. "
            "These patterns appear frequently and may be impacting your overall karma score."
        )
    if patterns:
        top = patterns[0]
        if top.pattern_type == "good":
            parts.append(
                f'Your most common behavior is "{top.pattern_name}" '
                f"(appeared {top.frequency} times), which is excellent for your spiritual growth."
            )
        else:
            parts.append(
                f'Your most common behavior is "{top.pattern_name}" '
                f"(appeared {top.frequency} times). Consider focusing on transforming this pattern."
            )
    if not parts:
        parts.append(
            "You have a balanced karma profile. Continue maintaining awareness "
            "of your actions and their impact."
        )
    return " ".join(parts)


def pattern_rows(user_id: int, analysis: PatternAnalysis) -> list[PatternRow]:
    return [
        PatternRow(
            user_id=user_id,
            pattern_key=p.pattern_key,
            pattern_name=p.pattern_name,
            pattern_type=p.pattern_type,
            frequency=p.frequency,
            total_impact=p.total_impact,
            first_detected=p.first_detected,
            last_detected=p.last_detected,
            sample_actions=list(p.sample_actions),
        )
        for p in analysis.detected_patterns
    ]


# ---------------------------------------------------------------------------
# Store-backed analyzer
# ---------------------------------------------------------------------------

class PatternAnalyzer:
    def __init__(self, store: LedgerStore):
        self.store = store

    def analyze(self, user_id: int, save: bool = True) -> PatternAnalysis:
        analysis = analyze_entries(self.store.find_by_user(user_id))
        if save:
            self.save(user_id, analysis)
        return analysis

    def save(self, user_id: int, analysis: PatternAnalysis) -> list[KarmaPattern]:
        saved = [self.store.upsert_pattern(row) for row in pattern_rows(user_id, analysis)]
        logger.debug("Saved %d patterns for user %s", len(saved), user_id)
        return saved

    def stored_patterns(self, user_id: int) -> list[KarmaPattern]:
        return self.store.find_patterns(user_id)
