"""
Weight Rule Table — read-only snapshot of the active classification rules.

The classifier never touches ORM rows directly: active rows are converted
into frozen `RuleSpec` values, validated, and cached for a short TTL so a
burst of submissions does not re-query the table each time.

Matching (pure)
---------------
  match_score = keywords found in text / total keywords
  only rules with match_score > MATCH_THRESHOLD qualify
  ranking: match_score desc, |base_weight| desc, pattern_key asc, category asc
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterable, Optional, Sequence

from karma_engine.models.weight_rule import WeightRule
from karma_engine.services.common import ev, jload_list, to_decimal

logger = logging.getLogger(__name__)

MATCH_THRESHOLD = 0.3


@dataclass(frozen=True)
class RuleSpec:
    category_slug: str
    pattern_key: str
    pattern_name: str
    karma_type: str
    base_weight: Decimal
    keywords: tuple[str, ...]


@dataclass(frozen=True)
class RuleMatch:
    rule: RuleSpec
    match_score: float


def weight_agrees_with_type(karma_type: str, weight: Decimal) -> bool:
    if karma_type == "good":
        return weight >= 0
    if karma_type == "bad":
        return weight <= 0
    return weight == 0


def build_rule_snapshot(rows: Iterable[WeightRule]) -> tuple[RuleSpec, ...]:
    """
    Convert active WeightRule rows into RuleSpecs.
    Rows whose weight sign contradicts their karma type are skipped.
    """
    specs: list[RuleSpec] = []
    for row in rows:
        if not row.is_active:
            continue
        karma_type = ev(row.karma_type)
        weight = to_decimal(row.base_weight)
        if not weight_agrees_with_type(karma_type, weight):
            logger.warning(
                "Skipping weight rule %s/%s: weight %s contradicts type %s",
                row.category_slug, row.pattern_key, weight, karma_type,
            )
            continue
        keywords = tuple(
            str(k).strip().lower() for k in jload_list(row.keywords) if str(k).strip()
        )
        specs.append(RuleSpec(
            category_slug=row.category_slug,
            pattern_key=row.pattern_key,
            pattern_name=row.pattern_name,
            karma_type=karma_type,
            base_weight=weight,
            keywords=keywords,
        ))
    return tuple(specs)


def _rank_key(m: RuleMatch):
    return (-m.match_score, -abs(m.rule.base_weight), m.rule.pattern_key, m.rule.category_slug)


def match_rule(normalized_text: str, rules: Sequence[RuleSpec]) -> Optional[RuleMatch]:
    """Return the best qualifying rule for already-normalised text, or None."""
    candidates: list[RuleMatch] = []
    for rule in rules:
        if not rule.keywords:
            continue
        found = sum(1 for kw in rule.keywords if kw in normalized_text)
        score = found / len(rule.keywords)
        if score > MATCH_THRESHOLD:
            candidates.append(RuleMatch(rule=rule, match_score=score))
    if not candidates:
        return None
    return min(candidates, key=_rank_key)


class RuleTableCache:
    """
    TTL cache around a snapshot loader. The snapshot itself is an immutable
    tuple, so handing it to concurrent requests is safe.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: Optional[tuple[RuleSpec, ...]] = None
        self._loaded_at = 0.0

    def get(self, loader: Callable[[], tuple[RuleSpec, ...]]) -> tuple[RuleSpec, ...]:
        with self._lock:
            now = self._clock()
            if self._snapshot is None or now - self._loaded_at >= self._ttl:
                self._snapshot = loader()
                self._loaded_at = now
            return self._snapshot
