"""
Streak/Level Calculator.

A streak is a run of consecutive calendar days holding at least one
non-deleted entry. The current streak counts back from "today" and is 0
when today has no entry. The level is driven by the best of the current
and the longest streak:

  level     name                 days     next threshold
  awaken    Awaken               0–6      7
  builder   Disciplined Bhakt    7–29     30
  pro       Karma Yogi           30–89    90
  master    Sattvik              90+      999

progress_to_next_level is linear within the tier:
  round((days − tier_floor) / (next − tier_floor) × 100), capped at 100;
master is always 100.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional

from karma_engine.services.common import round_half_up, today
from karma_engine.services.ledger import LedgerStore


@dataclass(frozen=True)
class Level:
    key: str
    name: str
    floor: int
    next_threshold: int


LEVELS: tuple[Level, ...] = (
    Level("awaken", "Awaken", 0, 7),
    Level("builder", "Disciplined Bhakt", 7, 30),
    Level("pro", "Karma Yogi", 30, 90),
    Level("master", "Sattvik", 90, 999),
)


@dataclass
class KarmaStreak:
    current_streak_days: int
    longest_streak_days: int
    level: str
    level_name: str
    next_level_threshold: int
    progress_to_next_level: int


def current_streak(active_days: set[date], as_of: date) -> int:
    days = 0
    cursor = as_of
    while cursor in active_days:
        days += 1
        cursor -= timedelta(days=1)
    return days


def longest_streak(active_days: Iterable[date]) -> int:
    longest = run = 0
    previous: Optional[date] = None
    for day in sorted(set(active_days)):
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        longest = max(longest, run)
        previous = day
    return longest


def level_for(days: int) -> Level:
    for level in reversed(LEVELS):
        if days >= level.floor:
            return level
    return LEVELS[0]


def progress_within(level: Level, days: int) -> int:
    if level.key == "master":
        return 100
    width = level.next_threshold - level.floor
    return min(100, round_half_up((days - level.floor) * 100 / width))


def compute_streak(active_days: Iterable[date], as_of: Optional[date] = None) -> KarmaStreak:
    days = set(active_days)
    current = current_streak(days, as_of or today())
    longest = longest_streak(days)
    best = max(current, longest)
    level = level_for(best)
    return KarmaStreak(
        current_streak_days=current,
        longest_streak_days=longest,
        level=level.key,
        level_name=level.name,
        next_level_threshold=level.next_threshold,
        progress_to_next_level=progress_within(level, best),
    )


class StreakCalculator:
    def __init__(self, store: LedgerStore):
        self.store = store

    def streak(self, user_id: int, as_of: Optional[date] = None) -> KarmaStreak:
        return compute_streak(
            (e.entry_date for e in self.store.find_by_user(user_id)),
            as_of,
        )
