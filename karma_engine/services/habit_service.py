"""
Habit Recommender — a 30-day improvement plan built from detected weaknesses.

Selection
---------
  1. For each weakness key (analyzer order): up to 3 active suggestions,
     priority ascending.
  2. Nothing selected → 3 "general" suggestions (stored rows, else the
     built-in defaults).
  3. Stable re-sort by priority, keep the top 5.

Schedule
--------
Day d (1-based) gets, per habit, daily_tasks[(d - 1) % len(daily_tasks)],
or "Continue practicing this habit" when the habit has no tasks.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Optional, Sequence

from karma_engine.models.habit_suggestion import HabitSuggestion
from karma_engine.services.common import jload_list, today
from karma_engine.services.pattern_service import PatternAnalysis
from karma_engine.services.seed_data import DEFAULT_HABIT_SUGGESTIONS

PLAN_DURATION_DAYS = 30
HABITS_PER_PATTERN = 3
MAX_HABITS = 5
GENERAL_PATTERN_KEY = "general"
FALLBACK_TASK = "Continue practicing this habit"

WEAKNESS_QUOTE = (
    '"Every moment is a fresh beginning. Your awareness of these patterns '
    'is the first step toward transformation."'
)
STRENGTH_QUOTE = (
    '"Your positive patterns are creating a beautiful foundation. '
    'Keep nurturing your strengths!"'
)
CONSISTENCY_QUOTE = (
    '"Consistency is the key to lasting change. '
    'Small daily actions create profound transformations."'
)


@dataclass
class HabitRecommendation:
    habit_id: Optional[int]
    habit_title: str
    habit_description: str
    priority: int
    duration_days: int
    daily_tasks: list[str]
    motivational_message: str
    pattern_key: str
    pattern_name: str


@dataclass
class ScheduledTask:
    habit_title: str
    task: str


@dataclass
class ScheduleDay:
    day: int
    date: date
    tasks: list[ScheduledTask] = field(default_factory=list)


@dataclass
class HabitPlan:
    user_id: int
    plan_duration_days: int
    start_date: date
    end_date: date
    habits: list[HabitRecommendation]
    daily_schedule: list[ScheduleDay]
    motivational_quote: str


SuggestionLookup = Callable[[str, int], Sequence[HabitSuggestion]]


def recommendation_from_row(row: HabitSuggestion, pattern_name: str) -> HabitRecommendation:
    return HabitRecommendation(
        habit_id=row.id,
        habit_title=row.habit_title,
        habit_description=row.habit_description,
        priority=row.priority,
        duration_days=row.duration_days,
        daily_tasks=[str(t) for t in jload_list(row.daily_tasks)],
        motivational_message=row.motivational_message or "",
        pattern_key=row.pattern_key,
        pattern_name=pattern_name,
    )


def builtin_general_habits() -> list[HabitRecommendation]:
    return [
        HabitRecommendation(
            habit_id=None,
            habit_title=title,
            habit_description=description,
            priority=priority,
            duration_days=PLAN_DURATION_DAYS,
            daily_tasks=list(tasks),
            motivational_message=message,
            pattern_key=key,
            pattern_name=key,
        )
        for key, title, description, priority, tasks, message in DEFAULT_HABIT_SUGGESTIONS
        if key == GENERAL_PATTERN_KEY
    ][:HABITS_PER_PATTERN]


def select_habits(
    analysis: PatternAnalysis,
    lookup: SuggestionLookup,
) -> list[HabitRecommendation]:
    names = dict(zip(analysis.weakness_keys, analysis.weaknesses))
    selected: list[HabitRecommendation] = []
    for key in analysis.weakness_keys:
        rows = lookup(key, HABITS_PER_PATTERN)
        selected.extend(recommendation_from_row(r, names.get(key, key)) for r in rows[:HABITS_PER_PATTERN])

    if not selected:
        rows = lookup(GENERAL_PATTERN_KEY, HABITS_PER_PATTERN)
        selected = [
            recommendation_from_row(r, GENERAL_PATTERN_KEY) for r in rows[:HABITS_PER_PATTERN]
        ] or builtin_general_habits()

    # sorted() is stable, so equal priorities keep weakness order
    return sorted(selected, key=lambda h: h.priority)[:MAX_HABITS]


def build_daily_schedule(
    habits: Sequence[HabitRecommendation],
    start: date,
    duration_days: int = PLAN_DURATION_DAYS,
) -> list[ScheduleDay]:
    schedule = []
    for day in range(1, duration_days + 1):
        tasks = []
        for habit in habits:
            task = habit.daily_tasks[(day - 1) % len(habit.daily_tasks)] if habit.daily_tasks else FALLBACK_TASK
            tasks.append(ScheduledTask(habit_title=habit.habit_title, task=task))
        schedule.append(ScheduleDay(day=day, date=start + timedelta(days=day - 1), tasks=tasks))
    return schedule


def motivational_quote(analysis: PatternAnalysis) -> str:
    if analysis.weaknesses:
        return WEAKNESS_QUOTE
    if analysis.strengths:
        return STRENGTH_QUOTE
    return CONSISTENCY_QUOTE


def build_habit_plan(
    user_id: int,
    analysis: PatternAnalysis,
    lookup: SuggestionLookup,
    start: Optional[date] = None,
) -> HabitPlan:
    start = start or today()
    habits = select_habits(analysis, lookup)
    return HabitPlan(
        user_id=user_id,
        plan_duration_days=PLAN_DURATION_DAYS,
        start_date=start,
        end_date=start + timedelta(days=PLAN_DURATION_DAYS),
        habits=habits,
        daily_schedule=build_daily_schedule(habits, start),
        motivational_quote=motivational_quote(analysis),
    )
