"""
Default reference data: weight rules and habit suggestions.

The initial migration inserts the same rows; `seed_reference_data` fills
the schema the test suite builds with `create_all`, where no migration runs.
Seeding is idempotent: existing (category, pattern) rules and
(pattern, title) habits are left untouched.
"""
from __future__ import annotations

import json
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from karma_engine.models.weight_rule import WeightRule
from karma_engine.models.habit_suggestion import HabitSuggestion

logger = logging.getLogger(__name__)


# (category_slug, pattern_key, pattern_name, karma_type, base_weight, keywords)
DEFAULT_WEIGHT_RULES: list[tuple[str, str, str, str, int, list[str]]] = [
    ("social",     "helping",     "Helping Others",           "good", 20,
     ["help", "assist", "support", "aid", "volunteer", "serve"]),
    ("financial",  "donating",    "Donating/Charity",         "good", 30,
     ["donate", "charity", "give", "contribute", "philanthropy"]),
    ("behavioral", "truth",       "Telling Truth",            "good", 10,
     ["truth", "honest", "truthful", "sincere", "authentic"]),
    ("personal",   "learning",    "Learning New Skills",      "good", 15,
     ["learn", "study", "practice", "improve", "skill", "education"]),
    ("spiritual",  "kindness",    "Acts of Kindness",         "good", 25,
     ["kind", "kindness", "compassion", "caring", "gentle", "loving"]),
    ("spiritual",  "mindfulness", "Mindfulness Practice",     "good", 15,
     ["meditate", "mindful", "meditation", "awareness", "present"]),
    ("spiritual",  "gratitude",   "Gratitude Practice",       "good", 12,
     ["grateful", "thankful", "appreciation", "gratitude"]),
    ("behavioral", "lying",       "Lying/Dishonesty",         "bad", -20,
     ["lie", "lying", "dishonest", "deceive", "cheat", "fraud"]),
    ("behavioral", "anger",       "Anger/Rage",               "bad", -25,
     ["anger", "angry", "rage", "furious", "irritated", "frustrated"]),
    ("behavioral", "laziness",    "Laziness/Procrastination", "bad", -15,
     ["lazy", "procrastinate", "delay", "postpone", "sloth"]),
    ("social",     "hurting",     "Hurting Someone",          "bad", -40,
     ["hurt", "harm", "damage", "injure", "pain", "suffer"]),
    ("behavioral", "ego",         "Ego/Selfishness",          "bad", -18,
     ["selfish", "ego", "arrogant", "pride", "greed", "self-centered"]),
    ("behavioral", "dishonesty",  "Dishonest Behavior",       "bad", -22,
     ["cheat", "steal", "deceive", "fraud", "scam", "trick"]),
]


# (pattern_key, title, description, priority, daily_tasks, motivational_message)
DEFAULT_HABIT_SUGGESTIONS: list[tuple[str, str, str, int, list[str], str]] = [
    ("anger", "Daily Meditation Practice",
     "Practice 10 minutes of meditation daily to manage anger and emotional responses.", 1,
     ["Morning: 10-minute breathing meditation",
      "Evening: Reflect on emotional triggers",
      "Before sleep: Gratitude journaling"],
     "Meditation helps you respond, not react. Each day of practice strengthens your emotional control."),
    ("anger", "Pause Before Reacting",
     "Count to 10 before responding to emotional situations.", 2,
     ["Practice counting to 10 when feeling angry",
      "Take 3 deep breaths before responding",
      "Write down your feelings before speaking"],
     "A moment of pause can prevent a lifetime of regret."),
    ("anger", "Evening Reflection Journal",
     "Journal about your emotional responses and triggers before sleep.", 3,
     ["Write about today's emotional moments",
      "Identify what triggered your reactions",
      "Plan better responses for tomorrow"],
     "Self-awareness is the first step to emotional mastery."),
    ("laziness", "Pomodoro Technique",
     "Use 25-minute focused work sessions with 5-minute breaks.", 1,
     ["Complete 4 Pomodoro sessions (25 min each)",
      "Take 5-minute breaks between sessions",
      "Track completed tasks"],
     "Small consistent actions create massive results over time."),
    ("laziness", "Morning Routine Setup",
     "Establish a consistent morning routine to start the day with purpose.", 2,
     ["Wake up at the same time daily",
      "Complete morning routine checklist",
      "Set 3 priorities for the day"],
     "How you start your day determines how you live your life."),
    ("laziness", "Evening Task Planning",
     "Plan tomorrow's tasks the night before.", 3,
     ["Write tomorrow's task list",
      "Prioritize top 3 tasks",
      "Review today's accomplishments"],
     "A plan written is a plan executed. Tomorrow's success starts tonight."),
    ("dishonesty", "Truth Journaling",
     "Daily practice of writing honestly about your actions and intentions.", 1,
     ["Morning: Set intention to be truthful",
      "Evening: Review actions with honesty",
      "Note any moments of temptation to be dishonest"],
     "Honesty with yourself is the foundation of all growth."),
    ("dishonesty", "Mindfulness Check-in",
     "Regular check-ins to assess your truthfulness and integrity.", 2,
     ["3 daily check-ins: morning, noon, evening",
      'Ask: "Am I being truthful right now?"',
      "Acknowledge and correct any dishonesty immediately"],
     "Integrity is doing the right thing even when no one is watching."),
    ("dishonesty", "Accountability Partner",
     "Share your commitment to honesty with a trusted person.", 3,
     ["Daily check-in with accountability partner",
      "Share challenges and victories",
      "Ask for support when needed"],
     "We are stronger together. Honesty shared is honesty strengthened."),
    ("kindness", "Daily Act of Kindness",
     "Perform at least one intentional act of kindness every day.", 1,
     ["Morning: Plan one act of kindness",
      "Execute the act during the day",
      "Evening: Reflect on the impact"],
     "Kindness is a language that everyone understands."),
    ("kindness", "Weekly Volunteering",
     "Dedicate time each week to volunteer or help others.", 2,
     ["Plan weekly volunteer activity",
      "Reflect on how you helped others",
      "Express gratitude for the opportunity to serve"],
     "Service to others is the rent we pay for our room on earth."),
    ("kindness", "Gratitude Expression",
     "Express gratitude to at least one person daily.", 3,
     ["Identify someone to thank",
      "Express gratitude sincerely",
      "Write gratitude note or message"],
     "Gratitude turns what we have into enough."),
    ("general", "Morning Intention Setting",
     "Start each day by choosing one value to live by.", 1,
     ["Write one intention for the day",
      "Recall your intention at lunch",
      "Rate how well you lived it tonight"],
     "Intention turns ordinary days into deliberate ones."),
    ("general", "Daily Mindfulness Practice",
     "Five minutes of quiet breathing to build awareness of your actions.", 2,
     ["5 minutes of breath awareness after waking",
      "One mindful pause before a difficult conversation",
      "Note one moment you acted with awareness"],
     "Awareness is the soil where good karma grows."),
    ("general", "Reflection Journaling",
     "Close each day by noting one good action and one to improve.", 3,
     ["Write down one good action from today",
      "Write down one action to improve",
      "Plan a small step for tomorrow"],
     "What you reflect on, you can refine."),
]


def seed_reference_data(db: Session) -> tuple[int, int]:
    """Insert missing default rules and habits. Returns (rules_added, habits_added)."""
    rules_added = 0
    for category, key, name, karma_type, weight, keywords in DEFAULT_WEIGHT_RULES:
        exists = (
            db.query(WeightRule.id)
            .filter(WeightRule.category_slug == category, WeightRule.pattern_key == key)
            .first()
        )
        if exists is not None:
            continue
        db.add(WeightRule(
            category_slug=category,
            pattern_key=key,
            pattern_name=name,
            karma_type=karma_type,
            base_weight=Decimal(weight),
            keywords=json.dumps(keywords),
            is_active=True,
        ))
        rules_added += 1

    habits_added = 0
    for key, title, description, priority, tasks, message in DEFAULT_HABIT_SUGGESTIONS:
        exists = (
            db.query(HabitSuggestion.id)
            .filter(HabitSuggestion.pattern_key == key, HabitSuggestion.habit_title == title)
            .first()
        )
        if exists is not None:
            continue
        db.add(HabitSuggestion(
            pattern_key=key,
            habit_title=title,
            habit_description=description,
            priority=priority,
            duration_days=30,
            daily_tasks=json.dumps(tasks),
            motivational_message=message,
            is_active=True,
        ))
        habits_added += 1

    db.commit()
    if rules_added or habits_added:
        logger.info("Seeded %d weight rules and %d habit suggestions", rules_added, habits_added)
    return rules_added, habits_added
