"""
Karma Service — the engine's single entry point for the request layer.

Public API
----------
add_action(user_id, action_text, entry_date, self_assessment) -> KarmaEntry
delete_action(user_id, entry_id)                               -> None
classify(action_text, user_id)                                 -> ClassificationResult
score(user_id)                                                 -> KarmaScoreResult
patterns(user_id)                                              -> PatternAnalysis
pattern_history(user_id)                                       -> list[KarmaPattern]
habits(user_id)                                                -> HabitPlan
streak(user_id)                                                -> KarmaStreak
recent_actions(user_id, limit)                                 -> list[KarmaEntry]
weekly_insights(user_id) / monthly_insights(user_id)           -> dict
summary(user_id)                                               -> dict
dashboard(user_id)                                             -> dict
today(user_id)                                                 -> dict

Reads never fail on an empty ledger: a user with no entries gets the
neutral score, no patterns, the general habit plan and a zero streak.

Narrative text (insight summary and prediction) is resolved in order:
text cached on the period summary → text completion → templated fallback.
Whatever is chosen is cached on the summary row until its numbers change.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional

from sqlalchemy.orm import Session

from karma_engine.core.config import Settings, settings as default_settings
from karma_engine.core.errors import (
    EmptyActionTextError,
    EntryNotFoundError,
    TextCompletionError,
    UserNotFoundError,
)
from karma_engine.models.karma_entry import KarmaEntry, KarmaType
from karma_engine.models.karma_pattern import KarmaPattern
from karma_engine.models.score_summary import KarmaScoreSummary
from karma_engine.services.classifier import ActionClassifier, ClassificationResult
from karma_engine.services.common import ev, jdump, jload_list, round_half_up, to_decimal, today as utc_today
from karma_engine.services.habit_service import HABITS_PER_PATTERN, HabitPlan, build_habit_plan
from karma_engine.services.ledger import (
    IdentityCheck,
    LedgerStore,
    SqlIdentityCheck,
    SqlLedgerStore,
)
from karma_engine.services.pattern_service import DetectedPattern, PatternAnalysis, PatternAnalyzer
from karma_engine.services.prompts import DEFAULT_PROMPTS, PromptTemplates
from karma_engine.services.rule_table import RuleTableCache, build_rule_snapshot
from karma_engine.services.score_service import (
    KarmaScoreResult,
    PeriodComparison,
    PeriodType,
    ScoreAggregator,
    Trend,
    category_breakdown,
    grade_for_score,
    tally_points,
)
from karma_engine.services.streak_service import KarmaStreak, StreakCalculator
from karma_engine.services.text_completion import TextCompletion

logger = logging.getLogger(__name__)

RECENT_ACTIONS_LIMIT = 10
TOP_PATTERNS_LIMIT = 5

# Shared across requests; each request supplies its own session as the loader.
rule_cache = RuleTableCache(default_settings.RULE_CACHE_TTL_SECONDS)

_PERIOD_LABELS = {PeriodType.WEEKLY: "week", PeriodType.MONTHLY: "month"}

_PATTERN_LABELS = {
    "kindness": "Kindness & Compassion",
    "donating": "Generosity",
    "helping": "Helping Others",
    "discipline": "Self-Discipline",
    "mindfulness": "Mindfulness",
    "anger": "Anger / Reactivity",
    "laziness": "Laziness / Procrastination",
    "dishonesty": "Dishonesty",
    "ego": "Ego / Selfishness",
}

_STRENGTH_DESCRIPTIONS = {
    "kindness": "You are showing consistent acts of kindness and compassion towards others.",
    "donating": "Your generosity and charitable actions are creating positive karma.",
    "helping": "You frequently help others, which is building strong positive karma.",
    "discipline": "Your self-discipline and commitment to growth are admirable.",
    "mindfulness": "Your mindful actions show awareness and intentionality.",
}

_WEAKNESS_DESCRIPTIONS = {
    "anger": "Frequent anger-related actions are lowering your karma. Consider meditation and pause techniques.",
    "laziness": "Procrastination and laziness patterns are impacting your karma. Focus on discipline and planning.",
    "dishonesty": "Dishonest actions are creating negative karma. Practice truthfulness and integrity.",
    "ego": "Selfish or ego-driven behaviors are affecting your karma. Focus on empathy and service.",
}


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def entry_dict(e: KarmaEntry) -> dict:
    analysis = e.analysis
    return {
        "id": e.id,
        "user_id": e.user_id,
        "text": e.text,
        "karma_type": ev(e.karma_type),
        "score": float(to_decimal(e.score)),
        "category_slug": e.category_slug,
        "category_name": e.category_name,
        "pattern_key": e.pattern_key,
        "emotion": analysis.get("emotion") or "neutral",
        "confidence": analysis.get("confidence") or 0,
        "self_assessment": ev(e.self_assessment) if e.self_assessment else None,
        "entry_date": str(e.entry_date),
        "classification": analysis,
        "created_at": e.created_at.isoformat() if e.created_at else None,
    }


def pattern_dict(p: DetectedPattern) -> dict:
    return {
        "pattern_key": p.pattern_key,
        "pattern_name": p.pattern_name,
        "pattern_type": p.pattern_type,
        "frequency": p.frequency,
        "total_impact": float(p.total_impact),
        "first_detected": str(p.first_detected),
        "last_detected": str(p.last_detected),
        "sample_actions": list(p.sample_actions),
    }


def stored_pattern_dict(p: KarmaPattern) -> dict:
    return {
        "id": p.id,
        "pattern_key": p.pattern_key,
        "pattern_name": p.pattern_name,
        "pattern_type": ev(p.pattern_type),
        "frequency_count": p.frequency_count,
        "total_score_impact": float(to_decimal(p.total_score_impact)),
        "first_detected_date": str(p.first_detected_date),
        "last_detected_date": str(p.last_detected_date),
        "sample_actions": jload_list(p.sample_actions),
    }


def analysis_dict(a: PatternAnalysis) -> dict:
    return {
        "detected_patterns": [pattern_dict(p) for p in a.detected_patterns],
        "strengths": a.strengths,
        "weaknesses": a.weaknesses,
        "strength_keys": a.strength_keys,
        "weakness_keys": a.weakness_keys,
        "dominant_emotion": a.dominant_emotion,
        "behavioral_insights": a.behavioral_insights,
    }


def score_dict(s: KarmaScoreResult) -> dict:
    return {
        "karma_score": float(s.karma_score),
        "total_good_points": float(s.total_good_points),
        "total_bad_points": float(s.total_bad_points),
        "total_actions": s.total_actions,
        "good_actions_count": s.good_actions_count,
        "bad_actions_count": s.bad_actions_count,
        "neutral_actions_count": s.neutral_actions_count,
        "trend": s.trend,
        "trend_percentage": s.trend_percentage,
    }


def habit_plan_dict(plan: HabitPlan) -> dict:
    return {
        "user_id": plan.user_id,
        "plan_duration_days": plan.plan_duration_days,
        "start_date": str(plan.start_date),
        "end_date": str(plan.end_date),
        "habits": [
            {
                "habit_id": h.habit_id,
                "habit_title": h.habit_title,
                "habit_description": h.habit_description,
                "priority": h.priority,
                "duration_days": h.duration_days,
                "daily_tasks": h.daily_tasks,
                "motivational_message": h.motivational_message,
                "pattern_key": h.pattern_key,
                "pattern_name": h.pattern_name,
            }
            for h in plan.habits
        ],
        "daily_schedule": [
            {
                "day": d.day,
                "date": str(d.date),
                "tasks": [{"habit_title": t.habit_title, "task": t.task} for t in d.tasks],
            }
            for d in plan.daily_schedule
        ],
        "motivational_quote": plan.motivational_quote,
    }


def streak_dict(s: KarmaStreak) -> dict:
    return {
        "current_streak_days": s.current_streak_days,
        "longest_streak_days": s.longest_streak_days,
        "level": s.level,
        "level_name": s.level_name,
        "next_level_threshold": s.next_level_threshold,
        "progress_to_next_level": s.progress_to_next_level,
    }


def comparison_dict(c: PeriodComparison) -> dict:
    return {
        "current_score": float(c.current_score),
        "previous_score": float(c.previous_score),
        "change": float(c.change),
        "change_percentage": c.change_percentage,
    }


# ---------------------------------------------------------------------------
# Templated text
# ---------------------------------------------------------------------------

def pattern_label(pattern_name: str) -> str:
    return _PATTERN_LABELS.get(pattern_name.lower(), pattern_name)


def pattern_description(p: DetectedPattern, as_strength: bool) -> str:
    if as_strength:
        return _STRENGTH_DESCRIPTIONS.get(
            p.pattern_key, f"You show strong patterns of {p.pattern_name}."
        )
    return _WEAKNESS_DESCRIPTIONS.get(
        p.pattern_key, f"Frequent {p.pattern_name} patterns are impacting your karma."
    )


def fallback_period_summary(label: str, summary: KarmaScoreSummary, analysis: PatternAnalysis) -> str:
    total = summary.total_good_actions + summary.total_bad_actions + summary.total_neutral_actions
    return (
        f"This {label}, you recorded {total} actions. "
        f"Your karma score is {float(summary.karma_score):.1f}. {analysis.behavioral_insights}"
    )


def fallback_prediction(score) -> str:
    value = to_decimal(score)
    if value >= 70:
        return "Excellent karma! Continue your positive actions to maintain this high score."
    if value >= 50:
        return "Good karma foundation. Focus on your habit plan to improve further."
    return "There is room for improvement. Follow your personalized habit plan to enhance your karma."


def trend_prediction(score: KarmaScoreResult) -> str:
    if score.trend == Trend.IMPROVING:
        target = min(100.0, float(score.karma_score) + 10)
        return (
            "Your karma is improving! If you continue this pattern, "
            f"your score could reach {target:g} in the next month."
        )
    if score.trend == Trend.DECLINING:
        return "Your karma shows a declining trend. Focus on your habit plan to reverse this pattern."
    return "Your karma is stable. Continue practicing your recommended habits for steady growth."


def improvement_summary(analysis: PatternAnalysis) -> str:
    if analysis.strengths and not analysis.weaknesses:
        return (
            "Excellent! You're maintaining strong positive patterns. "
            f"Continue nurturing your strengths: {', '.join(analysis.strengths)}."
        )
    if analysis.weaknesses and analysis.strengths:
        return (
            f"Focus on managing {analysis.weaknesses[0]} while continuing "
            f"your {analysis.strengths[0]} practices."
        )
    if analysis.weaknesses:
        return f"Focus on transforming {' and '.join(analysis.weaknesses)} patterns to improve your karma."
    return "Continue maintaining awareness of your actions and their impact on your karma."


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class KarmaService:
    def __init__(
        self,
        store: LedgerStore,
        identity: IdentityCheck,
        classifier: ActionClassifier,
        completion: Optional[TextCompletion] = None,
        prompts: PromptTemplates = DEFAULT_PROMPTS,
        clock: Callable[[], date] = utc_today,
    ):
        self.store = store
        self.identity = identity
        self.classifier = classifier
        self.completion = completion
        self.prompts = prompts
        self.clock = clock
        self.scores = ScoreAggregator(store)
        self.analyzer = PatternAnalyzer(store)
        self.streaks = StreakCalculator(store)

    # --- writes ---

    def add_action(
        self,
        user_id: int,
        action_text: Optional[str],
        entry_date: Optional[date] = None,
        self_assessment: Optional[str] = None,
    ) -> KarmaEntry:
        if not action_text or not action_text.strip():
            raise EmptyActionTextError()
        if not self.identity.user_exists(user_id):
            raise UserNotFoundError(user_id)

        result = self.classifier.classify(action_text, user_id=user_id)
        entry = self.store.create(KarmaEntry(
            user_id=user_id,
            text=action_text.strip(),
            karma_type=KarmaType(result.type),
            score=result.weight,
            category_slug=result.category,
            category_name=result.category.replace("_", " ").replace("-", " ").title(),
            pattern_key=result.pattern_key,
            self_assessment=KarmaType(self_assessment) if self_assessment else None,
            entry_date=entry_date or self.clock(),
            classification=jdump(result.to_dict()),
            is_deleted=False,
        ))
        logger.info(
            "Karma action added for user %s: %s via %s tier (confidence %s%%, weight %s)",
            user_id, result.type, result.tier, result.confidence, result.weight,
        )
        return entry

    def delete_action(self, user_id: int, entry_id: int) -> None:
        if not self.store.soft_delete(user_id, entry_id):
            raise EntryNotFoundError(user_id, entry_id)
        logger.info("Karma entry %s soft-deleted for user %s", entry_id, user_id)

    # --- single-concern reads ---

    def classify(self, action_text: Optional[str], user_id: Optional[int] = None) -> ClassificationResult:
        return self.classifier.classify(action_text, user_id=user_id)

    def score(self, user_id: int) -> KarmaScoreResult:
        return self.scores.score_for_user(user_id, self.clock())

    def patterns(self, user_id: int) -> PatternAnalysis:
        return self.analyzer.analyze(user_id)

    def pattern_history(self, user_id: int) -> list[KarmaPattern]:
        return self.analyzer.stored_patterns(user_id)

    def habits(self, user_id: int, analysis: Optional[PatternAnalysis] = None) -> HabitPlan:
        return build_habit_plan(
            user_id,
            analysis or self.analyzer.analyze(user_id),
            self.store.habit_suggestions,
            start=self.clock(),
        )

    def streak(self, user_id: int) -> KarmaStreak:
        return self.streaks.streak(user_id, self.clock())

    def recent_actions(self, user_id: int, limit: int = RECENT_ACTIONS_LIMIT) -> list[KarmaEntry]:
        entries = self.store.find_by_user(user_id)
        entries.sort(key=lambda e: (e.entry_date, e.id or 0), reverse=True)
        return entries[:limit]

    def today(self, user_id: int) -> dict:
        day = self.clock()
        entries = [e for e in self.store.find_by_user(user_id) if e.entry_date == day]
        entries.sort(key=lambda e: e.id or 0)
        return {
            "date": str(day),
            "has_submitted": bool(entries),
            "total_actions": len(entries),
            "entries": [entry_dict(e) for e in entries],
        }

    # --- insights ---

    def weekly_insights(self, user_id: int, analysis: Optional[PatternAnalysis] = None) -> dict:
        return self._period_insights(user_id, PeriodType.WEEKLY, analysis)

    def monthly_insights(self, user_id: int, analysis: Optional[PatternAnalysis] = None) -> dict:
        return self._period_insights(user_id, PeriodType.MONTHLY, analysis)

    def _period_insights(
        self, user_id: int, period_type: str, analysis: Optional[PatternAnalysis]
    ) -> dict:
        summary = self.scores.score_for_period(user_id, period_type, self.clock())
        analysis = analysis or self.analyzer.analyze(user_id)
        trend, trend_pct = self.scores.period_trend(user_id, summary)
        summary_text, prediction = self._narrative(summary, analysis, period_type)
        return {
            "period": period_type,
            "period_start": str(summary.period_start),
            "period_end": str(summary.period_end),
            "karma_score": float(summary.karma_score),
            "total_actions": (
                summary.total_good_actions + summary.total_bad_actions + summary.total_neutral_actions
            ),
            "good_actions": summary.total_good_actions,
            "bad_actions": summary.total_bad_actions,
            "neutral_actions": summary.total_neutral_actions,
            "trend": trend,
            "trend_percentage": trend_pct,
            "top_patterns": [pattern_dict(p) for p in analysis.detected_patterns[:TOP_PATTERNS_LIMIT]],
            "summary_text": summary_text,
            "prediction": prediction,
        }

    def _narrative(
        self, summary: KarmaScoreSummary, analysis: PatternAnalysis, period_type: str
    ) -> tuple[str, str]:
        label = _PERIOD_LABELS[period_type]
        if summary.ai_summary and summary.prediction:
            return summary.ai_summary, summary.prediction

        context = {
            "period_label": label,
            "period_start": str(summary.period_start),
            "period_end": str(summary.period_end),
            "total_actions": (
                summary.total_good_actions + summary.total_bad_actions + summary.total_neutral_actions
            ),
            "good_actions": summary.total_good_actions,
            "bad_actions": summary.total_bad_actions,
            "neutral_actions": summary.total_neutral_actions,
            "karma_score": f"{float(summary.karma_score):.1f}",
            "dominant_patterns": ", ".join(
                p.pattern_name for p in analysis.detected_patterns[:3]
            ) or "none yet",
            "strengths": ", ".join(analysis.strengths) or "none yet",
            "weaknesses": ", ".join(analysis.weaknesses) or "none",
        }
        text = (
            summary.ai_summary
            or self._complete_text(self.prompts.insight(**context))
            or fallback_period_summary(label, summary, analysis)
        )
        prediction = (
            summary.prediction
            or self._complete_text(self.prompts.prediction(**context))
            or fallback_prediction(summary.karma_score)
        )
        self.store.save_summary_texts(summary, text, prediction)
        return text, prediction

    def _complete_text(self, prompt: str) -> Optional[str]:
        if self.completion is None:
            return None
        try:
            text = self.completion.complete(None, prompt)
        except TextCompletionError as exc:
            logger.warning("Insight narrative unavailable, using template: %s", exc)
            return None
        except Exception as exc:
            logger.warning(
                "Insight narrative failed (%s), using template: %s", type(exc).__name__, exc
            )
            return None
        if not isinstance(text, str):
            return None
        return text.strip() or None

    # --- composed reads ---

    def summary(self, user_id: int) -> dict:
        score = self.score(user_id)
        analysis = self.analyzer.analyze(user_id)
        plan = self.habits(user_id, analysis)
        weekly = self.weekly_insights(user_id, analysis)
        monthly = self.monthly_insights(user_id, analysis)
        return {
            "karma_score": score_dict(score),
            "pattern_analysis": analysis_dict(analysis),
            "habit_plan": habit_plan_dict(plan),
            "recent_actions": [entry_dict(e) for e in self.recent_actions(user_id)],
            "insights": {
                "weekly_summary": weekly["summary_text"],
                "monthly_summary": monthly["summary_text"],
                "prediction": trend_prediction(score),
            },
        }

    def dashboard(self, user_id: int) -> dict:
        entries = self.store.find_by_user(user_id)
        score = self.score(user_id)
        analysis = self.analyzer.analyze(user_id)
        plan = self.habits(user_id, analysis)
        tally = tally_points(entries)
        weekly = self.scores.compare_periods(user_id, PeriodType.WEEKLY, self.clock())
        monthly = self.scores.compare_periods(user_id, PeriodType.MONTHLY, self.clock())
        streak = self.streak(user_id)

        dates = [e.entry_date for e in entries]
        day = self.clock()
        strengths = [p for p in analysis.detected_patterns if p.is_strength][:TOP_PATTERNS_LIMIT]
        weaknesses = [p for p in analysis.detected_patterns if p.is_weakness][:TOP_PATTERNS_LIMIT]

        return {
            "user": {"id": str(user_id)},
            "overall": {
                "score": round_half_up(score.karma_score),
                "grade": grade_for_score(score.karma_score),
                "trend": {Trend.IMPROVING: "up", Trend.DECLINING: "down"}.get(score.trend, "flat"),
                "total_actions": score.total_actions,
                "time_range": {
                    "from": str(min(dates) if dates else day),
                    "to": str(max(dates) if dates else day),
                },
                "weekly_change": float(weekly.change),
                "monthly_change": float(monthly.change),
            },
            "breakdown": {
                "good": {"count": tally.good_count, "points": float(tally.good_points)},
                "bad": {"count": tally.bad_count, "points": float(tally.bad_points)},
                "neutral": {"count": tally.neutral_count, "points": 0.0},
            },
            "categories": [
                {
                    "category_slug": c.category_slug,
                    "category_name": c.category_name,
                    "good_points": float(c.good_points),
                    "bad_points": float(c.bad_points),
                    "score": c.score,
                    "status": c.status,
                }
                for c in category_breakdown(entries)
            ],
            "recent_actions": [entry_dict(e) for e in self.recent_actions(user_id)],
            "patterns": {
                "strengths": [self._formatted_pattern(p, True) for p in strengths],
                "weaknesses": [self._formatted_pattern(p, False) for p in weaknesses],
            },
            "improvement_plan": {
                "summary": improvement_summary(analysis),
                "recommendations": [
                    {
                        "title": h.habit_title,
                        "pattern_key": h.pattern_key,
                        "description": h.habit_description or h.motivational_message,
                        "priority": h.priority,
                    }
                    for h in plan.habits
                ],
                "motivational_quote": plan.motivational_quote,
            },
            "trends": {
                "weekly": comparison_dict(weekly),
                "monthly": comparison_dict(monthly),
            },
            "streak": {
                "current_days": streak.current_streak_days,
                "longest_days": streak.longest_streak_days,
                "level": streak.level,
                "level_name": streak.level_name,
                "next_level_threshold": streak.next_level_threshold,
                "progress_to_next_level": streak.progress_to_next_level,
            },
        }

    @staticmethod
    def _formatted_pattern(p: DetectedPattern, as_strength: bool) -> dict:
        return {
            "pattern_key": p.pattern_key,
            "label": pattern_label(p.pattern_name),
            "description": pattern_description(p, as_strength),
            "frequency": p.frequency,
            "impact": float(p.total_impact),
        }


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def build_classifier(
    store: LedgerStore,
    completion: Optional[TextCompletion] = None,
    cfg: Settings = default_settings,
    cache: RuleTableCache = rule_cache,
) -> ActionClassifier:
    return ActionClassifier(
        rules_provider=lambda: cache.get(lambda: build_rule_snapshot(store.active_rules())),
        habit_lookup=lambda key: [h.habit_title for h in store.habit_suggestions(key, HABITS_PER_PATTERN)],
        completion=completion,
        positive_keywords=cfg.positive_keywords_list,
        negative_keywords=cfg.negative_keywords_list,
    )


def build_karma_service(
    db: Session,
    completion: Optional[TextCompletion] = None,
    cfg: Settings = default_settings,
) -> KarmaService:
    store = SqlLedgerStore(db)
    return KarmaService(
        store=store,
        identity=SqlIdentityCheck(db),
        classifier=build_classifier(store, completion, cfg),
        completion=completion,
    )
