"""
Prompt templates for the text-completion calls.

Templates use `str.format` placeholders. Deployments can swap in their own
`PromptTemplates` instance; the engine only relies on the placeholder names.

Classification placeholders: action_text, user_id, current_date
Insight placeholders: period_label, period_start, period_end, total_actions,
  good_actions, bad_actions, neutral_actions, karma_score, dominant_patterns,
  strengths, weaknesses
Prediction placeholders: period_label, karma_score, good_actions,
  bad_actions, neutral_actions, weaknesses
"""
from __future__ import annotations

from dataclasses import dataclass

CLASSIFICATION_SYSTEM = (
    "You classify a single personal action for a karma journal. "
    "Respond with one JSON object and nothing else, with exactly these keys: "
    '"type" ("good", "bad" or "neutral"), '
    '"confidence" (number between 0 and 1), '
    '"emotion" (one lowercase word, e.g. kindness, anger, laziness), '
    '"category" (short lowercase slug, e.g. social, behavioral, spiritual), '
    '"weight" (number between -50 and 50; positive for good, negative for bad, 0 for neutral), '
    '"pattern_key" (short lowercase slug naming the recurring behavior), '
    '"reasoning" (one sentence).'
)

CLASSIFICATION_USER = (
    "Date: {current_date}\n"
    "User: {user_id}\n"
    "Action: {action_text}"
)

INSIGHT_USER = (
    "Write a short, warm {period_label} reflection (3 sentences at most) for a "
    "karma journal user, then one sentence predicting where they are heading.\n"
    "Period: {period_start} to {period_end}\n"
    "Actions: {total_actions} (good {good_actions}, bad {bad_actions}, neutral {neutral_actions})\n"
    "Karma score: {karma_score} / 100\n"
    "Most frequent patterns: {dominant_patterns}\n"
    "Strengths: {strengths}\n"
    "Weaknesses: {weaknesses}"
)

PREDICTION_USER = (
    "In one or two encouraging sentences, predict how this karma journal user's "
    "score is likely to move next {period_label} and what would help most.\n"
    "Karma score: {karma_score} / 100 (good {good_actions}, bad {bad_actions}, "
    "neutral {neutral_actions})\n"
    "Weaknesses: {weaknesses}"
)


@dataclass(frozen=True)
class PromptTemplates:
    classification_system: str = CLASSIFICATION_SYSTEM
    classification_user: str = CLASSIFICATION_USER
    insight_user: str = INSIGHT_USER
    prediction_user: str = PREDICTION_USER

    def classification(self, action_text: str, user_id: str, current_date: str) -> tuple[str, str]:
        context = {
            "action_text": action_text,
            "user_id": user_id,
            "current_date": current_date,
        }
        return (
            self.classification_system.format(**context),
            self.classification_user.format(**context),
        )

    def insight(self, **context) -> str:
        return self.insight_user.format(**context)

    def prediction(self, **context) -> str:
        return self.prediction_user.format(**context)


DEFAULT_PROMPTS = PromptTemplates()
