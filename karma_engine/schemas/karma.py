"""
Karma request / response schemas.

Add action:   POST /karma/actions     → AddActionRequest → KarmaEntryResponse
Dry run:      POST /karma/classify    → ClassifyRequest  → ClassificationResponse
Score:        GET  /karma/{id}/score  → KarmaScoreResponse
Streak:       GET  /karma/{id}/streak → KarmaStreakResponse

Composite reads (summary, dashboard, insights, habits, patterns, today)
return the service's plain-dict payloads.
"""
from __future__ import annotations

from datetime import date
from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, Field

KarmaTypeValue = Literal["good", "bad", "neutral"]


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class AddActionRequest(BaseModel):
    """A single free-text action to classify and append to the user's ledger."""

    user_id: Annotated[int, Field(ge=1, description="Customer id.", examples=[42])]
    action_text: Optional[str] = Field(
        default=None,
        max_length=10_000,
        description="What the user did. Blank text is rejected with EMPTY_ACTION_TEXT.",
        examples=["I helped my neighbor move furniture"],
    )
    entry_date: Optional[date] = Field(
        default=None,
        description="Calendar day of the action. Defaults to today (UTC).",
        examples=["2026-02-20"],
    )
    self_assessment: Optional[KarmaTypeValue] = Field(
        default=None,
        description="The user's own judgement; stored, never changes the score.",
    )


class ClassifyRequest(BaseModel):
    action_text: Optional[str] = Field(default=None, max_length=10_000)
    user_id: Optional[int] = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class KarmaEntryResponse(BaseModel):
    id: int
    user_id: int
    text: str
    karma_type: KarmaTypeValue
    score: float
    category_slug: Optional[str]
    category_name: Optional[str]
    pattern_key: Optional[str]
    emotion: str
    confidence: int
    self_assessment: Optional[KarmaTypeValue]
    entry_date: str
    classification: dict[str, Any]
    created_at: Optional[str]


class ClassificationResponse(BaseModel):
    type: KarmaTypeValue
    confidence: int
    emotion: str
    category: str
    weight: float
    pattern_key: str
    reasoning: str
    tier: str
    habit_recommendation: list[str]


class KarmaScoreResponse(BaseModel):
    karma_score: float
    total_good_points: float
    total_bad_points: float
    total_actions: int
    good_actions_count: int
    bad_actions_count: int
    neutral_actions_count: int
    trend: Literal["improving", "declining", "stable"]
    trend_percentage: int


class KarmaStreakResponse(BaseModel):
    current_streak_days: int
    longest_streak_days: int
    level: Literal["awaken", "builder", "pro", "master"]
    level_name: str
    next_level_threshold: int
    progress_to_next_level: int
