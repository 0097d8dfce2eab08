"""
Karma router.

POST   /karma/actions                         — classify and record an action
DELETE /karma/{user_id}/actions/{entry_id}    — soft-delete an entry
POST   /karma/classify                        — dry-run classification
GET    /karma/{user_id}/score                 — all-time score and trend
GET    /karma/{user_id}/patterns              — pattern analysis
GET    /karma/{user_id}/patterns/history      — stored pattern cache
GET    /karma/{user_id}/habits                — 30-day habit plan
GET    /karma/{user_id}/streak                — streak and level
GET    /karma/{user_id}/insights/weekly       — current-week insights
GET    /karma/{user_id}/insights/monthly      — current-month insights
GET    /karma/{user_id}/summary               — score, patterns, plan, insights
GET    /karma/{user_id}/dashboard             — everything the dashboard renders
GET    /karma/{user_id}/today                 — today's entries
GET    /karma/{user_id}/actions               — most recent entries
"""
from __future__ import annotations

from dataclasses import asdict
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.orm import Session

from karma_engine.db.base import get_db
from karma_engine.schemas.karma import (
    AddActionRequest,
    ClassificationResponse,
    ClassifyRequest,
    KarmaEntryResponse,
    KarmaScoreResponse,
    KarmaStreakResponse,
)
from karma_engine.services.karma_service import (
    KarmaService,
    analysis_dict,
    build_karma_service,
    entry_dict,
    habit_plan_dict,
    score_dict,
    stored_pattern_dict,
)
from karma_engine.services.text_completion import TextCompletion, completion_from_settings

router = APIRouter(prefix="/karma", tags=["karma"])


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_text_completion() -> Optional[TextCompletion]:
    return completion_from_settings()


def get_karma_service(
    db: Session = Depends(get_db),
    completion: Optional[TextCompletion] = Depends(get_text_completion),
) -> KarmaService:
    return build_karma_service(db, completion)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

@router.post(
    "/actions",
    response_model=KarmaEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Classify and record a karma action",
    responses={
        201: {"description": "Entry created with its classification."},
        404: {"description": "User not found (`USER_NOT_FOUND`)."},
        422: {"description": "Blank action text (`EMPTY_ACTION_TEXT`) or invalid body."},
    },
)
def add_action(payload: AddActionRequest, service: KarmaService = Depends(get_karma_service)):
    """
    Classify the text through the rule → LLM → heuristic tiers and append the
    resulting entry to the user's ledger. The stored score always carries the
    sign of the karma type.
    """
    entry = service.add_action(
        user_id=payload.user_id,
        action_text=payload.action_text,
        entry_date=payload.entry_date,
        self_assessment=payload.self_assessment,
    )
    return KarmaEntryResponse(**entry_dict(entry))


@router.delete(
    "/{user_id}/actions/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Soft-delete a karma entry",
    responses={404: {"description": "Entry not found (`ENTRY_NOT_FOUND`)."}},
)
def delete_action(
    user_id: int = Path(..., ge=1),
    entry_id: int = Path(..., ge=1),
    service: KarmaService = Depends(get_karma_service),
):
    service.delete_action(user_id, entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/classify",
    response_model=ClassificationResponse,
    summary="Classify text without recording it",
)
def classify(payload: ClassifyRequest, service: KarmaService = Depends(get_karma_service)):
    """Blank text returns a neutral, zero-weight result with confidence 0."""
    result = service.classify(payload.action_text, user_id=payload.user_id)
    data = asdict(result)
    data["weight"] = float(result.weight)
    return ClassificationResponse(**data)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

@router.get("/{user_id}/score", response_model=KarmaScoreResponse, summary="All-time karma score")
def get_score(user_id: int = Path(..., ge=1), service: KarmaService = Depends(get_karma_service)):
    """0–100, centred on 50. Trend compares against last week's cached summary."""
    return KarmaScoreResponse(**score_dict(service.score(user_id)))


@router.get("/{user_id}/patterns", summary="Detected behavioral patterns")
def get_patterns(user_id: int = Path(..., ge=1), service: KarmaService = Depends(get_karma_service)):
    return analysis_dict(service.patterns(user_id))


@router.get("/{user_id}/patterns/history", summary="Stored pattern cache, most frequent first")
def get_pattern_history(user_id: int = Path(..., ge=1), service: KarmaService = Depends(get_karma_service)):
    """Rows written by earlier analyses; empty until `/patterns` has run once."""
    return [stored_pattern_dict(p) for p in service.pattern_history(user_id)]


@router.get("/{user_id}/habits", summary="30-day habit improvement plan")
def get_habits(user_id: int = Path(..., ge=1), service: KarmaService = Depends(get_karma_service)):
    return habit_plan_dict(service.habits(user_id))


@router.get("/{user_id}/streak", response_model=KarmaStreakResponse, summary="Streak and level")
def get_streak(user_id: int = Path(..., ge=1), service: KarmaService = Depends(get_karma_service)):
    s = service.streak(user_id)
    return KarmaStreakResponse(**asdict(s))


@router.get("/{user_id}/insights/weekly", summary="Insights for the current Sunday-anchored week")
def get_weekly_insights(user_id: int = Path(..., ge=1), service: KarmaService = Depends(get_karma_service)):
    return service.weekly_insights(user_id)


@router.get("/{user_id}/insights/monthly", summary="Insights for the current calendar month")
def get_monthly_insights(user_id: int = Path(..., ge=1), service: KarmaService = Depends(get_karma_service)):
    return service.monthly_insights(user_id)


@router.get("/{user_id}/summary", summary="Score, patterns, habit plan, recent actions and insights")
def get_summary(user_id: int = Path(..., ge=1), service: KarmaService = Depends(get_karma_service)):
    return service.summary(user_id)


@router.get("/{user_id}/dashboard", summary="Dashboard payload")
def get_dashboard(user_id: int = Path(..., ge=1), service: KarmaService = Depends(get_karma_service)):
    return service.dashboard(user_id)


@router.get("/{user_id}/today", summary="Today's entries")
def get_today(user_id: int = Path(..., ge=1), service: KarmaService = Depends(get_karma_service)):
    return service.today(user_id)


@router.get("/{user_id}/actions", summary="Most recent entries, newest first")
def get_recent_actions(
    user_id: int = Path(..., ge=1),
    limit: int = Query(default=10, ge=1, le=100, description="Page size."),
    service: KarmaService = Depends(get_karma_service),
):
    return [entry_dict(e) for e in service.recent_actions(user_id, limit)]
