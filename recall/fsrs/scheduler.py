"""
Scheduler - FSRS Algorithm Logic

Pure scheduling and state updates (no persistence calls).

Main workflow:
1. Caller supplies the card's pre-rating progress
2. Compute elapsed days since the last review
3. Update stability / difficulty (initial formulas on a first review)
4. Derive the next interval and due date
5. Apply the state-transition table
6. Return updated progress + review data

Persistence is the caller's responsibility.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from recall.fsrs.constants import DECAY, FACTOR, CardState, Rating, coerce_rating
from recall.fsrs.memory_state import CardProgress, elapsed_days_between
from recall.fsrs.parameters import DEFAULT_PARAMETERS, FSRSParameters
from recall.fsrs.updates import (
    initial_difficulty,
    initial_stability,
    update_difficulty,
    update_stability,
)


@dataclass(frozen=True)
class ReviewSchedule:
    """Outcome of next_review()."""
    next_due_at: datetime
    interval_days: int
    stability: float
    difficulty: float


@dataclass(frozen=True)
class ReviewDraft:
    """
    Everything a Review records except its session identity.
    """
    card_id: str
    rating: Rating
    response_time_ms: int
    state_before: CardState
    state_after: CardState
    stability_before: float
    stability_after: float
    difficulty_before: float
    difficulty_after: float
    elapsed_days: float
    scheduled_days: int
    reviewed_at: datetime
    due_at: datetime


def interval(
    stability: float,
    desired_retention: Optional[float] = None,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> int:
    """
    Days until retrievability falls to the desired retention.

    Inverse of the forgetting curve:
        I = (S / F) * (R_d ^ (1 / C) - 1)

    Rounded half-up to whole days and clamped to
    [minimum_interval_days, maximum_interval_days]. Non-decreasing in S.
    """
    minimum = params.minimum_interval_days
    maximum = params.maximum_interval_days
    if math.isnan(stability) or stability <= 0:
        return minimum

    retention = desired_retention
    if retention is None or math.isnan(retention) or not 0.0 < retention < 1.0:
        retention = params.desired_retention

    days = (stability / FACTOR) * (math.pow(retention, 1.0 / DECAY) - 1.0)
    if math.isinf(days):
        return maximum
    return int(max(minimum, min(maximum, math.floor(days + 0.5))))


def next_review(
    stability: float,
    difficulty: float,
    rating: Rating,
    elapsed_days: float = 0.0,
    now: Optional[datetime] = None,
    is_new: bool = False,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> ReviewSchedule:
    """
    Compose the updates into a full schedule for one rating.

    A first review (is_new) takes its stability and difficulty from the
    initial formulas; later reviews use the update formulas.
    """
    rating = coerce_rating(rating)
    if now is None:
        now = datetime.now(timezone.utc)

    if is_new:
        new_stability = initial_stability(rating, params)
        new_difficulty = initial_difficulty(rating, params)
    else:
        new_stability = update_stability(stability, difficulty, rating, elapsed_days, params)
        new_difficulty = update_difficulty(difficulty, rating, params)

    days = interval(new_stability, params.desired_retention, params)
    return ReviewSchedule(
        next_due_at=now + timedelta(days=days),
        interval_days=days,
        stability=new_stability,
        difficulty=new_difficulty,
    )


def next_state(state: CardState, rating: Rating) -> CardState:
    """
    State-transition table, applied after the numeric update.

        current      | >= Good | Hard       | Again
        new          | review  | learning   | learning
        learning     | review  | learning   | learning
        review       | review  | review     | learning
        relearning   | review  | relearning | relearning

    Buried and suspended cards keep their state; only an explicit
    unbury / unsuspend moves them.
    """
    rating = coerce_rating(rating)
    state = CardState(state)

    if state in (CardState.BURIED, CardState.SUSPENDED):
        return state
    if rating >= Rating.GOOD:
        return CardState.REVIEW
    if state == CardState.REVIEW:
        return CardState.LEARNING if rating == Rating.AGAIN else CardState.REVIEW
    if state == CardState.RELEARNING:
        return CardState.RELEARNING
    return CardState.LEARNING


def _is_lapse(state: CardState, rating: Rating) -> bool:
    return rating == Rating.AGAIN and state in (CardState.REVIEW, CardState.RELEARNING)


def apply_rating(
    progress: CardProgress,
    rating: Rating,
    now: datetime,
    response_time_ms: int = 0,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> Tuple[CardProgress, ReviewDraft]:
    """
    Apply one rating to a card and return updated progress + review data.

    The input progress is not modified.

    Args:
        progress: Pre-rating card progress
        rating: User rating (0-3)
        now: Review timestamp
        response_time_ms: Time taken to answer
        params: Parameter set

    Returns:
        Tuple of (updated_progress, review_draft)
    """
    rating = coerce_rating(rating)
    elapsed = elapsed_days_between(progress.last_reviewed_at, now)

    schedule = next_review(
        progress.stability,
        progress.difficulty,
        rating,
        elapsed_days=elapsed,
        now=now,
        is_new=progress.is_new,
        params=params,
    )
    new_state = next_state(progress.state, rating)

    updated = progress.copy()
    updated.stability = schedule.stability
    updated.difficulty = schedule.difficulty
    updated.state = new_state
    updated.due_at = schedule.next_due_at
    updated.last_reviewed_at = now
    updated.reps = progress.reps + 1
    updated.total_reviews = progress.total_reviews + 1
    if rating >= Rating.GOOD:
        updated.correct_reviews = progress.correct_reviews + 1
    if _is_lapse(progress.state, rating):
        updated.lapses = progress.lapses + 1
    if progress.average_response_time_ms is None or progress.total_reviews == 0:
        updated.average_response_time_ms = response_time_ms
    else:
        total = progress.average_response_time_ms * progress.total_reviews + response_time_ms
        updated.average_response_time_ms = round(total / updated.total_reviews)

    draft = ReviewDraft(
        card_id=progress.card_id,
        rating=rating,
        response_time_ms=response_time_ms,
        state_before=progress.state,
        state_after=new_state,
        stability_before=progress.stability,
        stability_after=schedule.stability,
        difficulty_before=progress.difficulty,
        difficulty_after=schedule.difficulty,
        elapsed_days=elapsed,
        scheduled_days=schedule.interval_days,
        reviewed_at=now,
        due_at=schedule.next_due_at,
    )
    return updated, draft
