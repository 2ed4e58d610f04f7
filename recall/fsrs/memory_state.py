"""
Memory State - Card Progress and Retrievability

Defines the per-card memory state and the forgetting curve.

Key concepts:
- Stability (S): days until retrievability decays to the desired retention
- Difficulty (D): how slowly stability grows on success (D_min..D_max)
- Retrievability (R): probability of successful recall after t days
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from recall.fsrs.constants import DECAY, FACTOR, NEUTRAL_RATING, CardState
from recall.fsrs.parameters import DEFAULT_PARAMETERS, FSRSParameters


@dataclass
class CardProgress:
    """
    Memory state for one user-card pair.

    Created on first exposure, mutated only by a rating, never deleted.
    """
    card_id: str
    stability: float
    difficulty: float
    state: CardState
    due_at: Optional[datetime]
    last_reviewed_at: Optional[datetime] = None

    # Review tracking
    reps: int = 0
    lapses: int = 0
    total_reviews: int = 0
    correct_reviews: int = 0
    average_response_time_ms: Optional[int] = None

    @property
    def is_new(self) -> bool:
        return self.state == CardState.NEW and self.reps == 0

    def copy(self) -> "CardProgress":
        return replace(self)


def retrievability(elapsed_days: float, stability: float) -> float:
    """
    Probability of recall after elapsed_days.

    Formula: R = (1 + F * t / S) ^ C,  F = 19/81, C = -0.5

    Interpretation:
    - Immediately after review: R = 1.0
    - After exactly S days: R = 0.9
    - Non-positive stability means nothing is retained: R = 0.0

    Args:
        elapsed_days: Days since the last review
        stability: Current stability in days

    Returns:
        Retrievability between 0 and 1
    """
    if math.isnan(stability) or stability <= 0:
        return 0.0
    if math.isnan(elapsed_days) or elapsed_days <= 0:
        return 1.0
    return (1.0 + FACTOR * (elapsed_days / stability)) ** DECAY


def elapsed_days_between(last_reviewed_at: Optional[datetime], now: datetime) -> float:
    """
    Fractional days from the last review to now (0 for never-reviewed cards).
    """
    if last_reviewed_at is None:
        return 0.0
    delta = now - last_reviewed_at
    return max(0.0, delta.total_seconds() / 86400.0)


def initialize_new_card(
    card_id: str,
    now: datetime,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> CardProgress:
    """
    Initialize state for a card the user has never seen.

    Stability and difficulty start at the neutral-rating initial values;
    the card is due immediately.
    """
    from recall.fsrs.updates import initial_difficulty, initial_stability

    return CardProgress(
        card_id=card_id,
        stability=initial_stability(NEUTRAL_RATING, params),
        difficulty=initial_difficulty(NEUTRAL_RATING, params),
        state=CardState.NEW,
        due_at=now,
        last_reviewed_at=None,
    )
