"""
Stability and Difficulty Updates

Implements the initial values for a first review and the post-rating
updates for every later review.

Key principles:
- Success grows stability; growth is larger for easy items and for
  well-spaced (low R) reviews
- Failure collapses stability toward S_min
- Difficulty drifts linearly away from the neutral rating
- Every output is clamped to its configured bounds
"""

from __future__ import annotations

import math

from recall.fsrs.constants import DIFFICULTY_SCALE, NEUTRAL_RATING, Rating, coerce_rating
from recall.fsrs.memory_state import retrievability
from recall.fsrs.parameters import DEFAULT_PARAMETERS, FSRSParameters


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


def _sanitize_stability(stability: float, params: FSRSParameters) -> float:
    if math.isnan(stability):
        return params.s_min
    return _clamp(stability, params.s_min, params.s_max)


def _sanitize_difficulty(difficulty: float, params: FSRSParameters) -> float:
    if math.isnan(difficulty):
        return initial_difficulty(NEUTRAL_RATING, params)
    return _clamp(difficulty, params.d_min, params.d_max)


def initial_stability(rating: Rating, params: FSRSParameters = DEFAULT_PARAMETERS) -> float:
    """
    Stability after the very first review.

    Formula:
        S0 = max(S_min, w0 + w1 * (rating - neutral))
    """
    rating = coerce_rating(rating)
    s0 = params.w(0) + params.w(1) * (rating - NEUTRAL_RATING)
    return _clamp(s0, params.s_min, params.s_max)


def initial_difficulty(rating: Rating, params: FSRSParameters = DEFAULT_PARAMETERS) -> float:
    """
    Difficulty after the very first review.

    Formula:
        D0 = clip(w4 - w5 * (rating - neutral), D_min, D_max)
    """
    rating = coerce_rating(rating)
    d0 = params.w(4) - params.w(5) * (rating - NEUTRAL_RATING)
    return _clamp(d0, params.d_min, params.d_max)


def _rating_multiplier(rating: Rating, params: FSRSParameters) -> float:
    if rating == Rating.HARD:
        return _clamp(params.w(17), 0.0, 1.0)
    if rating == Rating.EASY:
        return max(1.0, params.w(16))
    return 1.0


def update_stability(
    stability: float,
    difficulty: float,
    rating: Rating,
    elapsed_days: float = 0.0,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> float:
    """
    Update stability after a review.

    Formulas:
        Again:  S' = S * w11 * (1 - R) * (11 - D) / 10
        Else:   S' = S + e^w8 * (11 - D) * S^w9 * (e^(w10 * (1 - R)) - 1) * m

    Where:
        - R is the retrievability at review time; a same-day review
          (elapsed_days <= 0) uses the desired retention instead of 1.0
        - m = w17 for Hard (dampens), 1 for Good, w16 for Easy (amplifies)

    Args:
        stability: Current stability
        difficulty: Current difficulty
        rating: User rating (0-3)
        elapsed_days: Days since the last review
        params: Parameter set

    Returns:
        New stability, clamped to [S_min, S_max]
    """
    rating = coerce_rating(rating)
    stability = _sanitize_stability(stability, params)
    difficulty = _sanitize_difficulty(difficulty, params)
    if math.isnan(elapsed_days) or elapsed_days <= 0:
        r = params.desired_retention
    else:
        r = retrievability(elapsed_days, stability)

    if rating == Rating.AGAIN:
        new_stability = (
            stability * params.w(11) * (1.0 - r)
            * ((DIFFICULTY_SCALE - difficulty) / 10.0)
        )
    else:
        try:
            growth = (
                math.exp(params.w(8))
                * (DIFFICULTY_SCALE - difficulty)
                * math.pow(stability, params.w(9))
                * (math.exp(params.w(10) * (1.0 - r)) - 1.0)
            )
        except OverflowError:
            # Absurd weights; the clamp below caps the result at S_max
            growth = math.inf
        new_stability = stability + growth * _rating_multiplier(rating, params)

    if math.isnan(new_stability):
        return params.s_min
    return _clamp(new_stability, params.s_min, params.s_max)


def update_difficulty(
    difficulty: float,
    rating: Rating,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> float:
    """
    Update difficulty after a review.

    Formula:
        D' = clip(D + w6 * (neutral - rating), D_min, D_max)

    Again and Hard raise difficulty, Easy lowers it, Good leaves it alone.
    """
    rating = coerce_rating(rating)
    difficulty = _sanitize_difficulty(difficulty, params)
    new_difficulty = difficulty + params.w(6) * (NEUTRAL_RATING - rating)
    return _clamp(new_difficulty, params.d_min, params.d_max)
