"""
FSRS Constants and Parameters

All fixed constants and default weights for the memory model in one place.
The canonical rating scale is 0-3 (Again, Hard, Good, Easy) with the
19-weight parameter set.
"""

from __future__ import annotations

from enum import Enum, IntEnum

from recall.errors import ValidationError


# ---- Ratings ----

class Rating(IntEnum):
    """User feedback on a retrieval attempt."""
    AGAIN = 0   # Retrieval failed
    HARD = 1    # Retrieved with high effort
    GOOD = 2    # Retrieved normally
    EASY = 3    # Retrieved fluently


NEUTRAL_RATING = Rating.GOOD  # Rating that leaves difficulty unchanged


class CardState(str, Enum):
    """Lifecycle state of a single user-card pair."""
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"
    BURIED = "buried"
    SUSPENDED = "suspended"


# ---- Forgetting Curve ----
# R(t) = (1 + F * t / S) ^ C

FACTOR = 19 / 81
DECAY = -0.5

DIFFICULTY_SCALE = 11.0     # D_max + 1, so (11 - D) stays positive
STABILITY_FLOOR = 0.1       # Used when w12 (S_min) is not positive


# ---- Default Parameters ----

DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.4197,   # w0  initial stability at the neutral rating
    1.1829,   # w1  initial stability step per rating
    3.1262,   # w2  (unused by this scheduler)
    15.4722,  # w3  (unused by this scheduler)
    7.2102,   # w4  initial difficulty at the neutral rating
    0.5316,   # w5  initial difficulty step per rating
    1.0651,   # w6  difficulty step per review
    0.0234,   # w7  (unused by this scheduler)
    1.616,    # w8  success growth scale (exp)
    0.0721,   # w9  success growth stability exponent
    0.1284,   # w10 success growth retrievability factor
    1.0824,   # w11 failure decay scale
    0.1,      # w12 S_min
    100.0,    # w13 S_max
    1.0,      # w14 D_min
    10.0,     # w15 D_max
    2.9013,   # w16 easy bonus
    0.5,      # w17 hard penalty
    0.0,      # w18 (unused by this scheduler)
)
WEIGHT_COUNT = len(DEFAULT_WEIGHTS)

DEFAULT_DESIRED_RETENTION = 0.9
MINIMUM_INTERVAL_DAYS = 1
MAXIMUM_INTERVAL_DAYS = 36500   # ~100 years


def coerce_rating(value: object) -> Rating:
    """
    Convert an incoming rating to Rating, rejecting anything outside 0-3.

    Bools and floats are rejected even when they compare equal to a valid
    rating, so a caller cannot smuggle `True` or `2.0` through.
    """
    if isinstance(value, Rating):
        return value
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Rating must be an integer 0-3, got {value!r}")
    try:
        return Rating(value)
    except ValueError:
        raise ValidationError(f"Rating must be between 0 and 3, got {value}") from None
