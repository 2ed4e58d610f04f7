"""
FSRS - Free Spaced Repetition Scheduler

Pure memory model for the study scheduler.

This package implements:
- Power-law forgetting curve: R = (1 + F * t / S) ^ C
- Initial stability / difficulty for a card's first review
- Post-rating stability and difficulty updates
- Interval derivation from the desired retention
- The card state-transition table

Quick start:
    from recall import fsrs

    # Pure computation, no I/O
    updated, draft = fsrs.apply_rating(progress, fsrs.Rating.GOOD, now)

    # Individual pieces
    r = fsrs.retrievability(elapsed_days=3, stability=5.0)
    days = fsrs.interval(stability=5.0)
"""

# Constants and parameters
from recall.fsrs.constants import (
    CardState,
    Rating,
    NEUTRAL_RATING,
    FACTOR,
    DECAY,
    DEFAULT_WEIGHTS,
    DEFAULT_DESIRED_RETENTION,
    coerce_rating,
)
from recall.fsrs.parameters import FSRSParameters, DEFAULT_PARAMETERS

# Memory state
from recall.fsrs.memory_state import (
    CardProgress,
    retrievability,
    elapsed_days_between,
    initialize_new_card,
)

# Updates
from recall.fsrs.updates import (
    initial_stability,
    initial_difficulty,
    update_stability,
    update_difficulty,
)

# Scheduling
from recall.fsrs.scheduler import (
    ReviewDraft,
    ReviewSchedule,
    interval,
    next_review,
    next_state,
    apply_rating,
)


__all__ = [
    # Enums
    "CardState",
    "Rating",

    # Parameters
    "NEUTRAL_RATING",
    "FACTOR",
    "DECAY",
    "DEFAULT_WEIGHTS",
    "DEFAULT_DESIRED_RETENTION",
    "FSRSParameters",
    "DEFAULT_PARAMETERS",
    "coerce_rating",

    # Memory state
    "CardProgress",
    "retrievability",
    "elapsed_days_between",
    "initialize_new_card",

    # Updates
    "initial_stability",
    "initial_difficulty",
    "update_stability",
    "update_difficulty",

    # Scheduling
    "ReviewDraft",
    "ReviewSchedule",
    "interval",
    "next_review",
    "next_state",
    "apply_rating",
]
