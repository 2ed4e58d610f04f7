"""
recall - spaced-repetition study scheduler.

Quick start:
    from recall import SessionLifecycle, Rating

    lifecycle = SessionLifecycle(store)
    session = await lifecycle.initialize_session(user_id)
    await lifecycle.shuffle_and_finalize()
    card = lifecycle.get_current_card()
    result = await lifecycle.record_rating(Rating.GOOD, 4200, card_id=card.card_id)
"""

from recall.config import Settings
from recall.errors import (
    LimitReachedError,
    NoCardsAvailable,
    PayloadValidationError,
    RecallError,
    SessionError,
    TransientError,
    ValidationError,
)
from recall.fsrs import CardProgress, CardState, FSRSParameters, Rating
from recall.persistence import CardStore, SessionStore
from recall.quota import LimitReached, QuotaAllowance, QuotaPolicy, Tier
from recall.session import LocalSessionLifecycle, SessionLifecycle
from recall.session_types import (
    Progress,
    RatingResult,
    Review,
    Session,
    SessionCard,
    SessionFilter,
    SessionStatus,
)


__all__ = [
    # Configuration
    "Settings",

    # Errors
    "RecallError",
    "ValidationError",
    "PayloadValidationError",
    "LimitReachedError",
    "SessionError",
    "NoCardsAvailable",
    "TransientError",

    # Memory model
    "CardProgress",
    "CardState",
    "FSRSParameters",
    "Rating",

    # Persistence
    "CardStore",
    "SessionStore",

    # Quotas
    "LimitReached",
    "QuotaAllowance",
    "QuotaPolicy",
    "Tier",

    # Sessions
    "SessionLifecycle",
    "LocalSessionLifecycle",
    "Progress",
    "RatingResult",
    "Review",
    "Session",
    "SessionCard",
    "SessionFilter",
    "SessionStatus",
]
