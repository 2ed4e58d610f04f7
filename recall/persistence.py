"""Persistence boundaries for study sessions and card progress."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Mapping, Optional, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from recall.fsrs.memory_state import CardProgress
    from recall.session_types import Review, SessionFilter


@runtime_checkable
class SessionStore(Protocol):
    """
    Server-authoritative storage. The store owns session creation, the
    daily counters and the review log; replies are plain mappings validated
    by recall.schemas.
    """

    async def get_or_create_session(
        self,
        user_id: str,
        session_filter: Optional[SessionFilter] = None,
    ) -> Mapping[str, Any]:
        """Return today's open session for the user, creating one if needed."""

    async def get_session(self, session_id: str) -> Mapping[str, Any]:
        """Re-fetch a session by id."""

    async def get_session_reviews(
        self,
        session_id: str,
        since: Optional[datetime] = None,
    ) -> Sequence[Mapping[str, Any]]:
        """Review-log rows for a session, oldest first."""

    async def record_review(
        self,
        session_id: str,
        card_id: str,
        rating: int,
        response_time_ms: int,
        *,
        review: Review,
        progress: CardProgress,
    ) -> Mapping[str, Any]:
        """
        Persist one review and the card's new progress atomically.

        Idempotent per (session_id, card_id): a second call replies with
        error "review_already_exists".
        """

    async def finalize_session_order(
        self,
        session_id: str,
        ordered_card_ids: Sequence[str],
    ) -> Mapping[str, Any]:
        """Store the shuffled card order and move the session to active."""

    async def get_user_parameters(self, user_id: str) -> Optional[Mapping[str, Any]]:
        """
        The user's stored FSRS parameter row, or None when there is none.

        Optional: the lifecycle falls back to default parameters for a store
        that does not provide it.
        """


@runtime_checkable
class CardStore(Protocol):
    """
    Client-local storage. The lifecycle builds sessions itself from due and
    new cards and enforces quotas from the stored usage counters.
    """

    async def get_due_cards(
        self,
        user_id: str,
        session_filter: Optional[SessionFilter] = None,
    ) -> Sequence[Mapping[str, Any]]:
        """Cards with progress whose due_at has passed."""

    async def get_new_cards(
        self,
        user_id: str,
        limit: int,
        session_filter: Optional[SessionFilter] = None,
    ) -> Sequence[Mapping[str, Any]]:
        """Up to `limit` cards the user has never studied."""

    async def get_daily_usage(self, user_id: str) -> Mapping[str, Any]:
        """Tier plus stored reviews_today / new_cards_today / last_review_date."""

    async def get_session_reviews(
        self,
        session_id: str,
        since: Optional[datetime] = None,
    ) -> Sequence[Mapping[str, Any]]:
        """Review-log rows for a session, oldest first."""

    async def record_review(
        self,
        session_id: str,
        card_id: str,
        rating: int,
        response_time_ms: int,
        *,
        review: Review,
        progress: CardProgress,
    ) -> Mapping[str, Any]:
        """Persist one review and the card's new progress; idempotent per (session, card)."""

    async def get_user_parameters(self, user_id: str) -> Optional[Mapping[str, Any]]:
        """The user's stored FSRS parameter row, or None. Optional, as for SessionStore."""
