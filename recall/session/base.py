"""
Shared session state machine.

Both lifecycles (server-authoritative and client-local) keep one Session in
memory and move it created -> active -> complete. This module holds the
parts that do not depend on how a session is created:

- cursor handling (get_current_card skips already-rated cards)
- rating validation and the idempotent record_rating flow
- review-log rehydration on resume
- wrapping store failures into TransientError
- per-user FSRS parameters, cached per lifecycle
"""

from __future__ import annotations

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar, Union

from recall.config import Settings
from recall.errors import LimitReachedError, SessionError, TransientError, ValidationError
from recall.fsrs.constants import Rating, coerce_rating
from recall.fsrs.memory_state import CardProgress
from recall.fsrs.parameters import FSRSParameters
from recall.fsrs.scheduler import apply_rating
from recall.persistence import CardStore, SessionStore
from recall.quota import LimitReached, QuotaPolicy
from recall.schemas import (
    LimitReachedPayload,
    RecordReviewPayload,
    ReviewPayload,
    parse_payload,
    parse_payload_list,
)
from recall.session_builders.shuffle import shuffle
from recall.session_types import (
    Progress,
    RatingResult,
    Review,
    Session,
    SessionCard,
    SessionFilter,
    SessionStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]

# Store errors that are safe to retry with the identical request
TRANSIENT_ERRORS = (ConnectionError, TimeoutError, asyncio.TimeoutError, OSError)

# record_review error codes that end the session
SESSION_ERROR_CODES = ("unauthorized", "session_not_found", "card_not_in_session")
LIMIT_ERROR_CODES = ("daily_limit_reached", "limit_reached")
ALREADY_RECORDED = "review_already_exists"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def validate_user_id(user_id: Any) -> str:
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError(f"user_id must be a non-empty string, got {user_id!r}")
    return user_id


def validate_response_time(value: Any, maximum: int) -> int:
    """
    Response time in whole milliseconds, 0..maximum.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"response_time_ms must be a number, got {value!r}")
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise ValidationError(f"response_time_ms must be a whole number, got {value!r}")
        value = int(value)
    if value < 0 or value > maximum:
        raise ValidationError(f"response_time_ms must be between 0 and {maximum}, got {value}")
    return value


class BaseSessionLifecycle(ABC):
    """
    Session state machine without a creation strategy.

    Subclasses must implement:
    - initialize_session()
    - resume_session()
    - _finalize_order()

    Passing `parameters` pins one FSRS parameter set for every user;
    otherwise each user's stored parameters are loaded on initialize /
    resume through the store's optional get_user_parameters().
    """

    def __init__(
        self,
        store: Union[SessionStore, CardStore],
        *,
        quota: Optional[QuotaPolicy] = None,
        parameters: Optional[FSRSParameters] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.settings = settings or Settings.from_env()
        self.quota = quota or QuotaPolicy(self.settings)
        self._pinned_parameters = parameters is not None
        self.parameters = parameters or self.default_parameters()
        self.clock = clock or utc_now
        self._session: Optional[Session] = None
        # card_id -> (updated progress, review) awaiting store confirmation
        self._pending: dict[str, tuple[CardProgress, Review]] = {}
        # user_id -> parameters loaded from the store
        self._user_parameters: dict[str, FSRSParameters] = {}

    # ---- Creation strategy ----

    @abstractmethod
    async def initialize_session(
        self,
        user_id: str,
        session_filter: Optional[SessionFilter] = None,
    ) -> Union[Session, LimitReached]:
        """Get or build today's session; LimitReached when the daily cap is hit."""

    @abstractmethod
    async def resume_session(self, session_id: str) -> Session:
        """Reload a session by id and rebuild its ratings from the review log."""

    @abstractmethod
    async def _finalize_order(self, session: Session, ordered_ids: list[str]) -> None:
        """Persist the final card order (no-op where order lives in memory)."""

    # ---- FSRS parameters ----

    def default_parameters(self) -> FSRSParameters:
        return FSRSParameters(desired_retention=self.settings.desired_retention)

    async def _use_user_parameters(self, user_id: str) -> FSRSParameters:
        """
        Switch self.parameters to the user's stored parameter set.

        Loaded once per user and cached. A missing row gives the defaults;
        an unreachable store or a malformed row gives the defaults for this
        call only, so the next session retries the load.
        """
        if self._pinned_parameters:
            return self.parameters
        cached = self._user_parameters.get(user_id)
        if cached is not None:
            self.parameters = cached
            return cached

        loader = getattr(self.store, "get_user_parameters", None)
        if loader is None:
            params = self.default_parameters()
        else:
            try:
                row = await self._call("get_user_parameters", loader(user_id))
            except TransientError:
                logger.warning("Using default FSRS parameters for user %s", user_id)
                self.parameters = self.default_parameters()
                return self.parameters
            if row is not None and not isinstance(row, Mapping):
                logger.warning(
                    "Malformed FSRS parameters for user %s (%s), using defaults",
                    user_id, type(row).__name__
                )
                self.parameters = self.default_parameters()
                return self.parameters
            if not row:
                logger.info("No stored FSRS parameters for user %s, using defaults", user_id)
                params = self.default_parameters()
            else:
                params = FSRSParameters.from_mapping(
                    {"desired_retention": self.settings.desired_retention, **row}
                )

        self._user_parameters[user_id] = params
        self.parameters = params
        return params

    # ---- Session access ----

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def _require_session(self) -> Session:
        if self._session is None:
            raise SessionError("no_session", "No session has been initialized")
        return self._session

    def clear_session(self) -> None:
        """Forget the in-memory session (e.g. on logout or after a SessionError)."""
        if self._session is not None:
            logger.debug("Clearing session %s", self._session.session_id)
        self._session = None
        self._pending.clear()

    def _install(self, session: Session) -> Session:
        self._session = session
        self._pending.clear()
        if session.submitted_count >= session.total_cards_in_session:
            session.advance_status(SessionStatus.COMPLETE)
        return session

    # ---- Store calls ----

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a store call, turning network failures into TransientError."""
        try:
            return await awaitable
        except TRANSIENT_ERRORS as exc:
            logger.warning("Store call %s failed: %s", operation, exc)
            raise TransientError(f"{operation} failed: {exc}") from exc

    # ---- Cursor ----

    def get_current_card(self) -> Optional[SessionCard]:
        """
        Card at the cursor, skipping cards already rated in this session.

        Returns None when every card has been rated.
        """
        session = self._session
        if session is None:
            return None
        index = session.current_index
        while index < len(session.cards) and session.cards[index].card_id in session.ratings:
            index += 1
        session.current_index = max(session.current_index, index)
        if index >= len(session.cards):
            return None
        return session.cards[index]

    def is_session_complete(self) -> bool:
        session = self._session
        if session is None:
            return False
        return session.submitted_count >= session.total_cards_in_session

    def get_progress(self) -> Progress:
        session = self._session
        if session is None:
            return Progress(completed=0, total=0, percentage=0)
        return session.progress()

    # ---- Ordering ----

    async def shuffle_and_finalize(self, enable_shuffle: bool = True) -> bool:
        """
        Fix the card order and move the session from created to active.

        Calling it again on an active or complete session is a no-op.
        """
        session = self._require_session()
        if session.status != SessionStatus.CREATED:
            logger.debug("Session %s already finalized (%s)", session.session_id, session.status.value)
            return True

        # Already-rated cards keep the front positions, behind the cursor
        rated_ids = [card_id for card_id in session.card_ids if card_id in session.ratings]
        unrated_ids = [card_id for card_id in session.card_ids if card_id not in session.ratings]
        if enable_shuffle:
            unrated_ids = shuffle(unrated_ids, session.seed)
        ordered_ids = rated_ids + unrated_ids
        await self._finalize_order(session, ordered_ids)

        by_id = {card.card_id: card for card in session.cards}
        session.cards = [by_id[card_id] for card_id in ordered_ids]
        session.advance_status(SessionStatus.ACTIVE)
        if session.submitted_count >= session.total_cards_in_session:
            session.advance_status(SessionStatus.COMPLETE)
        logger.info(
            "Session %s finalized with %d cards (shuffled=%s)",
            session.session_id, len(ordered_ids), enable_shuffle
        )
        return True

    # ---- Ratings ----

    async def record_rating(
        self,
        rating: Union[Rating, int],
        response_time_ms: Union[int, float],
        card_id: Optional[str] = None,
    ) -> RatingResult:
        """
        Rate the current card (or `card_id`, which must be current).

        Main workflow:
        1. Validate rating and response time (no store call on failure)
        2. Return the cached result if the card was already rated (without
           card_id, a repeat after the last card returns the final result)
        3. Apply the memory model to the card's pre-session snapshot
        4. Persist review + progress through the store
        5. Advance the cursor, bump submitted_count, complete when done

        Args:
            rating: 0-3 (Again, Hard, Good, Easy)
            response_time_ms: 0..3_600_000
            card_id: Card being rated; pass it when retrying so a repeated
                call is recognised instead of rating the next card

        Returns:
            RatingResult with the review, new progress and session progress

        Raises:
            ValidationError, SessionError, LimitReachedError, TransientError
        """
        rating = coerce_rating(rating)
        response_time_ms = validate_response_time(response_time_ms, self.settings.max_response_time_ms)
        if card_id is not None and (not isinstance(card_id, str) or not card_id):
            raise ValidationError(f"card_id must be a non-empty string, got {card_id!r}")

        session = self._require_session()
        if card_id is not None and card_id in session.ratings:
            logger.debug("Card %s already rated in session %s, returning cached result", card_id, session.session_id)
            return session.ratings[card_id]
        if session.status == SessionStatus.CREATED:
            raise SessionError("session_not_active", "Session order has not been finalized")

        card = self.get_current_card()
        if card is None and card_id is None and session.ratings:
            # Repeat of the final rating; the cursor stays on the last card
            return next(reversed(session.ratings.values()))
        if card is None:
            raise SessionError("no_current_card", "All cards in this session have been rated")
        if card_id is not None and card.card_id != card_id:
            if session.card(card_id) is None:
                raise SessionError("card_not_in_session", f"Card {card_id} is not part of this session")
            raise SessionError("card_not_current", f"Card {card_id} is not the current card")

        progress, review = self._prepare_review(session, card, rating, response_time_ms)
        reply = await self._call(
            "record_review",
            self.store.record_review(
                session.session_id,
                card.card_id,
                int(rating),
                response_time_ms,
                review=review,
                progress=progress,
            ),
        )
        payload = parse_payload(RecordReviewPayload, reply, "record_review")
        self._check_review_reply(session, card.card_id, payload)

        self._pending.pop(card.card_id, None)
        result = self._apply_review(session, card, review, progress, payload)
        logger.info(
            "Recorded rating %d for card %s (%d/%d)",
            int(rating), card.card_id, session.submitted_count, session.total_cards_in_session
        )
        return result

    def _prepare_review(
        self,
        session: Session,
        card: SessionCard,
        rating: Rating,
        response_time_ms: int,
    ) -> tuple[CardProgress, Review]:
        """
        Compute (or reuse) the review for a card.

        A computation that never got confirmed by the store is reused for an
        identical retry, so the store sees the same review twice.
        """
        pending = self._pending.get(card.card_id)
        if pending is not None:
            progress, review = pending
            if review.rating == rating and review.response_time_ms == response_time_ms:
                return pending

        progress, draft = apply_rating(
            card.progress,
            rating,
            self.clock(),
            response_time_ms=response_time_ms,
            params=self.parameters,
        )
        review = Review.from_draft(session.session_id, draft)
        self._pending[card.card_id] = (progress, review)
        return progress, review

    def _check_review_reply(self, session: Session, card_id: str, payload: RecordReviewPayload) -> None:
        if payload.success:
            return
        if payload.error == ALREADY_RECORDED:
            logger.warning("Review for card %s already exists in session %s", card_id, session.session_id)
            return
        if payload.error in LIMIT_ERROR_CODES:
            self._pending.pop(card_id, None)
            limit_info = payload.limit_info or LimitReachedPayload()
            raise LimitReachedError(self.quota.from_payload(limit_info))
        if payload.error in SESSION_ERROR_CODES:
            self._pending.pop(card_id, None)
            raise SessionError(payload.error, payload.message)
        raise SessionError(payload.error or "record_failed", payload.message or "Failed to record review")

    def _apply_review(
        self,
        session: Session,
        card: SessionCard,
        review: Review,
        progress: CardProgress,
        payload: RecordReviewPayload,
    ) -> RatingResult:
        total = session.total_cards_in_session
        submitted = session.submitted_count + 1
        if payload.session_progress is not None:
            submitted = max(submitted, payload.session_progress.submitted_count)
            if payload.session_progress.completed:
                submitted = total
        session.submitted_count = min(max(session.submitted_count, submitted), total)

        position = session.card_ids.index(card.card_id)
        session.current_index = min(max(session.current_index, position + 1), len(session.cards))
        if session.submitted_count >= total:
            session.advance_status(SessionStatus.COMPLETE)

        result = RatingResult(
            card_id=card.card_id,
            rating=review.rating,
            response_time_ms=review.response_time_ms,
            review=review,
            card_progress=progress,
            session_progress=session.progress(),
        )
        session.ratings[card.card_id] = result
        return result

    # ---- Rehydration ----

    async def _load_review_log(self, session_id: str) -> list[ReviewPayload]:
        since = self.quota.start_of_day(self.clock())
        rows = await self._call(
            "get_session_reviews",
            self.store.get_session_reviews(session_id, since=since),
        )
        return parse_payload_list(ReviewPayload, rows, "get_session_reviews")

    def _rehydrate(self, session: Session, rows: list[ReviewPayload]) -> int:
        """
        Rebuild ratings from the review log.

        Rehydrated results carry no review or card progress; only the rating
        and response time survive in the log.
        """
        card_ids = set(session.card_ids)
        restored = 0
        for row in rows:
            if row.card_id not in card_ids or row.card_id in session.ratings:
                continue
            completed = min(len(session.ratings) + 1, session.total_cards_in_session)
            total = session.total_cards_in_session
            session.ratings[row.card_id] = RatingResult(
                card_id=row.card_id,
                rating=Rating(row.rating),
                response_time_ms=row.response_time_ms,
                review=None,
                card_progress=None,
                session_progress=Progress(
                    completed=completed,
                    total=total,
                    percentage=round(completed / total * 100) if total else 0,
                ),
            )
            restored += 1

        session.submitted_count = min(
            max(session.submitted_count, len(session.ratings)),
            session.total_cards_in_session,
        )
        if session.submitted_count >= session.total_cards_in_session:
            session.advance_status(SessionStatus.COMPLETE)
        self.get_current_card()
        if restored:
            logger.info("Restored %d ratings for session %s", restored, session.session_id)
        return restored
