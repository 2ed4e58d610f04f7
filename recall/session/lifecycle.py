"""
Server-authoritative session lifecycle.

The store creates sessions, enforces the daily cap and keeps the review log;
this class drives it and keeps the in-memory mirror consistent.

Main workflow:
1. initialize_session() -> get_or_create_session (or LimitReached)
2. shuffle_and_finalize() -> finalize_session_order, created -> active
3. get_current_card() / record_rating() until is_session_complete()
4. resume_session() after a reload re-fetches by id and rehydrates
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from recall.errors import NoCardsAvailable, SessionError
from recall.quota import LimitReached
from recall.schemas import (
    FinalizePayload,
    LimitReachedPayload,
    SessionPayload,
    is_limit_reached,
    parse_payload,
)
from recall.session.base import BaseSessionLifecycle, validate_user_id
from recall.session_builders.pool_utils import build_session_cards
from recall.session_types import Session, SessionFilter, SessionStatus

logger = logging.getLogger(__name__)

NO_CARDS_CODES = ("no_cards_available", "no_cards")


class SessionLifecycle(BaseSessionLifecycle):
    """
    Session state machine backed by a SessionStore.
    """

    async def initialize_session(
        self,
        user_id: str,
        session_filter: Optional[SessionFilter] = None,
    ) -> Union[Session, LimitReached]:
        """
        Get today's session for the user, creating it if needed.

        Returns:
            The session, or LimitReached when the daily cap is hit

        Raises:
            NoCardsAvailable: The store had nothing to study
            SessionError: The store refused the request
        """
        user_id = validate_user_id(user_id)
        logger.info(
            "Initializing session for user %s%s",
            user_id, f" (subject {session_filter.subject_path})" if session_filter and session_filter.subject_path else ""
        )
        reply = await self._call(
            "get_or_create_session",
            self.store.get_or_create_session(user_id, session_filter),
        )

        if is_limit_reached(reply):
            limit = self.quota.from_payload(parse_payload(LimitReachedPayload, reply, "get_or_create_session"))
            logger.info("Daily limit reached for user %s (%d/%d)", user_id, limit.reviews_today, limit.limit)
            return limit
        self._check_failure(reply, "session_create_failed")

        payload = parse_payload(SessionPayload, reply, "get_or_create_session")
        await self._use_user_parameters(user_id)
        session = self._session_from_payload(payload, user_id, session_filter)
        self._install(session)

        if not payload.is_new_session and payload.submitted_count > 0:
            self._rehydrate(session, await self._load_review_log(session.session_id))

        logger.info(
            "Session %s ready with %d cards (status: %s, progress %d/%d)",
            session.session_id, session.total_cards_in_session, session.status.value,
            session.submitted_count, session.total_cards_in_session
        )
        return session

    async def resume_session(self, session_id: str) -> Session:
        """
        Re-fetch a session by id and rebuild ratings from today's review log.
        """
        if not isinstance(session_id, str) or not session_id:
            raise SessionError("session_not_found", f"Invalid session id {session_id!r}")
        reply = await self._call("get_session", self.store.get_session(session_id))
        self._check_failure(reply, "session_not_found")

        payload = parse_payload(SessionPayload, reply, "get_session")
        previous = self._session
        user_id = payload.user_id or (previous.user_id if previous else "")
        session_filter = SessionFilter(payload.subject_path) if payload.subject_path else None
        if user_id:
            await self._use_user_parameters(user_id)
        session = self._session_from_payload(payload, user_id, session_filter)
        session.is_new_session = False
        self._install(session)
        self._rehydrate(session, await self._load_review_log(session.session_id))
        logger.info(
            "Resumed session %s (%d/%d)",
            session.session_id, session.submitted_count, session.total_cards_in_session
        )
        return session

    async def _finalize_order(self, session: Session, ordered_ids: list[str]) -> None:
        reply = await self._call(
            "finalize_session_order",
            self.store.finalize_session_order(session.session_id, ordered_ids),
        )
        payload = parse_payload(FinalizePayload, reply, "finalize_session_order")
        if not payload.success:
            raise SessionError(payload.error or "finalize_failed", payload.message)

    # ---- Helpers ----

    def _check_failure(self, reply: Any, default_code: str) -> None:
        if not isinstance(reply, dict) or reply.get("success", True):
            return
        code = reply.get("error") or default_code
        message = reply.get("message")
        if code in NO_CARDS_CODES:
            raise NoCardsAvailable(message or "No cards available for session")
        raise SessionError(code, message)

    def _session_from_payload(
        self,
        payload: SessionPayload,
        user_id: str,
        session_filter: Optional[SessionFilter],
    ) -> Session:
        now = self.clock()
        cards = build_session_cards(payload.cards, now, self.parameters)
        if payload.max_cards:
            cards = cards[:payload.max_cards]
        if not cards:
            raise NoCardsAvailable(f"Session {payload.session_id} has no cards")

        total = len(cards)
        submitted = min(payload.submitted_count, total)
        status = SessionStatus(payload.status)
        if submitted >= total:
            status = SessionStatus.COMPLETE
        elif status == SessionStatus.COMPLETE:
            # Status never runs ahead of the counters
            status = SessionStatus.ACTIVE
        return Session(
            session_id=payload.session_id,
            user_id=payload.user_id or user_id,
            cards=cards,
            total_cards_in_session=total,
            status=status,
            current_index=min(payload.current_index, total),
            submitted_count=submitted,
            seed=payload.seed,
            session_filter=session_filter or (SessionFilter(payload.subject_path) if payload.subject_path else None),
            is_new_session=payload.is_new_session,
        )
