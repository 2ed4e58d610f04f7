"""
Client-local session lifecycle.

Builds sessions itself from a CardStore instead of relying on a
server-assigned session. Quotas are enforced here from the stored usage
counters.

Key concepts:
- Due cards first (earliest due first), then new cards up to the daily
  new-card allowance
- Session id and seed derive from (user, day, filter), so initializing twice
  on the same day yields the same session identity
- Cards already rated under that identity are restored from the review log
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Optional, Union

from recall.errors import NoCardsAvailable, SessionError
from recall.fsrs.memory_state import initialize_new_card
from recall.quota import LimitReached
from recall.schemas import CardPayload, DailyUsagePayload, parse_payload, parse_payload_list
from recall.session.base import BaseSessionLifecycle, validate_user_id
from recall.session_builders.pool_utils import (
    build_session_cards,
    due_cards_from_snapshot,
    fill_in_order,
    new_cards_from_snapshot,
)
from recall.session_types import Session, SessionCard, SessionFilter, SessionStatus

logger = logging.getLogger(__name__)

SESSION_NAMESPACE = uuid.UUID("6f1c7a52-3b0e-4d8e-9a51-2c4b8e7d0f13")


def derive_session_identity(
    user_id: str,
    day: date,
    session_filter: Optional[SessionFilter] = None
) -> tuple[str, str]:
    """
    Deterministic (session_id, seed) for a user, calendar day and filter.

    The seed is the first 8 hex characters of the session id.
    """
    key = session_filter.key if session_filter else ""
    session_id = str(uuid.uuid5(SESSION_NAMESPACE, f"{user_id}:{day.isoformat()}:{key}"))
    return session_id, session_id.replace("-", "")[:8]


class LocalSessionLifecycle(BaseSessionLifecycle):
    """
    Session state machine backed by a CardStore.
    """

    async def initialize_session(
        self,
        user_id: str,
        session_filter: Optional[SessionFilter] = None,
    ) -> Union[Session, LimitReached]:
        """
        Build today's session from due and new cards.

        Main workflow:
        1. Daily usage -> QuotaPolicy (LimitReached before any card query)
        2. Restore ratings already logged under today's session id
        3. Due cards, earliest due first, excluding buried / suspended
        4. New cards fill the remaining slots within the new-card allowance

        Raises:
            NoCardsAvailable: Nothing due and no new cards
        """
        user_id = validate_user_id(user_id)
        now = self.clock()

        usage = parse_payload(
            DailyUsagePayload,
            await self._call("get_daily_usage", self.store.get_daily_usage(user_id)),
            "get_daily_usage",
        )
        decision = self.quota.evaluate(
            usage.tier,
            self.quota.reviews_today(usage, now),
            self.quota.new_cards_today(usage, now),
        )
        if isinstance(decision, LimitReached):
            return decision

        await self._use_user_parameters(user_id)
        session_id, seed = derive_session_identity(user_id, self.quota.today(now), session_filter)
        logged = await self._load_review_log(session_id)
        rated_ids = list(dict.fromkeys(row.card_id for row in logged))

        due_payloads = parse_payload_list(
            CardPayload,
            await self._call("get_due_cards", self.store.get_due_cards(user_id, session_filter)),
            "get_due_cards",
        )
        known = build_session_cards(due_payloads, now, self.parameters)
        due = [c for c in due_cards_from_snapshot(known, now) if c.card_id not in rated_ids]

        slots = max(0, min(self.settings.session_size, len(rated_ids) + decision.reviews_remaining) - len(rated_ids))
        new: list[SessionCard] = []
        new_limit = min(slots - len(due), decision.new_cards_remaining)
        if new_limit > 0:
            new_payloads = parse_payload_list(
                CardPayload,
                await self._call(
                    "get_new_cards",
                    self.store.get_new_cards(user_id, new_limit, session_filter),
                ),
                "get_new_cards",
            )
            fresh = build_session_cards(new_payloads, now, self.parameters)
            known.extend(fresh)
            new = new_cards_from_snapshot(fresh, set(rated_ids) | {c.card_id for c in due}, new_limit)

        unrated = fill_in_order({"due": due, "new": new}, ["due", "new"], slots)
        rated = [self._rated_card(card_id, known, now) for card_id in rated_ids]
        cards = rated + unrated
        if not cards:
            raise NoCardsAvailable(f"No due or new cards for user {user_id}")

        session = Session(
            session_id=session_id,
            user_id=user_id,
            cards=cards,
            total_cards_in_session=len(cards),
            status=SessionStatus.CREATED,
            seed=seed,
            session_filter=session_filter,
            is_new_session=not rated_ids,
        )
        self._install(session)
        if logged:
            self._rehydrate(session, logged)

        due_ids = {c.card_id for c in due}
        due_count = sum(1 for c in unrated if c.card_id in due_ids)
        logger.info(
            "Local session %s built with %d due, %d new, %d already rated",
            session_id, due_count, len(unrated) - due_count, len(rated)
        )
        return session

    async def resume_session(self, session_id: str) -> Session:
        """
        Re-read the review log for the in-memory session.

        Local sessions are rebuilt by initialize_session(); resuming only
        refreshes ratings for the session already held.
        """
        session = self._session
        if session is None or session.session_id != session_id:
            raise SessionError("session_not_found", f"Session {session_id} is not loaded")
        await self._use_user_parameters(session.user_id)
        self._rehydrate(session, await self._load_review_log(session_id))
        return session

    async def _finalize_order(self, session: Session, ordered_ids: list[str]) -> None:
        # Order lives only in memory for local sessions
        return None

    @staticmethod
    def _rated_card(card_id: str, known: list[SessionCard], now: datetime) -> SessionCard:
        for card in known:
            if card.card_id == card_id:
                return card
        # Already rated; only its id is used from here on
        return SessionCard(card_id=card_id, progress=initialize_new_card(card_id, now))
