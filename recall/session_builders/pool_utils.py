"""
Pool utilities for session builders.

These helpers turn validated card payloads into session cards and assemble
a session from a due pool and a new pool. No store calls happen here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional, TypeVar

from recall.fsrs.constants import CardState
from recall.fsrs.memory_state import CardProgress, initialize_new_card
from recall.fsrs.parameters import DEFAULT_PARAMETERS, FSRSParameters
from recall.schemas import CardPayload
from recall.session_types import SessionCard


T = TypeVar("T")

EXCLUDED_STATES = (CardState.BURIED, CardState.SUSPENDED)


def fill_in_order(
    pools: dict[str, list[T]],
    order: list[str],
    target_size: int
) -> list[T]:
    """
    Fill a session by walking pools in order until target_size is reached.
    """
    session: list[T] = []
    for name in order:
        for item in pools.get(name, []):
            if len(session) >= target_size:
                return session
            session.append(item)
    return session


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps from a store as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def progress_from_payload(
    card: CardPayload,
    now: datetime,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> CardProgress:
    """
    Progress snapshot for a served card.

    Cards without stored progress are seeded as new with the neutral-rating
    initial stability and difficulty.
    """
    if not card.has_progress:
        return initialize_new_card(card.card_id, now, params)
    return CardProgress(
        card_id=card.card_id,
        stability=card.stability,
        difficulty=card.difficulty,
        state=card.state,
        due_at=as_utc(card.due_at),
        last_reviewed_at=as_utc(card.last_reviewed_at),
        reps=card.reps,
        lapses=card.lapses,
        total_reviews=card.total_reviews,
        correct_reviews=card.correct_reviews,
        average_response_time_ms=card.average_response_time_ms,
    )


def build_session_cards(
    cards: Iterable[CardPayload],
    now: datetime,
    params: FSRSParameters = DEFAULT_PARAMETERS
) -> list[SessionCard]:
    """
    Convert payloads to session cards, dropping repeated card ids.
    """
    seen: set[str] = set()
    session_cards: list[SessionCard] = []
    for card in cards:
        if card.card_id in seen:
            continue
        seen.add(card.card_id)
        session_cards.append(SessionCard(
            card_id=card.card_id,
            progress=progress_from_payload(card, now, params),
            content=card.content,
        ))
    return session_cards


def due_cards_from_snapshot(
    cards: list[SessionCard],
    now: datetime
) -> list[SessionCard]:
    """
    Filter and sort due cards (earliest due first).

    Buried and suspended cards are never due.
    """
    due = [
        c for c in cards
        if c.progress.state not in EXCLUDED_STATES
        and (c.progress.due_at is None or c.progress.due_at <= now)
    ]
    due.sort(key=lambda c: (c.progress.due_at or now, c.card_id))
    return due


def new_cards_from_snapshot(
    cards: list[SessionCard],
    exclude_ids: set[str],
    count: int
) -> list[SessionCard]:
    """
    Take up to `count` never-studied cards in store order.
    """
    if count <= 0:
        return []
    fresh = [
        c for c in cards
        if c.card_id not in exclude_ids and c.progress.state == CardState.NEW
    ]
    return fresh[:count]
