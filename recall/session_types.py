"""
Session types shared by the server and local lifecycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from recall.fsrs.constants import CardState, Rating
from recall.fsrs.memory_state import CardProgress
from recall.fsrs.scheduler import ReviewDraft


class SessionStatus(str, Enum):
    """Forward-only: created -> active -> complete."""
    CREATED = "created"
    ACTIVE = "active"
    COMPLETE = "complete"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    def can_advance_to(self, other: "SessionStatus") -> bool:
        return other.rank >= self.rank


_STATUS_ORDER = (SessionStatus.CREATED, SessionStatus.ACTIVE, SessionStatus.COMPLETE)


@dataclass(frozen=True)
class SessionFilter:
    """
    Optional restriction of a session to part of the card catalogue.
    """
    subject_path: Optional[str] = None

    @property
    def key(self) -> str:
        return self.subject_path or ""


@dataclass(frozen=True)
class SessionCard:
    """
    A card within a session: its id, the progress snapshot taken when the
    session was built, and opaque display content.
    """
    card_id: str
    progress: CardProgress
    content: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Review:
    """
    Immutable record of one rating event.

    At most one exists per (session_id, card_id).
    """
    session_id: str
    card_id: str
    rating: Rating
    response_time_ms: int
    state_before: CardState
    state_after: CardState
    stability_before: float
    stability_after: float
    difficulty_before: float
    difficulty_after: float
    elapsed_days: float
    scheduled_days: int
    reviewed_at: datetime
    due_at: datetime

    @classmethod
    def from_draft(cls, session_id: str, draft: ReviewDraft) -> "Review":
        return cls(
            session_id=session_id,
            card_id=draft.card_id,
            rating=draft.rating,
            response_time_ms=draft.response_time_ms,
            state_before=draft.state_before,
            state_after=draft.state_after,
            stability_before=draft.stability_before,
            stability_after=draft.stability_after,
            difficulty_before=draft.difficulty_before,
            difficulty_after=draft.difficulty_after,
            elapsed_days=draft.elapsed_days,
            scheduled_days=draft.scheduled_days,
            reviewed_at=draft.reviewed_at,
            due_at=draft.due_at,
        )


@dataclass(frozen=True)
class Progress:
    completed: int
    total: int
    percentage: int


@dataclass(frozen=True)
class RatingResult:
    """
    Outcome of record_rating().

    A result rebuilt from the review log on resume only knows the rating and
    response time; review and card_progress are None there.
    """
    card_id: str
    rating: Rating
    response_time_ms: int
    review: Optional[Review]
    card_progress: Optional[CardProgress]
    session_progress: Progress


@dataclass
class Session:
    """
    One bounded study sitting.

    total_cards_in_session is fixed at creation; current_index and
    submitted_count only move forward.
    """
    session_id: str
    user_id: str
    cards: list[SessionCard]
    total_cards_in_session: int
    status: SessionStatus = SessionStatus.CREATED
    current_index: int = 0
    submitted_count: int = 0
    seed: Optional[str] = None
    session_filter: Optional[SessionFilter] = None
    is_new_session: bool = True
    ratings: dict[str, RatingResult] = field(default_factory=dict)

    @property
    def card_ids(self) -> list[str]:
        return [card.card_id for card in self.cards]

    @property
    def is_complete(self) -> bool:
        return self.status == SessionStatus.COMPLETE

    def card(self, card_id: str) -> Optional[SessionCard]:
        for card in self.cards:
            if card.card_id == card_id:
                return card
        return None

    def advance_status(self, status: SessionStatus) -> None:
        """Move the status forward; backward moves are ignored."""
        if self.status.can_advance_to(status):
            self.status = status

    def progress(self) -> Progress:
        total = self.total_cards_in_session
        completed = min(self.submitted_count, total)
        percentage = round(completed / total * 100) if total > 0 else 0
        return Progress(completed=completed, total=total, percentage=percentage)
