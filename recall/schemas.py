"""
Pydantic models for persistence payloads.

Every mapping a store returns is validated here before the session
lifecycle touches it. Field names are snake_case in Python; payloads may use
either camelCase or snake_case keys.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, Type, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from recall.errors import PayloadValidationError
from recall.fsrs.constants import CardState


PayloadT = TypeVar("PayloadT", bound=BaseModel)


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ---- Cards ----

class CardPayload(_Payload):
    """
    One card as served by a store: identity, optional memory state, and
    whatever display content the store attaches (question, answer, ...).
    """
    model_config = ConfigDict(extra="allow")

    card_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("card_id", "cardId", "card_template_id", "cardTemplateId"),
    )
    stability: Optional[float] = None
    difficulty: Optional[float] = None
    state: Optional[CardState] = None
    due_at: Optional[datetime] = None
    last_reviewed_at: Optional[datetime] = None
    reps: int = Field(0, ge=0)
    lapses: int = Field(0, ge=0)
    total_reviews: int = Field(0, ge=0)
    correct_reviews: int = Field(0, ge=0)
    average_response_time_ms: Optional[int] = None

    @field_validator("card_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def has_progress(self) -> bool:
        return self.stability is not None and self.difficulty is not None and self.state is not None

    @property
    def content(self) -> dict[str, Any]:
        """Fields the scheduler does not interpret."""
        return dict(self.model_extra or {})


# ---- Sessions ----

class SessionPayload(_Payload):
    """Reply of get_or_create_session() / get_session()."""
    session_id: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    cards: list[CardPayload] = Field(
        default_factory=list,
        validation_alias=AliasChoices("cards", "cards_data", "cardsData"),
    )
    max_cards: Optional[int] = Field(None, ge=0)
    current_index: int = Field(0, ge=0)
    submitted_count: int = Field(0, ge=0)
    status: str = "created"
    seed: Optional[str] = None
    subject_path: Optional[str] = None
    is_new_session: bool = True

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        if value is None:
            return "created"
        if value == "completed":
            return "complete"
        return value

    @field_validator("status")
    @classmethod
    def _known_status(cls, value: str) -> str:
        if value not in ("created", "active", "complete"):
            raise ValueError(f"unknown session status {value!r}")
        return value


class LimitReachedPayload(_Payload):
    """Daily-cap reply, either top level or nested under limit_info."""
    tier: str = "free"
    reviews_today: int = Field(0, ge=0)
    limit: int = Field(0, ge=0)
    message: Optional[str] = None


class SessionProgressPayload(_Payload):
    submitted_count: int = Field(..., ge=0)
    max_cards: Optional[int] = Field(None, ge=0)
    completed: bool = False


class RecordReviewPayload(_Payload):
    """Reply of record_review()."""
    success: bool
    error: Optional[str] = None
    message: Optional[str] = None
    review_id: Optional[str] = None
    session_progress: Optional[SessionProgressPayload] = None
    limit_info: Optional[LimitReachedPayload] = None

    @field_validator("review_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if value is not None and not isinstance(value, str):
            return str(value)
        return value


class FinalizePayload(_Payload):
    """Reply of finalize_session_order()."""
    success: bool
    error: Optional[str] = None
    message: Optional[str] = None
    status: Optional[str] = None


# ---- Review log / usage ----

class ReviewPayload(_Payload):
    """One row of a session's review log."""
    card_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("card_id", "cardId", "card_template_id", "cardTemplateId"),
    )
    rating: int = Field(..., ge=0, le=3)
    response_time_ms: int = Field(0, ge=0)
    reviewed_at: Optional[datetime] = None

    @field_validator("card_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class DailyUsagePayload(_Payload):
    """A user's tier and stored daily counters."""
    tier: str = "free"
    reviews_today: int = Field(0, ge=0)
    new_cards_today: int = Field(0, ge=0)
    last_review_date: Optional[date] = None


# ---- Parsing helpers ----

def parse_payload(model: Type[PayloadT], data: Any, name: Optional[str] = None) -> PayloadT:
    """
    Validate a store reply, converting pydantic errors to PayloadValidationError.
    """
    payload_name = name or model.__name__
    if isinstance(data, model):
        return data
    if not isinstance(data, dict):
        raise PayloadValidationError(payload_name, f"expected a mapping, got {type(data).__name__}")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise PayloadValidationError(payload_name, str(exc)) from exc


def parse_payload_list(model: Type[PayloadT], data: Any, name: Optional[str] = None) -> list[PayloadT]:
    """Validate a list reply (review logs, card lists)."""
    payload_name = name or model.__name__
    if data is None:
        return []
    if not isinstance(data, (list, tuple)):
        raise PayloadValidationError(payload_name, f"expected a list, got {type(data).__name__}")
    return [parse_payload(model, item, payload_name) for item in data]


def is_limit_reached(data: Any) -> bool:
    """True for a create-session reply that reports the daily cap."""
    if not isinstance(data, dict):
        return False
    return bool(data.get("limit_reached") or data.get("limitReached"))
