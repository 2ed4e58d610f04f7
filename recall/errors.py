"""
Error taxonomy for the study scheduler.

Every failure the core can surface to a caller is one of these types:

- ValidationError: malformed rating / response time / card id / payload.
  Raised before any persistence call, never worth retrying.
- LimitReachedError: the daily cap was hit while a session was running.
  (Session creation returns a LimitReached record instead of raising.)
- SessionError: the current session is unusable (unauthorized, not found, ...).
  The caller must re-initialize.
- NoCardsAvailable: nothing to study right now.
- TransientError: network or timeout failure of the persistence collaborator.
  Safe to retry the identical call; ratings are idempotent per (session, card).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from recall.quota import LimitReached


class RecallError(Exception):
    """Base class for all scheduler errors."""


class ValidationError(RecallError, ValueError):
    """Input rejected before it reached the memory model or the store."""


class PayloadValidationError(ValidationError):
    """A persistence payload did not match the expected shape."""

    def __init__(self, payload_name: str, detail: str):
        super().__init__(f"Invalid {payload_name} payload: {detail}")
        self.payload_name = payload_name
        self.detail = detail


class LimitReachedError(RecallError):
    """The store refused a review because the daily limit was reached."""

    def __init__(self, limit: LimitReached):
        super().__init__(
            f"Daily limit reached for {limit.tier} tier "
            f"({limit.reviews_today}/{limit.limit})"
        )
        self.limit = limit


class SessionError(RecallError):
    """The current session cannot continue."""

    def __init__(self, code: str, message: str | None = None):
        super().__init__(message or code.replace("_", " "))
        self.code = code


class NoCardsAvailable(RecallError):
    """No due or new cards exist for the requested session."""


class TransientError(RecallError):
    """A persistence call failed for a reason that may go away on retry."""
