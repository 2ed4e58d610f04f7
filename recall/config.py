"""
Scheduler configuration.

Values come from the environment (a local .env file is loaded first).
Module-level constants hold the defaults; Settings.from_env() builds the
frozen object that is passed explicitly to the session lifecycle and the
quota policy.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


# ---- Session Configuration ----
SESSION_SIZE = 10               # Cards per session
MAX_RESPONSE_TIME_MS = 3_600_000  # One hour

# ---- Daily Limits ----
FREE_DAILY_REVIEWS = 20         # 2 sessions x 10 cards
FREE_DAILY_NEW_CARDS = 10
UNLIMITED_DAILY = 9999          # Effectively unlimited (paid / admin)

# ---- Scheduling ----
REFERENCE_TIMEZONE = "UTC"      # Calendar day boundary for daily limits
DESIRED_RETENTION = 0.9


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not an integer), using %s", name, raw, default)
        return default
    if value < minimum:
        logger.warning("Ignoring %s=%r (below %s), using %s", name, raw, minimum, default)
        return default
    return value


def _env_float(name: str, default: float, low: float, high: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not a number), using %s", name, raw, default)
        return default
    if not low < value < high:
        logger.warning("Ignoring %s=%r (outside %s..%s), using %s", name, raw, low, high, default)
        return default
    return value


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings for session building and quota enforcement.
    """
    session_size: int = SESSION_SIZE
    free_daily_reviews: int = FREE_DAILY_REVIEWS
    free_daily_new_cards: int = FREE_DAILY_NEW_CARDS
    unlimited_daily: int = UNLIMITED_DAILY
    reference_timezone: str = REFERENCE_TIMEZONE
    desired_retention: float = DESIRED_RETENTION
    max_response_time_ms: int = MAX_RESPONSE_TIME_MS

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from RECALL_* environment variables.

        Malformed values are logged and replaced by the defaults above.
        """
        return cls(
            session_size=_env_int("RECALL_SESSION_SIZE", SESSION_SIZE, minimum=1),
            free_daily_reviews=_env_int("RECALL_FREE_DAILY_REVIEWS", FREE_DAILY_REVIEWS),
            free_daily_new_cards=_env_int("RECALL_FREE_DAILY_NEW_CARDS", FREE_DAILY_NEW_CARDS),
            unlimited_daily=_env_int("RECALL_UNLIMITED_DAILY", UNLIMITED_DAILY, minimum=1),
            reference_timezone=os.getenv("RECALL_TIMEZONE", REFERENCE_TIMEZONE) or REFERENCE_TIMEZONE,
            desired_retention=_env_float("RECALL_DESIRED_RETENTION", DESIRED_RETENTION, 0.0, 1.0),
        )
