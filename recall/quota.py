"""
Daily quotas per user tier.

Free users get a fixed number of reviews and new cards per calendar day;
paid and admin users are effectively unlimited. The day boundary is a plain
calendar-date comparison in the configured reference timezone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from recall.config import Settings

if TYPE_CHECKING:
    from recall.schemas import DailyUsagePayload, LimitReachedPayload

logger = logging.getLogger(__name__)


class Tier(str, Enum):
    """User class that determines daily quotas."""
    FREE = "free"
    PAID = "paid"
    ADMIN = "admin"


@dataclass(frozen=True)
class TierLimits:
    new_cards_per_day: int
    reviews_per_day: int


@dataclass(frozen=True)
class LimitReached:
    """
    Daily cap hit. Returned instead of a session so the caller can show a
    "come back tomorrow" state rather than a generic failure.
    """
    tier: str
    reviews_today: int
    limit: int


@dataclass(frozen=True)
class QuotaAllowance:
    """What is left of today's quota."""
    reviews_remaining: int
    new_cards_remaining: int


def _resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", name)
        return timezone.utc


class QuotaPolicy:
    """
    Per-tier daily limits consulted at session creation.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings.from_env()
        self.timezone = _resolve_timezone(self.settings.reference_timezone)
        unlimited = TierLimits(
            new_cards_per_day=self.settings.unlimited_daily,
            reviews_per_day=self.settings.unlimited_daily,
        )
        self.limits = {
            Tier.FREE: TierLimits(
                new_cards_per_day=self.settings.free_daily_new_cards,
                reviews_per_day=self.settings.free_daily_reviews,
            ),
            Tier.PAID: unlimited,
            Tier.ADMIN: unlimited,
        }

    def limits_for(self, tier: Union[Tier, str]) -> TierLimits:
        return self.limits[self.normalize_tier(tier)]

    @staticmethod
    def normalize_tier(tier: Union[Tier, str, None]) -> Tier:
        """Unknown or missing tiers get free limits."""
        try:
            return Tier(tier)
        except ValueError:
            logger.warning("Unknown tier %r, applying free limits", tier)
            return Tier.FREE

    def today(self, now: datetime) -> date:
        """
        Calendar date of `now` in the reference timezone.
        """
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(self.timezone).date()

    def start_of_day(self, now: datetime) -> datetime:
        """
        Midnight of today in the reference timezone, as a UTC timestamp.
        """
        local_midnight = datetime.combine(self.today(now), datetime.min.time(), tzinfo=self.timezone)
        return local_midnight.astimezone(timezone.utc)

    def reviews_today(self, usage: "DailyUsagePayload", now: datetime) -> int:
        """
        Today's review count from the stored usage counters.

        The counter only counts when it was last bumped today; a counter from
        an earlier calendar day has been reset by the day boundary.
        """
        if usage.last_review_date is None or usage.last_review_date != self.today(now):
            return 0
        return max(0, usage.reviews_today)

    def new_cards_today(self, usage: "DailyUsagePayload", now: datetime) -> int:
        if usage.last_review_date is None or usage.last_review_date != self.today(now):
            return 0
        return max(0, usage.new_cards_today)

    def evaluate(
        self,
        tier: Union[Tier, str],
        reviews_today: int,
        new_cards_today: int = 0
    ) -> Union[LimitReached, QuotaAllowance]:
        """
        Gate session creation on today's usage.

        Only the free tier can hit the cap. Paid and admin always get their
        full (effectively unlimited) allowance, whatever today's usage.

        Returns:
            LimitReached when the free tier has met or exceeded its limit,
            otherwise the remaining review and new-card allowance.
        """
        normalized = self.normalize_tier(tier)
        limits = self.limits[normalized]
        if normalized != Tier.FREE:
            return QuotaAllowance(
                reviews_remaining=limits.reviews_per_day,
                new_cards_remaining=limits.new_cards_per_day,
            )
        if reviews_today >= limits.reviews_per_day:
            logger.info(
                "Daily limit reached for %s tier (%d/%d)",
                normalized.value, reviews_today, limits.reviews_per_day
            )
            return LimitReached(
                tier=normalized.value,
                reviews_today=reviews_today,
                limit=limits.reviews_per_day,
            )
        return QuotaAllowance(
            reviews_remaining=max(0, limits.reviews_per_day - reviews_today),
            new_cards_remaining=max(0, limits.new_cards_per_day - new_cards_today),
        )

    @staticmethod
    def from_payload(payload: "LimitReachedPayload") -> LimitReached:
        """Translate a store-side limit reply into a LimitReached record."""
        return LimitReached(
            tier=payload.tier,
            reviews_today=payload.reviews_today,
            limit=payload.limit,
        )
