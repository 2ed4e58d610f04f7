"""Tests for daily quotas."""

from datetime import date, datetime, timezone

import pytest

from recall.config import Settings
from recall.quota import LimitReached, QuotaAllowance, QuotaPolicy, Tier
from recall.schemas import DailyUsagePayload, LimitReachedPayload

from conftest import FIXED_NOW


@pytest.fixture
def policy():
    return QuotaPolicy(Settings())


class TestEvaluate:
    """Tests for the session-creation gate."""

    def test_free_tier_at_limit_is_refused(self, policy):
        result = policy.evaluate(Tier.FREE, 20)
        assert result == LimitReached(tier="free", reviews_today=20, limit=20)

    def test_free_tier_over_limit_is_refused(self, policy):
        assert isinstance(policy.evaluate("free", 25), LimitReached)

    def test_free_tier_below_limit_gets_remaining_allowance(self, policy):
        result = policy.evaluate(Tier.FREE, 15, new_cards_today=4)
        assert result == QuotaAllowance(reviews_remaining=5, new_cards_remaining=6)

    @pytest.mark.parametrize("tier", [Tier.PAID, Tier.ADMIN])
    def test_paid_tiers_are_effectively_unlimited(self, policy, tier):
        result = policy.evaluate(tier, 500)
        assert isinstance(result, QuotaAllowance)
        assert result.reviews_remaining == 9999

    @pytest.mark.parametrize("tier", [Tier.PAID, Tier.ADMIN])
    def test_paid_tiers_never_run_out(self, policy, tier):
        result = policy.evaluate(tier, 9999, new_cards_today=9999)
        assert result == QuotaAllowance(reviews_remaining=9999, new_cards_remaining=9999)

    def test_default_policy_reads_environment(self, monkeypatch):
        monkeypatch.setenv("RECALL_FREE_DAILY_REVIEWS", "3")
        policy = QuotaPolicy()
        assert isinstance(policy.evaluate(Tier.FREE, 3), LimitReached)

    def test_unknown_tier_gets_free_limits(self, policy):
        assert isinstance(policy.evaluate("platinum", 20), LimitReached)

    def test_limits_follow_settings(self):
        policy = QuotaPolicy(Settings(free_daily_reviews=5))
        assert isinstance(policy.evaluate(Tier.FREE, 5), LimitReached)
        assert policy.limits_for("free").reviews_per_day == 5


class TestDayBoundary:
    """Tests for the calendar-day reset."""

    def test_counter_from_today_counts(self, policy):
        usage = DailyUsagePayload(tier="free", reviews_today=12, last_review_date=date(2026, 3, 10))
        assert policy.reviews_today(usage, FIXED_NOW) == 12

    def test_counter_from_yesterday_is_reset(self, policy):
        usage = DailyUsagePayload(tier="free", reviews_today=20, last_review_date=date(2026, 3, 9))
        assert policy.reviews_today(usage, FIXED_NOW) == 0

    def test_missing_date_means_no_reviews(self, policy):
        usage = DailyUsagePayload(tier="free", reviews_today=20)
        assert policy.reviews_today(usage, FIXED_NOW) == 0

    def test_today_uses_reference_timezone(self):
        late_evening_utc = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)
        utc_policy = QuotaPolicy(Settings(reference_timezone="UTC"))
        tokyo_policy = QuotaPolicy(Settings(reference_timezone="Asia/Tokyo"))
        assert utc_policy.today(late_evening_utc) == date(2026, 3, 10)
        assert tokyo_policy.today(late_evening_utc) == date(2026, 3, 11)

    def test_unknown_timezone_falls_back_to_utc(self):
        policy = QuotaPolicy(Settings(reference_timezone="Mars/Olympus_Mons"))
        assert policy.timezone is timezone.utc

    def test_start_of_day(self, policy):
        assert policy.start_of_day(FIXED_NOW) == datetime(2026, 3, 10, tzinfo=timezone.utc)


class TestFromPayload:
    """Tests for store-side limit replies."""

    def test_translates_camel_case_payload(self, policy):
        payload = LimitReachedPayload.model_validate({"tier": "free", "reviewsToday": 20, "limit": 20})
        assert policy.from_payload(payload) == LimitReached(tier="free", reviews_today=20, limit=20)
