"""Tests for the client-local session lifecycle."""

from datetime import date, timedelta

import pytest

from recall.config import Settings
from recall.errors import NoCardsAvailable, SessionError, TransientError
from recall.fsrs import CardState, Rating
from recall.quota import LimitReached
from recall.session import LocalSessionLifecycle, derive_session_identity
from recall.session_types import SessionFilter, SessionStatus

from conftest import FIXED_NOW, FakeCardStore, make_card


def due_card(card_id, days_overdue, state="review"):
    return make_card(
        card_id,
        stability=5.0,
        difficulty=5.0,
        state=state,
        reps=2,
        due_at=(FIXED_NOW - timedelta(days=days_overdue)).isoformat(),
        last_reviewed_at=(FIXED_NOW - timedelta(days=days_overdue + 5)).isoformat(),
    )


class TestDeriveSessionIdentity:
    """Tests for the per-day session identity."""

    def test_same_inputs_same_identity(self):
        day = date(2026, 3, 10)
        assert derive_session_identity("u1", day) == derive_session_identity("u1", day)

    def test_identity_changes_with_day_and_filter(self):
        day = date(2026, 3, 10)
        base = derive_session_identity("u1", day)
        assert derive_session_identity("u1", day + timedelta(days=1)) != base
        assert derive_session_identity("u1", day, SessionFilter("science")) != base

    def test_seed_is_eight_hex_characters(self):
        session_id, seed = derive_session_identity("u1", date(2026, 3, 10))
        assert len(seed) == 8
        assert session_id.replace("-", "").startswith(seed)


class TestLocalInitialize:
    """Tests for building sessions from due and new cards."""

    @pytest.mark.asyncio
    async def test_due_cards_first_earliest_due_first(self, clock):
        store = FakeCardStore(
            due=[due_card("late", 1), due_card("oldest", 9), due_card("middle", 4)],
            new=[make_card("n1"), make_card("n2")],
        )
        lifecycle = LocalSessionLifecycle(store, clock=clock)
        session = await lifecycle.initialize_session("u1")
        assert session.card_ids == ["oldest", "middle", "late", "n1", "n2"]
        assert session.cards[3].progress.state == CardState.NEW
        assert session.status == SessionStatus.CREATED

    @pytest.mark.asyncio
    async def test_buried_and_suspended_cards_are_skipped(self, clock):
        store = FakeCardStore(
            due=[due_card("b", 3, state="buried"), due_card("s", 3, state="suspended"), due_card("ok", 3)],
        )
        session = await LocalSessionLifecycle(store, clock=clock).initialize_session("u1")
        assert session.card_ids == ["ok"]

    @pytest.mark.asyncio
    async def test_new_cards_only_fill_remaining_slots(self, clock):
        store = FakeCardStore(
            due=[due_card(f"d{i}", i + 1) for i in range(8)],
            new=[make_card(f"n{i}") for i in range(5)],
        )
        session = await LocalSessionLifecycle(store, clock=clock).initialize_session("u1")
        assert session.total_cards_in_session == 10
        assert store.new_card_requests == [2]

    @pytest.mark.asyncio
    async def test_no_new_cards_requested_when_due_fills_session(self, clock):
        store = FakeCardStore(due=[due_card(f"d{i}", i + 1) for i in range(12)])
        session = await LocalSessionLifecycle(store, clock=clock).initialize_session("u1")
        assert session.total_cards_in_session == 10
        assert store.new_card_requests == []

    @pytest.mark.asyncio
    async def test_remaining_quota_caps_session_size(self, clock):
        store = FakeCardStore(
            new=[make_card(f"n{i}") for i in range(10)],
            reviews_today=15,
            new_cards_today=2,
            last_review_date=FIXED_NOW.date().isoformat(),
        )
        session = await LocalSessionLifecycle(store, clock=clock).initialize_session("u1")
        assert session.total_cards_in_session == 5

    @pytest.mark.asyncio
    async def test_new_card_allowance(self, clock):
        store = FakeCardStore(
            new=[make_card(f"n{i}") for i in range(10)],
            new_cards_today=7,
            last_review_date=FIXED_NOW.date().isoformat(),
        )
        session = await LocalSessionLifecycle(store, clock=clock).initialize_session("u1")
        assert session.total_cards_in_session == 3

    @pytest.mark.asyncio
    async def test_limit_reached_before_card_queries(self, clock):
        store = FakeCardStore(
            due=[due_card("d1", 1)],
            reviews_today=20,
            last_review_date=FIXED_NOW.date().isoformat(),
        )
        result = await LocalSessionLifecycle(store, clock=clock).initialize_session("u1")
        assert result == LimitReached(tier="free", reviews_today=20, limit=20)
        assert store.due_card_requests == 0

    @pytest.mark.asyncio
    async def test_yesterdays_usage_does_not_count(self, clock):
        store = FakeCardStore(
            due=[due_card("d1", 1)],
            reviews_today=20,
            last_review_date=(FIXED_NOW.date() - timedelta(days=1)).isoformat(),
        )
        session = await LocalSessionLifecycle(store, clock=clock).initialize_session("u1")
        assert session.card_ids == ["d1"]

    @pytest.mark.asyncio
    async def test_paid_tier_ignores_free_limit(self, clock):
        store = FakeCardStore(
            due=[due_card("d1", 1)],
            tier="paid",
            reviews_today=300,
            last_review_date=FIXED_NOW.date().isoformat(),
        )
        session = await LocalSessionLifecycle(store, clock=clock).initialize_session("u1")
        assert session.card_ids == ["d1"]

    @pytest.mark.asyncio
    async def test_paid_tier_at_unlimited_count_still_studies(self, clock):
        store = FakeCardStore(
            due=[due_card("d1", 1)],
            new=[make_card("n1")],
            tier="paid",
            reviews_today=9999,
            new_cards_today=9999,
            last_review_date=FIXED_NOW.date().isoformat(),
        )
        session = await LocalSessionLifecycle(store, clock=clock).initialize_session("u1")
        assert session.card_ids == ["d1", "n1"]

    @pytest.mark.asyncio
    async def test_session_size_from_environment(self, monkeypatch, clock):
        monkeypatch.setenv("RECALL_SESSION_SIZE", "3")
        store = FakeCardStore(new=[make_card(f"n{i}") for i in range(10)])
        session = await LocalSessionLifecycle(store, clock=clock).initialize_session("u1")
        assert session.total_cards_in_session == 3

    @pytest.mark.asyncio
    async def test_user_parameters_loaded(self, clock):
        store = FakeCardStore(due=[due_card("d1", 1)])
        store.user_parameters["u1"] = {"weights": [None] * 6 + [2.0]}
        lifecycle = LocalSessionLifecycle(store, clock=clock)
        await lifecycle.initialize_session("u1")
        await lifecycle.shuffle_and_finalize()
        result = await lifecycle.record_rating(Rating.AGAIN, 1000)
        assert store.parameter_requests == ["u1"]
        assert result.card_progress.difficulty == pytest.approx(9.0)

    @pytest.mark.asyncio
    async def test_session_size_setting(self, clock):
        store = FakeCardStore(new=[make_card(f"n{i}") for i in range(10)])
        lifecycle = LocalSessionLifecycle(store, settings=Settings(session_size=4), clock=clock)
        session = await lifecycle.initialize_session("u1")
        assert session.total_cards_in_session == 4

    @pytest.mark.asyncio
    async def test_empty_store_raises(self, clock):
        with pytest.raises(NoCardsAvailable):
            await LocalSessionLifecycle(FakeCardStore(), clock=clock).initialize_session("u1")

    @pytest.mark.asyncio
    async def test_store_failure_is_transient(self, clock):
        store = FakeCardStore(due=[due_card("d1", 1)])
        store.fail_next(OSError("disk unavailable"))
        with pytest.raises(TransientError):
            await LocalSessionLifecycle(store, clock=clock).initialize_session("u1")


class TestLocalStudy:
    """Tests for rating cards in a local session."""

    @pytest.mark.asyncio
    async def test_full_session(self, clock):
        store = FakeCardStore(due=[due_card("d1", 2)], new=[make_card("n1"), make_card("n2")])
        lifecycle = LocalSessionLifecycle(store, clock=clock)
        session = await lifecycle.initialize_session("u1")
        await lifecycle.shuffle_and_finalize()
        assert session.status == SessionStatus.ACTIVE

        ratings = [Rating.GOOD, Rating.AGAIN, Rating.EASY]
        for rating in ratings:
            await lifecycle.record_rating(rating, 2500)

        assert lifecycle.is_session_complete()
        assert session.status == SessionStatus.COMPLETE
        assert len(store.reviews[session.session_id]) == 3

    @pytest.mark.asyncio
    async def test_shuffle_is_reproducible(self, clock):
        rows = [make_card(f"n{i}") for i in range(8)]
        first = LocalSessionLifecycle(FakeCardStore(new=rows), clock=clock)
        second = LocalSessionLifecycle(FakeCardStore(new=rows), clock=clock)
        await first.initialize_session("u1")
        await second.initialize_session("u1")
        await first.shuffle_and_finalize()
        await second.shuffle_and_finalize()
        assert first.session.card_ids == second.session.card_ids

    @pytest.mark.asyncio
    async def test_reinitialize_restores_rated_cards(self, clock):
        store = FakeCardStore(new=[make_card(f"n{i}") for i in range(4)])
        first = LocalSessionLifecycle(store, clock=clock)
        await first.initialize_session("u1")
        await first.shuffle_and_finalize(enable_shuffle=False)
        await first.record_rating(Rating.GOOD, 1000)
        await first.record_rating(Rating.HARD, 1000)
        # Rated cards are no longer new in the store
        store.new = store.new[2:]

        second = LocalSessionLifecycle(store, clock=clock)
        session = await second.initialize_session("u1")

        assert session.session_id == first.session.session_id
        assert session.card_ids == ["n0", "n1", "n2", "n3"]
        assert session.submitted_count == 2
        assert session.is_new_session is False
        await second.shuffle_and_finalize(enable_shuffle=False)
        assert second.get_current_card().card_id == "n2"

    @pytest.mark.asyncio
    async def test_resume_refreshes_ratings(self, clock):
        store = FakeCardStore(new=[make_card("n0"), make_card("n1")])
        lifecycle = LocalSessionLifecycle(store, clock=clock)
        session = await lifecycle.initialize_session("u1")
        await lifecycle.shuffle_and_finalize(enable_shuffle=False)
        store.reviews[session.session_id] = [{"card_id": "n0", "rating": 2, "response_time_ms": 700}]

        await lifecycle.resume_session(session.session_id)
        assert session.submitted_count == 1
        assert lifecycle.get_current_card().card_id == "n1"

    @pytest.mark.asyncio
    async def test_resume_other_session_fails(self, clock):
        lifecycle = LocalSessionLifecycle(FakeCardStore(new=[make_card("n0")]), clock=clock)
        await lifecycle.initialize_session("u1")
        with pytest.raises(SessionError) as exc_info:
            await lifecycle.resume_session("someone-else")
        assert exc_info.value.code == "session_not_found"
