"""Pytest configuration and fixtures for scheduler tests."""

from datetime import datetime, timedelta, timezone

import pytest

from recall.config import Settings


FIXED_NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_card(card_id: str, **progress) -> dict:
    """A store-side card row: template id, display content, optional progress."""
    card = {
        "card_template_id": card_id,
        "question": f"Question {card_id}",
        "answer": f"Answer {card_id}",
    }
    card.update(progress)
    return card


class FakeSessionStore:
    """In-memory SessionStore mirroring the server RPC replies."""

    def __init__(self, cards=None, *, seed="5eed1234", max_cards=10):
        self.cards = list(cards or [])
        self.seed = seed
        self.max_cards = max_cards
        self.limit_reply = None
        self.sessions = {}
        self.reviews = {}
        self.record_calls = []
        self.finalize_calls = []
        self.failures = []
        self.record_error = None
        self._next_id = 1
        self.user_parameters = {}
        self.parameter_requests = []

    def fail_next(self, exc: Exception) -> None:
        self.failures.append(exc)

    def _maybe_fail(self):
        if self.failures:
            raise self.failures.pop(0)

    def _reply(self, session, is_new):
        return {
            "success": True,
            "session_id": session["id"],
            "user_id": session["user_id"],
            "cards_data": session["cards"],
            "max_cards": session["max_cards"],
            "current_index": session["current_index"],
            "submitted_count": session["submitted_count"],
            "status": session["status"],
            "seed": session["seed"],
            "subject_path": session["subject_path"],
            "is_new_session": is_new,
        }

    async def get_or_create_session(self, user_id, session_filter=None):
        self._maybe_fail()
        if self.limit_reply is not None:
            return self.limit_reply
        subject_path = session_filter.subject_path if session_filter else None
        for session in self.sessions.values():
            if (
                session["user_id"] == user_id
                and session["subject_path"] == subject_path
                and session["status"] != "completed"
            ):
                return self._reply(session, is_new=False)
        if not self.cards:
            return {"success": False, "error": "no_cards_available", "message": "No cards available for session"}

        session_id = f"session-{self._next_id}"
        self._next_id += 1
        cards = self.cards[:self.max_cards]
        session = {
            "id": session_id,
            "user_id": user_id,
            "cards": cards,
            "max_cards": len(cards),
            "current_index": 0,
            "submitted_count": 0,
            "status": "created",
            "seed": self.seed,
            "subject_path": subject_path,
        }
        self.sessions[session_id] = session
        self.reviews[session_id] = []
        return self._reply(session, is_new=True)

    async def get_user_parameters(self, user_id):
        self.parameter_requests.append(user_id)
        return self.user_parameters.get(user_id)

    async def get_session(self, session_id):
        self._maybe_fail()
        session = self.sessions.get(session_id)
        if session is None:
            return {"success": False, "error": "session_not_found", "message": "Session not found"}
        return self._reply(session, is_new=False)

    async def get_session_reviews(self, session_id, since=None):
        self._maybe_fail()
        return [
            {
                "card_template_id": review["card_id"],
                "rating": review["rating"],
                "response_time_ms": review["response_time_ms"],
                "reviewed_at": review["reviewed_at"].isoformat(),
            }
            for review in self.reviews.get(session_id, [])
            if since is None or review["reviewed_at"] >= since
        ]

    async def record_review(self, session_id, card_id, rating, response_time_ms, *, review, progress):
        self.record_calls.append((session_id, card_id, rating, response_time_ms, review, progress))
        self._maybe_fail()
        if self.record_error is not None:
            return self.record_error
        session = self.sessions.get(session_id)
        if session is None:
            return {"success": False, "error": "session_not_found", "message": "Session not found"}
        log = self.reviews[session_id]
        if any(r["card_id"] == card_id for r in log):
            return {"success": False, "error": "review_already_exists"}
        log.append({
            "card_id": card_id,
            "rating": rating,
            "response_time_ms": response_time_ms,
            "reviewed_at": review.reviewed_at,
            "review": review,
            "progress": progress,
        })
        session["submitted_count"] += 1
        session["current_index"] = min(session["current_index"] + 1, session["max_cards"] - 1)
        completed = session["submitted_count"] >= session["max_cards"]
        if completed:
            session["status"] = "completed"
        return {
            "success": True,
            "review_id": len(log),
            "session_progress": {
                "submitted_count": session["submitted_count"],
                "max_cards": session["max_cards"],
                "completed": completed,
            },
        }

    async def finalize_session_order(self, session_id, ordered_card_ids):
        self.finalize_calls.append((session_id, list(ordered_card_ids)))
        self._maybe_fail()
        session = self.sessions[session_id]
        by_id = {c["card_template_id"]: c for c in session["cards"]}
        session["cards"] = [by_id[card_id] for card_id in ordered_card_ids]
        session["status"] = "active"
        return {"success": True}


class FakeCardStore:
    """In-memory CardStore for the client-local lifecycle."""

    def __init__(self, due=None, new=None, *, tier="free", reviews_today=0, new_cards_today=0, last_review_date=None):
        self.due = list(due or [])
        self.new = list(new or [])
        self.usage = {
            "tier": tier,
            "reviews_today": reviews_today,
            "new_cards_today": new_cards_today,
            "last_review_date": last_review_date,
        }
        self.reviews = {}
        self.new_card_requests = []
        self.due_card_requests = 0
        self.failures = []
        self.user_parameters = {}
        self.parameter_requests = []

    def fail_next(self, exc: Exception) -> None:
        self.failures.append(exc)

    def _maybe_fail(self):
        if self.failures:
            raise self.failures.pop(0)

    async def get_daily_usage(self, user_id):
        self._maybe_fail()
        return dict(self.usage)

    async def get_user_parameters(self, user_id):
        self.parameter_requests.append(user_id)
        return self.user_parameters.get(user_id)

    async def get_due_cards(self, user_id, session_filter=None):
        self._maybe_fail()
        self.due_card_requests += 1
        return list(self.due)

    async def get_new_cards(self, user_id, limit, session_filter=None):
        self._maybe_fail()
        self.new_card_requests.append(limit)
        return list(self.new[:limit])

    async def get_session_reviews(self, session_id, since=None):
        self._maybe_fail()
        return [
            {"card_id": r["card_id"], "rating": r["rating"], "response_time_ms": r["response_time_ms"]}
            for r in self.reviews.get(session_id, [])
        ]

    async def record_review(self, session_id, card_id, rating, response_time_ms, *, review, progress):
        self._maybe_fail()
        log = self.reviews.setdefault(session_id, [])
        if any(r["card_id"] == card_id for r in log):
            return {"success": False, "error": "review_already_exists"}
        log.append({"card_id": card_id, "rating": rating, "response_time_ms": response_time_ms})
        self.usage["reviews_today"] += 1
        self.usage["last_review_date"] = review.reviewed_at.date().isoformat()
        return {"success": True}


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def card_rows():
    return [make_card(f"card-{i}") for i in range(1, 6)]


@pytest.fixture
def session_store(card_rows):
    return FakeSessionStore(card_rows)
