"""Tests for the in-process session registry."""
import pytest

from quizwhiz.services.quiz_session import QuizSession, SessionState
from quizwhiz.services.session_registry import SessionRegistry
from quizwhiz.services.sync_coordinator import SyncCoordinator
from quizwhiz.services.fallback_cache import InMemoryFallbackCache
from conftest import FakeRemoteStore


def session_in(state: SessionState, session_id: str) -> QuizSession:
    store = FakeRemoteStore()
    session = QuizSession(
        "u1", 1, store, SyncCoordinator(store, InMemoryFallbackCache()), session_id=session_id
    )
    session.state = state
    return session


class TestSessionRegistry:

    def test_get_unknown_raises(self):
        with pytest.raises(KeyError):
            SessionRegistry().get("missing")

    def test_finished_sessions_are_bounded(self):
        registry = SessionRegistry(max_finished=2)
        for i in range(4):
            registry.add(session_in(SessionState.COMPLETE, f"done-{i}"))
        registry.add(session_in(SessionState.IN_PROGRESS, "live"))

        assert len(registry) == 3
        with pytest.raises(KeyError):
            registry.get("done-0")
        assert registry.get("done-3").id == "done-3"
        assert registry.get("live").state is SessionState.IN_PROGRESS

    def test_live_sessions_never_evicted(self):
        registry = SessionRegistry(max_finished=0)
        registry.add(session_in(SessionState.IN_PROGRESS, "a"))
        registry.add(session_in(SessionState.ABANDONED, "b"))
        assert len(registry) == 1
        registry.discard("a")
        assert len(registry) == 0
