"""Tests for the quiz session state machine."""
import asyncio
import random

import pytest

from quizwhiz.models.cache import CacheKind
from quizwhiz.quiz import DeckLoadError, EmptyDeckError, InvalidTransitionError
from quizwhiz.services.fallback_cache import InMemoryFallbackCache
from quizwhiz.services.quiz_session import QuizSession, SessionState
from quizwhiz.services.sync_coordinator import SyncCoordinator


def new_session(store, deck_id=1, cache=None, tick=0.01):
    coordinator = SyncCoordinator(store, cache or InMemoryFallbackCache())
    return QuizSession(
        "u1", deck_id, store, coordinator,
        tick_interval=tick, rng=random.Random(0),
    )


async def answer_all(session, answer_for=lambda q: q.expected_answer):
    """Answer every question and advance until the session completes."""
    outcome = None
    while session.state is SessionState.IN_PROGRESS:
        session.record_answer(answer_for(session.current_question))
        outcome = await session.next()
    return outcome


class TestLoad:

    def test_load_starts_session(self, store):
        async def scenario():
            session = new_session(store)
            assert session.state is SessionState.LOADING
            await session.load()
            running = session.timer.running
            session.shutdown()
            return session, running

        session, running = asyncio.run(scenario())
        assert session.state is SessionState.IN_PROGRESS
        assert session.total_questions == 10
        assert session.deck_title == "Deck 1"
        assert session.current_question is not None
        assert running

    def test_small_deck_uses_every_card(self, store):
        async def scenario():
            session = new_session(store, deck_id=2)
            await session.load()
            session.shutdown()
            return session

        session = asyncio.run(scenario())
        assert session.total_questions == 3
        assert sorted(q.id for q in session.questions) == [1, 2, 3]

    def test_empty_deck_never_starts(self, store):
        async def scenario():
            session = new_session(store, deck_id=3)
            with pytest.raises(EmptyDeckError):
                await session.load()
            await asyncio.sleep(0.05)
            return session

        session = asyncio.run(scenario())
        assert session.state is SessionState.ERROR
        assert not session.timer.running
        assert session.time_spent_seconds == 0
        assert "no flashcards" in session.error

    def test_remote_failure_is_deck_load_error(self, store):
        store.failure = lambda method, kwargs: (
            ConnectionError("offline") if method == "get_flashcards" else None
        )

        async def scenario():
            session = new_session(store)
            with pytest.raises(DeckLoadError):
                await session.load()
            return session

        session = asyncio.run(scenario())
        assert session.state is SessionState.ERROR
        assert not session.timer.running


class TestNavigation:

    def test_answers_survive_navigation(self, store):
        async def scenario():
            session = new_session(store)
            await session.load()
            first = session.current_question.id
            session.record_answer("one")
            await session.next()
            session.record_answer("two")
            session.previous()
            seen = (session.current_question.id, session.current_answer)
            session.shutdown()
            return first, seen

        first, seen = asyncio.run(scenario())
        assert seen == (first, "one")

    def test_previous_on_first_question_stays(self, store):
        async def scenario():
            session = new_session(store)
            await session.load()
            session.previous()
            index = session.index
            session.shutdown()
            return index

        assert asyncio.run(scenario()) == 0

    def test_last_write_wins_and_empty_clears(self, store):
        async def scenario():
            session = new_session(store)
            await session.load()
            qid = session.current_question.id
            session.record_answer("first")
            session.record_answer("second")
            after_overwrite = session.answers[qid]
            session.record_answer("")
            cleared = qid not in session.answers
            session.shutdown()
            return after_overwrite, cleared

        assert asyncio.run(scenario()) == ("second", True)


class TestCompletion:

    def test_perfect_run(self, store):
        cache = InMemoryFallbackCache()

        async def scenario():
            session = new_session(store, deck_id=2, cache=cache)
            await session.load()
            outcome = await answer_all(session)
            return session, outcome

        session, outcome = asyncio.run(scenario())
        assert session.state is SessionState.COMPLETE
        assert session.tally_progress == 100
        assert outcome.result.score == 100
        assert outcome.result.deck_title == "Deck 2"
        assert outcome.sync.fully_synced
        assert store.calls["complete_quiz"] == [{"user_id": "u1", "deck_id": 2, "score": 100}]
        assert len(store.calls["create_progress"]) == 3
        assert {a.title for a in outcome.achievements} >= {"Quiz Taker", "Perfect Score"}
        # Mutable state is gone once the result is frozen
        assert session.questions == []
        assert session.answers == {}
        assert session.result is outcome.result

    def test_unanswered_questions_count_as_incorrect(self, store):
        async def scenario():
            session = new_session(store)
            await session.load()
            for _ in range(session.total_questions):
                outcome = await session.next()
            return outcome

        outcome = asyncio.run(scenario())
        assert outcome.result.score == 0
        assert outcome.result.incorrect_count == 10
        # Progress only for answered questions, reviews for every miss
        assert store.calls["create_progress"] == []
        assert len(store.calls["create_review"]) == 10

    def test_timer_freezes_on_completion(self, store):
        async def scenario():
            session = new_session(store, deck_id=2, tick=0.01)
            await session.load()
            await asyncio.sleep(0.1)
            await answer_all(session)
            frozen = session.time_spent_seconds
            await asyncio.sleep(0.05)
            return session, frozen

        session, frozen = asyncio.run(scenario())
        assert frozen > 0
        assert session.time_spent_seconds == frozen
        assert session.result.time_spent_seconds == frozen
        assert not session.timer.running

    def test_completion_survives_total_sync_failure(self, store):
        cache = InMemoryFallbackCache()

        async def scenario():
            session = new_session(store, deck_id=2, cache=cache)
            await session.load()
            store.failure = lambda method, kwargs: ConnectionError("offline")
            outcome = await answer_all(session)
            summaries = await cache.entries("u1", CacheKind.QUIZ_SUMMARY)
            return session, outcome, summaries

        session, outcome, summaries = asyncio.run(scenario())
        assert session.state is SessionState.COMPLETE
        assert outcome.result.score == 100
        assert not outcome.sync.fully_synced
        assert len(summaries) == 1


class TestTransitions:

    def test_abandon_writes_nothing(self, store):
        cache = InMemoryFallbackCache()

        async def scenario():
            session = new_session(store, cache=cache)
            await session.load()
            session.record_answer("something")
            session.abandon()
            return session, await cache.entries("u1", CacheKind.QUIZ_SUMMARY)

        session, summaries = asyncio.run(scenario())
        assert session.state is SessionState.ABANDONED
        assert not session.timer.running
        assert session.result is None
        assert summaries == []
        assert store.calls["complete_quiz"] == []

    def test_no_answers_before_load(self, store):
        session = new_session(store)
        with pytest.raises(InvalidTransitionError):
            session.record_answer("early")

    def test_no_answers_after_completion(self, store):
        async def scenario():
            session = new_session(store, deck_id=2)
            await session.load()
            await answer_all(session)
            return session

        session = asyncio.run(scenario())
        with pytest.raises(InvalidTransitionError):
            session.record_answer("late")
        with pytest.raises(InvalidTransitionError):
            session.abandon()
        with pytest.raises(InvalidTransitionError):
            asyncio.run(session.next())

    def test_load_only_once(self, store):
        async def scenario():
            session = new_session(store, deck_id=2)
            await session.load()
            try:
                with pytest.raises(InvalidTransitionError):
                    await session.load()
            finally:
                session.shutdown()

        asyncio.run(scenario())
