"""Shared fixtures: a scripted fake record store and small deck builders."""
import os
import tempfile
from collections import defaultdict
from datetime import datetime
from typing import Callable, Optional

_tmp = tempfile.mkdtemp(prefix="quizwhiz-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_tmp}/quizwhiz.db")
os.environ.setdefault("LOG_DIR", os.path.join(_tmp, "log"))
os.environ.setdefault("WRITE_RETRY_DELAY_SECONDS", "0")
os.environ.setdefault("QUIZ_TICK_SECONDS", "0.01")

import pytest

from quizwhiz.quiz import (
    Deck,
    Flashcard,
    IdentificationQuestion,
    score_session,
)

# method name, call kwargs -> exception to raise, or None to succeed
FailureRule = Callable[[str, dict], Optional[Exception]]


class FakeRemoteStore:
    """In-memory RemoteRecordStore that records calls and fails on demand."""

    def __init__(self, flashcards_by_deck: Optional[dict[int, list[Flashcard]]] = None):
        self.flashcards_by_deck = flashcards_by_deck or {}
        self.failure: Optional[FailureRule] = None
        self.attempts: dict[str, list[dict]] = defaultdict(list)
        self.calls: dict[str, list[dict]] = defaultdict(list)

    def _handle(self, method: str, **kwargs) -> None:
        self.attempts[method].append(kwargs)
        if self.failure is not None:
            error = self.failure(method, kwargs)
            if error is not None:
                raise error
        self.calls[method].append(kwargs)

    async def get_deck(self, deck_id: int) -> Deck:
        self._handle("get_deck", deck_id=deck_id)
        return Deck(id=deck_id, title=f"Deck {deck_id}")

    async def get_flashcards(self, deck_id: int) -> list[Flashcard]:
        self._handle("get_flashcards", deck_id=deck_id)
        return list(self.flashcards_by_deck.get(deck_id, []))

    async def complete_quiz(self, user_id: str, deck_id: int, score: int) -> None:
        self._handle("complete_quiz", user_id=user_id, deck_id=deck_id, score=score)

    async def create_progress(self, entry) -> None:
        self._handle("create_progress", entry=entry)

    async def create_review(self, entry) -> None:
        self._handle("create_review", entry=entry)

    async def unlock_achievement(self, user_id: str, title: str, description: str) -> None:
        self._handle("unlock_achievement", user_id=user_id, title=title, description=description)

    async def track_study_time(self, user_id: str, minutes: int) -> None:
        self._handle("track_study_time", user_id=user_id, minutes=minutes)


def make_flashcards(n: int, deck_id: int = 1) -> list[Flashcard]:
    return [
        Flashcard(id=i, deck_id=deck_id, term=f"term {i}", definition=f"definition {i}")
        for i in range(1, n + 1)
    ]


def make_questions(n: int) -> list[IdentificationQuestion]:
    return [
        IdentificationQuestion(id=i, prompt_text=f"term {i}", expected_answer=f"definition {i}")
        for i in range(1, n + 1)
    ]


def make_result(n: int, correct: int, answered: Optional[int] = None, seconds: int = 60, user_id: str = "u1"):
    """SessionResult for n questions: the first `correct` right, then wrong ones up to `answered`."""
    answered = n if answered is None else answered
    questions = make_questions(n)
    answers = {}
    for i, q in enumerate(questions[:answered]):
        answers[q.id] = q.expected_answer if i < correct else "wrong"
    return score_session(
        questions,
        answers,
        deck_id=1,
        deck_title="Capitals",
        user_id=user_id,
        time_spent_seconds=seconds,
        completed_at=datetime(2024, 1, 1, 12, 0, 0),
    )


@pytest.fixture
def store():
    return FakeRemoteStore({1: make_flashcards(12), 2: make_flashcards(3, deck_id=2), 3: []})
