"""Quiz session state machine.

LOADING -> IN_PROGRESS -> TALLYING -> COMPLETE, with ERROR reachable from
the first three and ABANDONED when the user exits mid-quiz. The timer runs
only while IN_PROGRESS. Once the SessionResult exists, the mutable state
(questions, answers, position) is discarded.
"""

from __future__ import annotations

import logging
import random
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from quizwhiz.quiz import (
    AchievementUnlockRequest,
    AnswerRecord,
    DeckLoadError,
    InvalidTransitionError,
    Question,
    QuizError,
    SessionResult,
    SessionTimer,
    achievements_for,
    generate_questions,
    score_session,
)
from quizwhiz.services.remote_store import RemoteRecordStore
from quizwhiz.services.sync_coordinator import SyncCoordinator, SyncReport

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    TALLYING = "tallying"
    COMPLETE = "complete"
    ERROR = "error"
    ABANDONED = "abandoned"


# Tally progress milestones (cosmetic, 0-100)
TALLY_STARTED = 10
TALLY_SCORED = 30
TALLY_SAVING = 50
TALLY_DONE = 100


class QuizOutcome(BaseModel):
    """What the results view needs once a session completes."""
    result: SessionResult
    achievements: list[AchievementUnlockRequest]
    sync: SyncReport


class QuizSession:
    """One quiz attempt. A new attempt always uses a new instance."""

    def __init__(
        self,
        user_id: str,
        deck_id: int,
        store: RemoteRecordStore,
        coordinator: SyncCoordinator,
        max_questions: int = 10,
        tick_interval: float = 1.0,
        rng: Optional[random.Random] = None,
        session_id: Optional[str] = None,
    ):
        self.id = session_id or str(uuid.uuid4())
        self.user_id = user_id
        self.deck_id = deck_id
        self.store = store
        self.coordinator = coordinator
        self.max_questions = max_questions
        self.rng = rng

        self.state = SessionState.LOADING
        self.deck_title = ""
        self.questions: list[Question] = []
        self.answers: AnswerRecord = {}
        self.index = 0
        self.timer = SessionTimer(tick_interval)
        self.tally_progress = 0
        self.error: Optional[str] = None
        self.outcome: Optional[QuizOutcome] = None
        self._frozen_seconds: Optional[int] = None
        self._total = 0
        self._result: Optional[SessionResult] = None

    # -- queries ---------------------------------------------------------

    @property
    def total_questions(self) -> int:
        return self._total

    @property
    def current_question(self) -> Optional[Question]:
        if self.state is not SessionState.IN_PROGRESS:
            return None
        return self.questions[self.index]

    @property
    def current_answer(self) -> str:
        question = self.current_question
        return self.answers.get(question.id, "") if question else ""

    @property
    def time_spent_seconds(self) -> int:
        if self._frozen_seconds is not None:
            return self._frozen_seconds
        return self.timer.seconds

    @property
    def result(self) -> Optional[SessionResult]:
        return self._result

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidTransitionError(
                f"Session {self.id} is {self.state.value}; expected {allowed}"
            )

    # -- transitions -----------------------------------------------------

    async def load(self) -> None:
        """Fetch the deck, generate questions and start the timer.

        Raises EmptyDeckError or DeckLoadError (session moves to ERROR);
        the timer is never started in that case.
        """
        self._require(SessionState.LOADING)
        try:
            deck = await self.store.get_deck(self.deck_id)
            flashcards = await self.store.get_flashcards(self.deck_id)
            questions = generate_questions(
                flashcards,
                max_questions=self.max_questions,
                rng=self.rng,
                deck_id=self.deck_id,
            )
        except QuizError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            self._fail(exc)
            raise DeckLoadError(f"Failed to load quiz: {exc}") from exc

        self.deck_title = deck.title
        self.questions = questions
        self._total = len(questions)
        self.state = SessionState.IN_PROGRESS
        self.timer.start()
        logger.info(
            "Session %s started: user %s, deck %s, %d questions",
            self.id, self.user_id, self.deck_id, len(questions),
        )

    def record_answer(self, text: str) -> None:
        """Record or overwrite the answer to the current question.

        An empty string clears the answer, leaving the question unanswered.
        """
        self._require(SessionState.IN_PROGRESS)
        question_id = self.questions[self.index].id
        if text:
            self.answers[question_id] = text
        else:
            self.answers.pop(question_id, None)

    def previous(self) -> None:
        self._require(SessionState.IN_PROGRESS)
        if self.index > 0:
            self.index -= 1

    async def next(self) -> Optional[QuizOutcome]:
        """Advance; moving past the last question completes the session."""
        self._require(SessionState.IN_PROGRESS)
        if self.index < len(self.questions) - 1:
            self.index += 1
            return None
        return await self._complete()

    def abandon(self) -> None:
        """User exit: stop the timer and drop everything without writing."""
        self._require(SessionState.LOADING, SessionState.IN_PROGRESS)
        self.timer.stop()
        self._discard()
        self.state = SessionState.ABANDONED
        logger.info("Session %s abandoned", self.id)

    def shutdown(self) -> None:
        """Stop the timer without changing state; used when the process exits."""
        self.timer.stop()

    async def _complete(self) -> QuizOutcome:
        self._frozen_seconds = self.timer.stop()
        self.state = SessionState.TALLYING
        self._advance_tally(TALLY_STARTED)

        try:
            result = score_session(
                self.questions,
                self.answers,
                deck_id=self.deck_id,
                deck_title=self.deck_title,
                user_id=self.user_id,
                time_spent_seconds=self._frozen_seconds,
                completed_at=datetime.now(timezone.utc),
            )
            achievements = achievements_for(result)
        except QuizError as exc:
            self._fail(exc)
            raise
        self._result = result
        self._discard()
        self._advance_tally(TALLY_SCORED)

        self._advance_tally(TALLY_SAVING)
        report = await self.coordinator.sync(
            result, achievements, on_progress=self._on_sync_progress
        )

        self.outcome = QuizOutcome(result=result, achievements=achievements, sync=report)
        self._advance_tally(TALLY_DONE)
        self.state = SessionState.COMPLETE
        logger.info(
            "Session %s complete: %d/%d correct, score %d, %ds",
            self.id, result.correct_count, result.total_questions,
            result.score, result.time_spent_seconds,
        )
        return self.outcome

    # -- helpers ---------------------------------------------------------

    def _on_sync_progress(self, settled: int, total: int) -> None:
        span = TALLY_DONE - TALLY_SAVING - 5
        self._advance_tally(TALLY_SAVING + span * settled // max(total, 1))

    def _advance_tally(self, value: int) -> None:
        self.tally_progress = max(self.tally_progress, min(value, TALLY_DONE))

    def _discard(self) -> None:
        self.questions = []
        self.answers = {}
        self.index = 0

    def _fail(self, exc: BaseException) -> None:
        self.timer.stop()
        self.state = SessionState.ERROR
        self.error = str(exc)
        logger.warning("Session %s failed: %s", self.id, exc)
