"""In-process registry of quiz sessions, keyed by session id."""

from __future__ import annotations

import logging
from collections import OrderedDict
from functools import lru_cache

from quizwhiz.config import get_settings
from quizwhiz.services.quiz_session import QuizSession, SessionState

logger = logging.getLogger(__name__)

FINISHED_STATES = {SessionState.COMPLETE, SessionState.ERROR, SessionState.ABANDONED}


class SessionRegistry:
    """Holds live sessions and a bounded number of finished ones for result lookup."""

    def __init__(self, max_finished: int = 100):
        self.max_finished = max_finished
        self._sessions: OrderedDict[str, QuizSession] = OrderedDict()

    def add(self, session: QuizSession) -> QuizSession:
        self._sessions[session.id] = session
        self.prune()
        return session

    def get(self, session_id: str) -> QuizSession:
        """Raises KeyError for unknown or evicted sessions."""
        return self._sessions[session_id]

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def prune(self) -> None:
        """Evict the oldest finished sessions beyond max_finished."""
        finished = [sid for sid, s in self._sessions.items() if s.state in FINISHED_STATES]
        for sid in finished[: max(len(finished) - self.max_finished, 0)]:
            del self._sessions[sid]

    def shutdown(self) -> None:
        """Cancel every running timer."""
        for session in self._sessions.values():
            session.shutdown()
        logger.info("Stopped %d quiz session timers", len(self._sessions))

    def __len__(self) -> int:
        return len(self._sessions)


@lru_cache
def get_session_registry() -> SessionRegistry:
    return SessionRegistry(max_finished=get_settings().MAX_RETAINED_RESULTS)
