"""Exception hierarchy for the quiz session engine.

Session-level errors (empty deck, failed deck load, invalid transitions,
scoring) are fatal to the current session and reach the user. Remote and
cache write errors are recovered inside the sync coordinator.
"""

from typing import Optional


class QuizError(Exception):
    """Base class for all quiz engine errors."""


class EmptyDeckError(QuizError):
    """The deck has no flashcards to build a quiz from."""

    def __init__(self, deck_id: Optional[int] = None):
        self.deck_id = deck_id
        super().__init__(
            "This deck has no flashcards. Please add some before taking a quiz."
        )


class DeckLoadError(QuizError):
    """Deck or flashcards could not be read from the remote store."""


class InvalidTransitionError(QuizError):
    """Operation is not allowed in the session's current state."""


class ScoringError(QuizError):
    """A question could not be graded."""


class RemoteStoreError(QuizError):
    """A call to the remote record store failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class TransientWriteError(RemoteStoreError):
    """Network-class or server-side failure; worth one retry."""


class PermanentWriteError(RemoteStoreError):
    """Client-side rejection; retrying will not help."""


class CacheWriteError(QuizError):
    """The local fallback cache could not persist an entry."""
