"""Quiz engine core.

This module provides:
- Deck, Flashcard, Question variants, SessionResult and derived write models
- generate_questions: deck sampling
- score_session, progress_entries, review_entries: pure scoring
- evaluate_achievements: achievement rules
- SessionTimer: cancellable ticking task
- The quiz error hierarchy
"""

from .errors import (
    QuizError,
    EmptyDeckError,
    DeckLoadError,
    InvalidTransitionError,
    ScoringError,
    RemoteStoreError,
    TransientWriteError,
    PermanentWriteError,
    CacheWriteError,
)
from .types import (
    Deck,
    Flashcard,
    QuestionKind,
    IdentificationQuestion,
    TrueFalseQuestion,
    MultipleChoiceQuestion,
    Question,
    AnswerRecord,
    ScoreComparison,
    QuestionResult,
    SessionResult,
    ProgressEntry,
    ReviewEntry,
    AchievementUnlockRequest,
)
from .generator import generate_questions, question_count_for, DEFAULT_QUESTION_COUNT
from .scorer import (
    is_correct,
    percentage,
    score_session,
    progress_entries,
    review_entries,
    CORRECT_REVIEW_SAMPLE,
)
from .achievements import (
    AchievementRule,
    ACHIEVEMENT_RULES,
    evaluate_achievements,
    achievements_for,
)
from .timer import SessionTimer

__all__ = [
    # Errors
    "QuizError",
    "EmptyDeckError",
    "DeckLoadError",
    "InvalidTransitionError",
    "ScoringError",
    "RemoteStoreError",
    "TransientWriteError",
    "PermanentWriteError",
    "CacheWriteError",
    # Types
    "Deck",
    "Flashcard",
    "QuestionKind",
    "IdentificationQuestion",
    "TrueFalseQuestion",
    "MultipleChoiceQuestion",
    "Question",
    "AnswerRecord",
    "ScoreComparison",
    "QuestionResult",
    "SessionResult",
    "ProgressEntry",
    "ReviewEntry",
    "AchievementUnlockRequest",
    # Generation
    "generate_questions",
    "question_count_for",
    "DEFAULT_QUESTION_COUNT",
    # Scoring
    "is_correct",
    "percentage",
    "score_session",
    "progress_entries",
    "review_entries",
    "CORRECT_REVIEW_SAMPLE",
    # Achievements
    "AchievementRule",
    "ACHIEVEMENT_RULES",
    "evaluate_achievements",
    "achievements_for",
    # Timer
    "SessionTimer",
]
