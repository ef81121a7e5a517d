"""Pydantic models for the quiz engine.

These models define the interface between the session state machine, the
scorer, the achievement rules and the sync coordinator. Everything derived
at session completion is frozen.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Deck(BaseModel):
    id: int
    title: str
    category: Optional[str] = None


class Flashcard(BaseModel):
    id: int
    deck_id: Optional[int] = None
    term: str
    definition: str
    learned: bool = False


class QuestionKind(str, Enum):
    IDENTIFICATION = "identification"
    TRUE_FALSE = "true-false"
    MULTIPLE_CHOICE = "multiple-choice"


class IdentificationQuestion(BaseModel):
    """Free-text recall: type the definition for a term."""
    model_config = ConfigDict(frozen=True)

    kind: Literal[QuestionKind.IDENTIFICATION] = QuestionKind.IDENTIFICATION
    id: int  # flashcard id
    prompt_text: str
    expected_answer: str


class TrueFalseQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[QuestionKind.TRUE_FALSE] = QuestionKind.TRUE_FALSE
    id: int
    prompt_text: str
    expected_answer: Literal["true", "false"]


class MultipleChoiceQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[QuestionKind.MULTIPLE_CHOICE] = QuestionKind.MULTIPLE_CHOICE
    id: int
    prompt_text: str
    expected_answer: str
    options: tuple[str, ...]


Question = Annotated[
    Union[IdentificationQuestion, TrueFalseQuestion, MultipleChoiceQuestion],
    Field(discriminator="kind"),
]

# question id -> submitted text; only answered questions have an entry
AnswerRecord = dict[int, str]


class ScoreComparison(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    FAIR = "FAIR"
    NEEDS_IMPROVEMENT = "NEEDS_IMPROVEMENT"

    @classmethod
    def from_score(cls, score: int) -> "ScoreComparison":
        if score >= 90:
            return cls.EXCELLENT
        if score >= 75:
            return cls.GOOD
        if score >= 60:
            return cls.FAIR
        return cls.NEEDS_IMPROVEMENT


class QuestionResult(BaseModel):
    """Outcome of one question, as shown on the results view."""
    model_config = ConfigDict(frozen=True)

    flashcard_id: int
    prompt_text: str
    expected_answer: str
    submitted_answer: str = ""  # empty when unanswered
    kind: QuestionKind
    answered: bool
    correct: bool


class SessionResult(BaseModel):
    """Finalized quiz attempt.

    Created once when the session enters tallying. All downstream writes
    are derived from this object, never from live session state.
    """
    model_config = ConfigDict(frozen=True)

    deck_id: int
    deck_title: str = ""
    user_id: str
    total_questions: int
    correct_count: int
    incorrect_count: int
    score: int  # 0-100
    time_spent_seconds: int
    completed_at: datetime
    questions: tuple[QuestionResult, ...]

    @property
    def study_minutes(self) -> int:
        """Study time rounded up to whole minutes."""
        return -(-self.time_spent_seconds // 60)


class ProgressEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    flashcard_id: int
    score: Literal[0, 100]
    time_spent_seconds: int
    score_comparison: ScoreComparison


class ReviewEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    flashcard_id: int
    question_text: str
    correct_answer: str
    incorrect_answer: Optional[str] = None  # None for sampled correct answers


class AchievementUnlockRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    title: str
    description: str
