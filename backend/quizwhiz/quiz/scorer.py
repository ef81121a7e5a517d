"""Scoring of a finished quiz.

Pure functions only: no I/O, no clock reads other than the completion
timestamp passed in by the caller.
"""

from datetime import datetime
from typing import Optional, Sequence

from .errors import ScoringError
from .types import (
    AnswerRecord,
    IdentificationQuestion,
    MultipleChoiceQuestion,
    ProgressEntry,
    Question,
    QuestionResult,
    ReviewEntry,
    ScoreComparison,
    SessionResult,
    TrueFalseQuestion,
)

# Correctly answered questions also logged as reviews, per session
CORRECT_REVIEW_SAMPLE = 2


def normalize_answer(text: str) -> str:
    return text.strip().lower()


def is_correct(question: Question, submitted: Optional[str]) -> bool:
    """Grade one answer with trimmed, case-insensitive equality.

    Unanswered (None or empty) is always incorrect. Every question variant
    uses the same rule.
    """
    if not submitted:
        return False

    if isinstance(question, (IdentificationQuestion, TrueFalseQuestion, MultipleChoiceQuestion)):
        return normalize_answer(submitted) == normalize_answer(question.expected_answer)

    raise ScoringError(f"Cannot grade question of type {type(question).__name__}")


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounding halves up, like Math.round on the client."""
    return (2 * numerator + denominator) // (2 * denominator)


def percentage(correct_count: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(100 * correct_count, total)


def score_session(
    questions: Sequence[Question],
    answers: AnswerRecord,
    *,
    deck_id: int,
    user_id: str,
    time_spent_seconds: int,
    completed_at: datetime,
    deck_title: str = "",
) -> SessionResult:
    """Build the frozen SessionResult for a session."""
    results = []
    for question in questions:
        submitted = answers.get(question.id) or ""
        results.append(
            QuestionResult(
                flashcard_id=question.id,
                prompt_text=question.prompt_text,
                expected_answer=question.expected_answer,
                submitted_answer=submitted,
                kind=question.kind,
                answered=bool(submitted),
                correct=is_correct(question, submitted),
            )
        )

    total = len(results)
    correct_count = sum(1 for r in results if r.correct)

    return SessionResult(
        deck_id=deck_id,
        deck_title=deck_title,
        user_id=user_id,
        total_questions=total,
        correct_count=correct_count,
        incorrect_count=total - correct_count,
        score=percentage(correct_count, total),
        time_spent_seconds=time_spent_seconds,
        completed_at=completed_at,
        questions=tuple(results),
    )


def progress_entries(result: SessionResult) -> list[ProgressEntry]:
    """One entry per answered question; time is the per-question average."""
    if not result.total_questions:
        return []
    per_question = round_half_up(result.time_spent_seconds, result.total_questions)

    entries = []
    for q in result.questions:
        if not q.answered:
            continue
        score = 100 if q.correct else 0
        entries.append(
            ProgressEntry(
                flashcard_id=q.flashcard_id,
                score=score,
                time_spent_seconds=per_question,
                score_comparison=ScoreComparison.from_score(score),
            )
        )
    return entries


def review_entries(result: SessionResult) -> list[ReviewEntry]:
    """Every missed question, plus the first CORRECT_REVIEW_SAMPLE correct ones."""
    missed = [
        ReviewEntry(
            flashcard_id=q.flashcard_id,
            question_text=q.prompt_text,
            correct_answer=q.expected_answer,
            incorrect_answer=q.submitted_answer,
        )
        for q in result.questions
        if not q.correct
    ]
    sampled = [
        ReviewEntry(
            flashcard_id=q.flashcard_id,
            question_text=q.prompt_text,
            correct_answer=q.expected_answer,
            incorrect_answer=None,
        )
        for q in result.questions
        if q.correct
    ][:CORRECT_REVIEW_SAMPLE]
    return missed + sampled
