"""Tests for answer grading and session scoring."""
import pytest

from quizwhiz.quiz import (
    IdentificationQuestion,
    MultipleChoiceQuestion,
    ScoreComparison,
    TrueFalseQuestion,
    is_correct,
    percentage,
    progress_entries,
    review_entries,
)
from conftest import make_result


def paris() -> IdentificationQuestion:
    return IdentificationQuestion(id=1, prompt_text="Capital of France", expected_answer="Paris")


class TestIsCorrect:
    """Tests for single-answer grading."""

    def test_case_and_whitespace_insensitive(self):
        assert is_correct(paris(), "paris ")
        assert is_correct(paris(), "  PARIS")

    def test_no_fuzzy_matching(self):
        assert not is_correct(paris(), "Pariss")
        assert not is_correct(paris(), "Par is")

    def test_unanswered_is_incorrect(self):
        assert not is_correct(paris(), None)
        assert not is_correct(paris(), "")

    def test_choice_questions_use_same_rule(self):
        tf = TrueFalseQuestion(id=2, prompt_text="Paris is in France", expected_answer="true")
        mc = MultipleChoiceQuestion(
            id=3, prompt_text="Capital of Peru", expected_answer="Lima", options=("Lima", "Quito")
        )
        assert is_correct(tf, "true")
        assert is_correct(tf, " True")
        assert not is_correct(tf, "false")
        assert is_correct(mc, "Lima")
        assert is_correct(mc, "lima ")
        assert not is_correct(mc, "Quito")


class TestPercentage:
    """Tests for the aggregate score."""

    @pytest.mark.parametrize("correct,total,expected", [
        (7, 10, 70),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),  # 12.5 rounds up
        (0, 5, 0),
        (5, 5, 100),
    ])
    def test_rounding(self, correct, total, expected):
        assert percentage(correct, total) == expected

    def test_zero_questions(self):
        assert percentage(0, 0) == 0


class TestScoreComparison:
    def test_buckets(self):
        assert ScoreComparison.from_score(92) == ScoreComparison.EXCELLENT
        assert ScoreComparison.from_score(90) == ScoreComparison.EXCELLENT
        assert ScoreComparison.from_score(75) == ScoreComparison.GOOD
        assert ScoreComparison.from_score(60) == ScoreComparison.FAIR
        assert ScoreComparison.from_score(59) == ScoreComparison.NEEDS_IMPROVEMENT
        assert ScoreComparison.from_score(0) == ScoreComparison.NEEDS_IMPROVEMENT


class TestScoreSession:
    """Tests for the frozen SessionResult."""

    def test_counts_and_score(self):
        result = make_result(10, correct=7)
        assert result.total_questions == 10
        assert result.correct_count == 7
        assert result.incorrect_count == 3
        assert result.score == 70

    def test_unanswered_counts_as_incorrect(self):
        result = make_result(4, correct=2, answered=3)
        assert result.incorrect_count == 2
        unanswered = [q for q in result.questions if not q.answered]
        assert len(unanswered) == 1
        assert unanswered[0].submitted_answer == ""
        assert not unanswered[0].correct

    def test_result_is_frozen(self):
        result = make_result(3, correct=1)
        with pytest.raises(Exception):
            result.score = 100

    def test_study_minutes_round_up(self):
        assert make_result(3, correct=1, seconds=61).study_minutes == 2
        assert make_result(3, correct=1, seconds=60).study_minutes == 1
        assert make_result(3, correct=1, seconds=0).study_minutes == 0


class TestDerivedEntries:
    """Tests for progress and review derivation."""

    def test_progress_only_for_answered(self):
        result = make_result(5, correct=2, answered=4, seconds=50)
        entries = progress_entries(result)
        assert len(entries) == 4
        assert [e.score for e in entries] == [100, 100, 0, 0]
        assert entries[0].score_comparison == ScoreComparison.EXCELLENT
        assert entries[-1].score_comparison == ScoreComparison.NEEDS_IMPROVEMENT
        # 50 seconds over 5 questions
        assert all(e.time_spent_seconds == 10 for e in entries)

    def test_reviews_cover_misses_and_two_correct(self):
        result = make_result(6, correct=4, answered=5)
        reviews = review_entries(result)
        missed = [r for r in reviews if r.incorrect_answer is not None]
        sampled = [r for r in reviews if r.incorrect_answer is None]
        assert len(missed) == 2  # one wrong, one unanswered
        assert {r.incorrect_answer for r in missed} == {"wrong", ""}
        assert [r.flashcard_id for r in sampled] == [1, 2]

    def test_reviews_with_fewer_than_two_correct(self):
        reviews = review_entries(make_result(3, correct=1))
        assert len(reviews) == 3
        assert sum(1 for r in reviews if r.incorrect_answer is None) == 1
