"""Achievement rules evaluated against a finished session.

Rules are independent; a session can unlock several at once. "Quiz Taker"
is requested every time: the record store keys achievements by
(user, title), so repeated unlocks are no-ops there.
"""

from typing import Callable

from pydantic import BaseModel

from .types import AchievementUnlockRequest, SessionResult

SPEED_LEARNER_MAX_SECONDS = 120
SPEED_LEARNER_MIN_QUESTIONS = 5
HIGH_ACHIEVER_MIN_SCORE = 80


class AchievementRule(BaseModel):
    """A titled achievement and the condition that unlocks it."""
    title: str
    description: str
    # (result, time_spent_seconds, total_questions) -> unlocked
    condition: Callable[[SessionResult, int, int], bool]


ACHIEVEMENT_RULES: list[AchievementRule] = [
    AchievementRule(
        title="Quiz Taker",
        description="Completed your first quiz",
        condition=lambda result, seconds, total: True,
    ),
    AchievementRule(
        title="Perfect Score",
        description="Achieved a perfect score on a quiz",
        condition=lambda result, seconds, total: result.score == 100,
    ),
    AchievementRule(
        title="High Achiever",
        description="Scored 80% or higher on a quiz",
        condition=lambda result, seconds, total: result.score >= HIGH_ACHIEVER_MIN_SCORE,
    ),
    AchievementRule(
        title="Speed Learner",
        description="Completed a quiz in record time",
        condition=lambda result, seconds, total: (
            seconds < SPEED_LEARNER_MAX_SECONDS and total >= SPEED_LEARNER_MIN_QUESTIONS
        ),
    ),
]


def evaluate_achievements(
    result: SessionResult,
    time_spent_seconds: int,
    total_questions: int,
) -> list[AchievementUnlockRequest]:
    """Return an unlock request for every rule the session satisfies."""
    return [
        AchievementUnlockRequest(
            user_id=result.user_id,
            title=rule.title,
            description=rule.description,
        )
        for rule in ACHIEVEMENT_RULES
        if rule.condition(result, time_spent_seconds, total_questions)
    ]


def achievements_for(result: SessionResult) -> list[AchievementUnlockRequest]:
    return evaluate_achievements(result, result.time_spent_seconds, result.total_questions)
