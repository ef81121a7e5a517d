"""Question generation: sample a deck's flashcards into a quiz."""

from __future__ import annotations

import random
from typing import Optional, Sequence

from .errors import EmptyDeckError
from .types import Flashcard, IdentificationQuestion

DEFAULT_QUESTION_COUNT = 10


def question_count_for(deck_size: int, max_questions: int = DEFAULT_QUESTION_COUNT) -> int:
    return min(max_questions, deck_size)


def generate_questions(
    flashcards: Sequence[Flashcard],
    max_questions: int = DEFAULT_QUESTION_COUNT,
    rng: Optional[random.Random] = None,
    deck_id: Optional[int] = None,
) -> list[IdentificationQuestion]:
    """Shuffle the deck and turn the first min(max_questions, N) cards into questions.

    Only identification questions are produced: the term is the prompt and
    the definition is the expected answer.

    Raises:
        EmptyDeckError: if the deck has no flashcards.
    """
    if not flashcards:
        raise EmptyDeckError(deck_id)

    rng = rng or random
    count = question_count_for(len(flashcards), max_questions)
    selected = rng.sample(list(flashcards), count)

    return [
        IdentificationQuestion(
            id=card.id,
            prompt_text=card.term,
            expected_answer=card.definition,
        )
        for card in selected
    ]
