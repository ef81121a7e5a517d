"""
Quiz router - API layer for quiz sessions.

Delegates all logic to the session state machine and sync coordinator.
"""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from quizwhiz.config import get_settings
from quizwhiz.quiz import (
    DeckLoadError,
    EmptyDeckError,
    InvalidTransitionError,
    QuestionKind,
    QuizError,
    SessionResult,
)
from quizwhiz.services.fallback_cache import FallbackCache, get_fallback_cache
from quizwhiz.services.quiz_session import QuizOutcome, QuizSession, SessionState
from quizwhiz.services.remote_store import RemoteRecordStore, get_remote_store
from quizwhiz.services.session_registry import SessionRegistry, get_session_registry
from quizwhiz.services.sync_coordinator import SyncCoordinator

router = APIRouter()


# Request/Response schemas
class StartQuizRequest(BaseModel):
    user_id: str
    deck_id: int


class AnswerRequest(BaseModel):
    answer: str


class QuestionView(BaseModel):
    """The current question, without its expected answer."""
    id: int
    prompt_text: str
    kind: QuestionKind
    options: Optional[list[str]] = None


class SessionView(BaseModel):
    session_id: str
    state: SessionState
    deck_id: int
    deck_title: str
    index: int
    total_questions: int
    answered_count: int
    time_spent_seconds: int
    tally_progress: int
    question: Optional[QuestionView] = None
    current_answer: str = ""
    error: Optional[str] = None


class NextResponse(BaseModel):
    session: SessionView
    outcome: Optional[QuizOutcome] = None


def get_sync_coordinator(
    store: Annotated[RemoteRecordStore, Depends(get_remote_store)],
    cache: Annotated[FallbackCache, Depends(get_fallback_cache)],
) -> SyncCoordinator:
    return SyncCoordinator(
        store,
        cache,
        retry_delay=get_settings().WRITE_RETRY_DELAY_SECONDS,
    )


def session_view(session: QuizSession) -> SessionView:
    question = session.current_question
    question_view = None
    if question is not None:
        options = getattr(question, "options", None)
        question_view = QuestionView(
            id=question.id,
            prompt_text=question.prompt_text,
            kind=question.kind,
            options=list(options) if options else None,
        )

    return SessionView(
        session_id=session.id,
        state=session.state,
        deck_id=session.deck_id,
        deck_title=session.deck_title,
        index=session.index,
        total_questions=session.total_questions,
        answered_count=len(session.answers),
        time_spent_seconds=session.time_spent_seconds,
        tally_progress=session.tally_progress,
        question=question_view,
        current_answer=session.current_answer,
        error=session.error,
    )


def find_session(registry: SessionRegistry, session_id: str) -> QuizSession:
    try:
        return registry.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Quiz session not found: {session_id}")


@router.post("/quiz/sessions", response_model=SessionView, status_code=status.HTTP_201_CREATED)
async def start_quiz(
    request: StartQuizRequest,
    store: Annotated[RemoteRecordStore, Depends(get_remote_store)],
    coordinator: Annotated[SyncCoordinator, Depends(get_sync_coordinator)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
):
    """Load the deck, generate questions and start the quiz timer."""
    settings = get_settings()
    session = QuizSession(
        user_id=request.user_id,
        deck_id=request.deck_id,
        store=store,
        coordinator=coordinator,
        max_questions=settings.QUIZ_MAX_QUESTIONS,
        tick_interval=settings.QUIZ_TICK_SECONDS,
    )
    try:
        await session.load()
    except EmptyDeckError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except DeckLoadError as e:
        raise HTTPException(status_code=502, detail=str(e))

    registry.add(session)
    return session_view(session)


@router.get("/quiz/sessions/{session_id}", response_model=SessionView)
async def get_quiz_session(
    session_id: str,
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
):
    return session_view(find_session(registry, session_id))


@router.put("/quiz/sessions/{session_id}/answer", response_model=SessionView)
async def answer_question(
    session_id: str,
    request: AnswerRequest,
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
):
    """Record (or overwrite) the answer to the current question."""
    session = find_session(registry, session_id)
    try:
        session.record_answer(request.answer)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session_view(session)


@router.post("/quiz/sessions/{session_id}/next", response_model=NextResponse)
async def next_question(
    session_id: str,
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
):
    """
    Move to the next question.

    On the last question this finishes the quiz: the answers are scored,
    achievements evaluated and every write settled before responding.
    """
    session = find_session(registry, session_id)
    try:
        outcome = await session.next()
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except QuizError as e:
        # Scoring failed; the session is now in the error state
        raise HTTPException(status_code=500, detail=str(e))
    if outcome is not None:
        registry.prune()
    return NextResponse(session=session_view(session), outcome=outcome)


@router.post("/quiz/sessions/{session_id}/previous", response_model=SessionView)
async def previous_question(
    session_id: str,
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
):
    session = find_session(registry, session_id)
    try:
        session.previous()
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session_view(session)


@router.delete("/quiz/sessions/{session_id}", response_model=SessionView)
async def abandon_quiz(
    session_id: str,
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
):
    """Exit the quiz without saving anything."""
    session = find_session(registry, session_id)
    try:
        session.abandon()
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    registry.discard(session_id)
    return session_view(session)


@router.get("/quiz/sessions/{session_id}/result", response_model=SessionResult)
async def get_quiz_result(
    session_id: str,
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
):
    session = find_session(registry, session_id)
    if session.result is None:
        raise HTTPException(
            status_code=409,
            detail=f"Quiz session {session_id} has no result yet ({session.state.value})",
        )
    return session.result
