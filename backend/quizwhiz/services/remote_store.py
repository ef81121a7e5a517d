"""Client for the remote record store.

The store is an external REST service. Calls are blocking `requests` calls
pushed onto a worker thread so the event loop never waits on the network.
HTTP failures are classified into transient (retry once) and permanent
(give up) write errors; the sync coordinator owns the retry policy.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from functools import lru_cache
from typing import Any, Optional, Protocol
from urllib.parse import urljoin

import requests

from quizwhiz.config import get_settings
from quizwhiz.quiz import (
    Deck,
    DeckLoadError,
    Flashcard,
    PermanentWriteError,
    ProgressEntry,
    RemoteStoreError,
    ReviewEntry,
    TransientWriteError,
)

logger = logging.getLogger(__name__)

# 404 counts as transient: the endpoint may be mid-deploy
TRANSIENT_STATUS_CODES = {404, 408, 429}


class RemoteRecordStore(Protocol):
    """Operations the quiz engine consumes from the record store."""

    async def get_deck(self, deck_id: int) -> Deck:
        ...

    async def get_flashcards(self, deck_id: int) -> list[Flashcard]:
        ...

    async def complete_quiz(self, user_id: str, deck_id: int, score: int) -> None:
        ...

    async def create_progress(self, entry: ProgressEntry) -> None:
        ...

    async def create_review(self, entry: ReviewEntry) -> None:
        ...

    async def unlock_achievement(self, user_id: str, title: str, description: str) -> None:
        ...

    async def track_study_time(self, user_id: str, minutes: int) -> None:
        ...


def classify_status(status_code: int, url: str) -> Optional[RemoteStoreError]:
    """Map an HTTP status to a write error, or None for success."""
    if status_code < 400:
        return None
    message = f"{status_code} from {url}"
    if status_code >= 500 or status_code in TRANSIENT_STATUS_CODES:
        return TransientWriteError(message, status_code=status_code)
    return PermanentWriteError(message, status_code=status_code)


class HttpRemoteRecordStore:
    """RemoteRecordStore over HTTP, matching the record store's REST routes."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        # An injected session is used by every worker thread; otherwise each
        # thread gets its own, as requests.Session is not thread-safe
        self._shared_session = session
        if session is not None:
            session.headers.update(self.headers)
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(self.headers)
            self._local.session = session
        return session

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url, path.lstrip("/"))
        try:
            response = self.session.request(
                method, url, params=params, json=json, timeout=self.timeout
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientWriteError(f"Network error calling {url}: {exc}") from exc
        except requests.RequestException as exc:
            raise PermanentWriteError(f"Request to {url} failed: {exc}") from exc

        error = classify_status(response.status_code, url)
        if error is not None:
            raise error

        logger.debug("%s %s -> %s", method, url, response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        return await asyncio.to_thread(self._request, method, path, **kwargs)

    async def _read(self, path: str) -> Any:
        """GET with one retry on transient failure. Errors become DeckLoadError."""
        try:
            try:
                return await self._call("GET", path)
            except TransientWriteError as exc:
                logger.info("Retrying read of %s after: %s", path, exc)
                return await self._call("GET", path)
        except RemoteStoreError as exc:
            raise DeckLoadError(f"Failed to load quiz: {exc}") from exc

    async def get_deck(self, deck_id: int) -> Deck:
        data = await self._read(f"decks/{deck_id}")
        return Deck(
            id=data["id"],
            title=data.get("subject") or "",
            category=data.get("category"),
        )

    async def get_flashcards(self, deck_id: int) -> list[Flashcard]:
        data = await self._read(f"flashcards/getByDeckId/{deck_id}")
        return [
            Flashcard(
                id=item["id"],
                deck_id=item.get("deckId"),
                term=item.get("question") or "",
                definition=item.get("answer") or "",
                learned=bool(item.get("learned", False)),
            )
            for item in data or []
        ]

    async def complete_quiz(self, user_id: str, deck_id: int, score: int) -> None:
        await self._call(
            "POST",
            "quiz/complete",
            params={"userId": user_id, "quizId": deck_id, "score": score},
        )

    async def create_progress(self, entry: ProgressEntry) -> None:
        await self._call(
            "POST",
            "progress/add",
            json={
                "flashCardId": entry.flashcard_id,
                "score": entry.score,
                "timeSpent": entry.time_spent_seconds,
                "scoreComparison": entry.score_comparison.value,
            },
        )

    async def create_review(self, entry: ReviewEntry) -> None:
        await self._call(
            "POST",
            "review/add",
            json={
                "flashCardId": entry.flashcard_id,
                "reviewCorrectAnswer": entry.correct_answer,
                "reviewIncorrectAnswer": entry.incorrect_answer,
            },
        )

    async def unlock_achievement(self, user_id: str, title: str, description: str) -> None:
        try:
            await self._call(
                "POST",
                "achievements/unlock",
                params={"userId": user_id, "title": title, "description": description},
            )
        except PermanentWriteError as exc:
            if exc.status_code != 409:
                raise
            logger.debug("Achievement %r already unlocked for user %s", title, user_id)

    async def track_study_time(self, user_id: str, minutes: int) -> None:
        await self._call(
            "POST",
            "progress/trackStudyTime",
            params={"userId": user_id, "minutesSpent": minutes},
        )


@lru_cache
def get_remote_store() -> HttpRemoteRecordStore:
    settings = get_settings()
    return HttpRemoteRecordStore(
        base_url=settings.REMOTE_API_URL,
        token=settings.REMOTE_API_TOKEN,
        timeout=settings.REMOTE_TIMEOUT_SECONDS,
    )
