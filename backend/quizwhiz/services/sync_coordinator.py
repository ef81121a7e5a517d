"""Sync coordinator - propagates a finished session to the record store.

Given a frozen SessionResult, every derived write (quiz completion, one
progress entry per answered question, reviews, achievement unlocks) is
dispatched concurrently. Each write is retried once on a transient failure
and otherwise lands in the local fallback cache; no write can cancel or
fail another. The coordinator returns only after every write has settled
and never raises.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from pydantic import BaseModel, computed_field

from quizwhiz.models.cache import CacheKind
from quizwhiz.quiz import (
    AchievementUnlockRequest,
    CacheWriteError,
    PermanentWriteError,
    SessionResult,
    TransientWriteError,
    progress_entries,
    review_entries,
)
from quizwhiz.services.fallback_cache import FallbackCache
from quizwhiz.services.remote_store import RemoteRecordStore

logger = logging.getLogger(__name__)

# settled writes, total writes
ProgressCallback = Callable[[int, int], None]


class WriteCategory(str, Enum):
    QUIZ = "quiz"
    PROGRESS = "progress"
    REVIEW = "review"
    ACHIEVEMENT = "achievement"
    STUDY_TIME = "study_time"
    SUMMARY = "summary"


class WriteStatus(str, Enum):
    SYNCED = "synced"  # accepted by the remote store
    CACHED = "cached"  # remote failed, captured in the fallback cache
    LOCAL = "local"  # local-only write stored in the cache
    DROPPED = "dropped"  # nowhere durable


@dataclass
class PendingWrite:
    """One write to settle: a remote operation and where to put it if that fails."""
    category: WriteCategory
    label: str
    user_id: str
    send: Optional[Callable[[], Awaitable[Any]]] = None
    cache_kind: Optional[CacheKind] = None
    cache_payload: Optional[dict] = None
    best_effort: bool = False  # no retry, no fallback, failure only logged

    @property
    def remote(self) -> bool:
        return self.send is not None


class WriteOutcome(BaseModel):
    category: WriteCategory
    label: str
    status: WriteStatus
    attempts: int = 0
    remote: bool = True
    best_effort: bool = False
    error: Optional[str] = None


class SyncReport(BaseModel):
    outcomes: list[WriteOutcome] = []

    @property
    def pending(self) -> list[WriteOutcome]:
        """Durable remote writes that did not reach the server."""
        return [
            o for o in self.outcomes
            if o.remote and not o.best_effort and o.status is not WriteStatus.SYNCED
        ]

    @computed_field
    @property
    def fully_synced(self) -> bool:
        return not self.pending

    def count(self, status: WriteStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)


class SyncCoordinator:
    """Settles all writes of a finished session, remote first, cache second."""

    def __init__(
        self,
        store: RemoteRecordStore,
        cache: FallbackCache,
        max_retries: int = 1,
        retry_delay: float = 0.0,
    ):
        self.store = store
        self.cache = cache
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def sync(
        self,
        result: SessionResult,
        achievements: Sequence[AchievementUnlockRequest] = (),
        on_progress: Optional[ProgressCallback] = None,
    ) -> SyncReport:
        writes = self.plan_writes(result, achievements)
        outcomes = await self.settle_all(writes, on_progress)
        report = SyncReport(outcomes=outcomes)

        if report.fully_synced:
            logger.info(
                "Quiz for deck %s (user %s) fully synced: %d writes",
                result.deck_id, result.user_id, len(outcomes),
            )
        else:
            logger.warning(
                "Quiz for deck %s (user %s) partially synced: %d cached, %d dropped",
                result.deck_id, result.user_id,
                report.count(WriteStatus.CACHED), report.count(WriteStatus.DROPPED),
            )
        return report

    def plan_writes(
        self,
        result: SessionResult,
        achievements: Sequence[AchievementUnlockRequest] = (),
    ) -> list[PendingWrite]:
        """Derive every write for a session from its frozen result."""
        store = self.store
        user_id = result.user_id
        writes: list[PendingWrite] = [
            PendingWrite(
                category=WriteCategory.QUIZ,
                label=f"quiz:{result.deck_id}",
                user_id=user_id,
                send=lambda: store.complete_quiz(user_id, result.deck_id, result.score),
                cache_kind=CacheKind.PENDING_QUIZ,
                cache_payload={
                    "user_id": user_id,
                    "deck_id": result.deck_id,
                    "score": result.score,
                },
            ),
        ]

        for entry in progress_entries(result):
            writes.append(PendingWrite(
                category=WriteCategory.PROGRESS,
                label=f"progress:{entry.flashcard_id}",
                user_id=user_id,
                send=lambda entry=entry: store.create_progress(entry),
                cache_kind=CacheKind.PROGRESS,
                cache_payload=entry.model_dump(mode="json"),
            ))

        for review in review_entries(result):
            payload = review.model_dump(mode="json")
            payload.update(deck_id=result.deck_id, deck_title=result.deck_title)
            writes.append(PendingWrite(
                category=WriteCategory.REVIEW,
                label=f"review:{review.flashcard_id}",
                user_id=user_id,
                send=lambda review=review: store.create_review(review),
                cache_kind=CacheKind.REVIEW,
                cache_payload=payload,
            ))

        for achievement in achievements:
            writes.append(PendingWrite(
                category=WriteCategory.ACHIEVEMENT,
                label=f"achievement:{achievement.title}",
                user_id=user_id,
                send=lambda a=achievement: store.unlock_achievement(
                    a.user_id, a.title, a.description
                ),
                cache_kind=CacheKind.ACHIEVEMENT,
                cache_payload={
                    "title": achievement.title,
                    "description": achievement.description,
                    "unlocked": True,
                },
            ))

        writes.append(PendingWrite(
            category=WriteCategory.STUDY_TIME,
            label=f"study_time:{result.study_minutes}",
            user_id=user_id,
            send=lambda: store.track_study_time(user_id, result.study_minutes),
            best_effort=True,
        ))

        # Always written locally, whatever happens remotely
        writes.append(PendingWrite(
            category=WriteCategory.SUMMARY,
            label=f"summary:{result.deck_id}",
            user_id=user_id,
            cache_kind=CacheKind.QUIZ_SUMMARY,
            cache_payload={
                "deck_id": result.deck_id,
                "deck_title": result.deck_title,
                "score": result.score,
                "correct_count": result.correct_count,
                "total_questions": result.total_questions,
                "time_spent_seconds": result.time_spent_seconds,
                "completed_at": result.completed_at.isoformat(),
            },
        ))
        return writes

    async def settle_all(
        self,
        writes: Sequence[PendingWrite],
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[WriteOutcome]:
        """Run every write concurrently and wait for all of them, whatever the outcome."""
        total = len(writes)
        settled = 0

        async def run(write: PendingWrite) -> WriteOutcome:
            nonlocal settled
            try:
                return await self._settle(write)
            finally:
                settled += 1
                if on_progress is not None:
                    on_progress(settled, total)

        results = await asyncio.gather(*(run(w) for w in writes), return_exceptions=True)

        outcomes = []
        for write, outcome in zip(writes, results):
            if isinstance(outcome, BaseException):
                logger.error("Write %s crashed: %r", write.label, outcome)
                outcome = WriteOutcome(
                    category=write.category,
                    label=write.label,
                    status=WriteStatus.DROPPED,
                    remote=write.remote,
                    best_effort=write.best_effort,
                    error=repr(outcome),
                )
            outcomes.append(outcome)
        return outcomes

    async def _settle(self, write: PendingWrite) -> WriteOutcome:
        outcome = WriteOutcome(
            category=write.category,
            label=write.label,
            status=WriteStatus.DROPPED,
            remote=write.remote,
            best_effort=write.best_effort,
        )

        if write.send is None:
            if await self._write_cache(write):
                outcome.status = WriteStatus.LOCAL
            return outcome

        max_attempts = 1 if write.best_effort else 1 + self.max_retries
        while outcome.attempts < max_attempts:
            outcome.attempts += 1
            try:
                await write.send()
            except TransientWriteError as exc:
                outcome.error = str(exc)
                if outcome.attempts < max_attempts:
                    logger.info("Retrying %s after transient failure: %s", write.label, exc)
                    if self.retry_delay:
                        await asyncio.sleep(self.retry_delay)
            except PermanentWriteError as exc:
                outcome.error = str(exc)
                break
            except Exception as exc:
                logger.exception("Unexpected error writing %s", write.label)
                outcome.error = repr(exc)
                break
            else:
                outcome.status = WriteStatus.SYNCED
                outcome.error = None
                return outcome

        if write.best_effort:
            logger.warning("Best-effort write %s failed: %s", write.label, outcome.error)
            return outcome

        if await self._write_cache(write):
            logger.warning("Write %s saved to fallback cache: %s", write.label, outcome.error)
            outcome.status = WriteStatus.CACHED
        else:
            logger.error("Write %s lost: %s", write.label, outcome.error)
        return outcome

    async def _write_cache(self, write: PendingWrite) -> bool:
        if write.cache_kind is None:
            return False
        try:
            await self.cache.append(write.user_id, write.cache_kind, write.cache_payload or {})
        except CacheWriteError as exc:
            logger.error("Fallback cache unavailable for %s: %s", write.label, exc)
            return False
        return True
