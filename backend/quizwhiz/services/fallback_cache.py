"""Local fallback cache for writes the remote store did not accept.

Per (kind, user) the cache holds a newest-first list capped at a per-kind
limit; inserting past the cap evicts the oldest entry. Lookup is by
(kind, user) only. Appends to one key are serialized within the process;
a key created concurrently by another process is merged on insert.
"""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Optional, Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import select

from quizwhiz.config import Settings, get_settings
from quizwhiz.models.cache import CacheEntry, CacheKind, FallbackCacheRecord, cache_key, utc_now
from quizwhiz.quiz import CacheWriteError

logger = logging.getLogger(__name__)


class FallbackCache(Protocol):
    """Protocol defining the fallback cache interface."""

    async def append(
        self, user_id: str, kind: CacheKind, payload: dict
    ) -> Optional[CacheEntry]:
        """Store an entry; returns None if it was a duplicate and nothing changed."""
        ...

    async def entries(self, user_id: str, kind: CacheKind) -> list[CacheEntry]:
        """Entries for (user, kind), newest first."""
        ...


def cache_limits(settings: Settings) -> dict[CacheKind, int]:
    return {
        CacheKind.PROGRESS: settings.CACHE_LIMIT_PROGRESS,
        CacheKind.REVIEW: settings.CACHE_LIMIT_REVIEW,
        CacheKind.ACHIEVEMENT: settings.CACHE_LIMIT_ACHIEVEMENT,
        CacheKind.QUIZ_SUMMARY: settings.CACHE_LIMIT_QUIZ_SUMMARY,
        CacheKind.PENDING_QUIZ: settings.CACHE_LIMIT_PENDING_QUIZ,
    }


class BaseFallbackCache:
    """Shared prepend/cap/dedupe logic. Subclasses provide list storage."""

    def __init__(self, limits: Optional[dict[CacheKind, int]] = None):
        self.limits = limits if limits is not None else cache_limits(get_settings())
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def _load(self, key: str) -> list[dict]:
        raise NotImplementedError

    async def _store(self, key: str, user_id: str, kind: CacheKind, items: list[dict]) -> None:
        raise NotImplementedError

    def _is_duplicate(self, kind: CacheKind, payload: dict, items: list[dict]) -> bool:
        # Achievements are unique per (user, title)
        if kind is not CacheKind.ACHIEVEMENT:
            return False
        title = payload.get("title")
        return any(item.get("payload", {}).get("title") == title for item in items)

    async def append(
        self, user_id: str, kind: CacheKind, payload: dict
    ) -> Optional[CacheEntry]:
        key = cache_key(kind, user_id)
        # load, prepend, cap and store must not interleave for one key
        async with self._lock_for(key):
            items = await self._load(key)
            if self._is_duplicate(kind, payload, items):
                return None

            entry = CacheEntry(kind=kind, user_id=user_id, payload=payload)
            items.insert(0, entry.model_dump(mode="json"))
            limit = self.limits.get(kind)
            if limit is not None:
                del items[limit:]

            await self._store(key, user_id, kind, items)
        return entry

    async def entries(self, user_id: str, kind: CacheKind) -> list[CacheEntry]:
        items = await self._load(cache_key(kind, user_id))
        return [CacheEntry.model_validate(item) for item in items]


class InMemoryFallbackCache(BaseFallbackCache):
    """Dict-backed cache for tests and single-process development."""

    def __init__(self, limits: Optional[dict[CacheKind, int]] = None):
        super().__init__(limits)
        self._data: dict[str, list[dict]] = {}

    async def _load(self, key: str) -> list[dict]:
        return list(self._data.get(key, []))

    async def _store(self, key: str, user_id: str, kind: CacheKind, items: list[dict]) -> None:
        self._data[key] = items


class SqlFallbackCache(BaseFallbackCache):
    """Cache persisted as one JSON list per key in the fallback_cache table."""

    def __init__(
        self,
        session_factory: sessionmaker,
        limits: Optional[dict[CacheKind, int]] = None,
    ):
        super().__init__(limits)
        self.session_factory = session_factory

    async def _get_record(self, session: AsyncSession, key: str) -> Optional[FallbackCacheRecord]:
        result = await session.execute(
            select(FallbackCacheRecord).where(FallbackCacheRecord.cache_key == key)
        )
        return result.scalar_one_or_none()

    async def _load(self, key: str) -> list[dict]:
        try:
            async with self.session_factory() as session:
                record = await self._get_record(session, key)
        except SQLAlchemyError as exc:
            raise CacheWriteError(f"Could not read fallback cache {key}: {exc}") from exc
        return list(record.entries) if record else []

    async def _store(self, key: str, user_id: str, kind: CacheKind, items: list[dict]) -> None:
        """Create or replace the list for a key.

        Uses IntegrityError handling for race condition protection
        (unique constraint on cache_key).
        """
        try:
            async with self.session_factory() as session:
                record = await self._get_record(session, key)
                if record is None:
                    session.add(FallbackCacheRecord(
                        cache_key=key,
                        user_id=user_id,
                        kind=kind.value,
                        entries=items,
                        updated_at=utc_now(),
                    ))
                    try:
                        await session.commit()
                        return
                    except IntegrityError:
                        # Another process created the key first; keep its entries behind ours
                        await session.rollback()
                        record = await self._get_record(session, key)
                        if record is None:
                            raise
                        items = (items + list(record.entries))[: self.limits.get(kind)]

                record.entries = items
                record.updated_at = utc_now()
                await session.commit()
        except SQLAlchemyError as exc:
            raise CacheWriteError(f"Could not write fallback cache {key}: {exc}") from exc


@lru_cache
def get_fallback_cache() -> SqlFallbackCache:
    """Process-wide cache, so appends from concurrent sessions share the key locks."""
    from quizwhiz.database import async_session_maker

    return SqlFallbackCache(async_session_maker)
