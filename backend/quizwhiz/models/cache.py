from sqlmodel import SQLModel, Field, JSON, Column
from datetime import datetime, timezone
from enum import Enum
from typing import Any
import uuid


class CacheKind(str, Enum):
    """Entity kinds held by the local fallback cache."""
    PROGRESS = "progress"
    REVIEW = "review"
    ACHIEVEMENT = "achievement"
    QUIZ_SUMMARY = "quizSummary"
    PENDING_QUIZ = "pendingQuiz"  # quiz completions the remote store never confirmed


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def cache_key(kind: CacheKind, user_id: str) -> str:
    """Storage key for a user's list of one entity kind."""
    return f"{kind.value}-{user_id}"


class FallbackCacheRecord(SQLModel, table=True):
    """Newest-first list of cached entries for one (kind, user) key.

    Unique constraint on cache_key enforced at DB level.
    """
    __tablename__ = "fallback_cache"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    cache_key: str = Field(unique=True, index=True)  # e.g. "progress-42"
    user_id: str = Field(index=True)
    kind: str = Field(index=True)
    entries: list[dict] = Field(default=[], sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=utc_now)

    class Config:
        arbitrary_types_allowed = True


class CacheEntry(SQLModel):
    """A single write captured locally."""
    kind: CacheKind
    user_id: str
    created_at: datetime = Field(default_factory=utc_now)
    payload: dict[str, Any] = {}
