"""
Fallback cache router - read-only access to locally captured writes.

Display screens use this when the remote store is unavailable.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from quizwhiz.models.cache import CacheEntry, CacheKind
from quizwhiz.quiz import CacheWriteError
from quizwhiz.services.fallback_cache import FallbackCache, get_fallback_cache

router = APIRouter()


@router.get("/cache/{kind}/{user_id}", response_model=list[CacheEntry])
async def get_cached_entries(
    kind: CacheKind,
    user_id: str,
    cache: Annotated[FallbackCache, Depends(get_fallback_cache)],
):
    """Cached entries of one kind for a user, newest first."""
    try:
        return await cache.entries(user_id, kind)
    except CacheWriteError as e:
        raise HTTPException(status_code=503, detail=str(e))
