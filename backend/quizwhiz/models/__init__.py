from quizwhiz.models.cache import (
    CacheKind,
    CacheEntry,
    FallbackCacheRecord,
    cache_key,
)

__all__ = [
    "CacheKind",
    "CacheEntry",
    "FallbackCacheRecord",
    "cache_key",
]
