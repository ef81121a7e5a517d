"""Print a user's locally cached quiz writes.

Writes land in the fallback cache when the remote record store rejected
them or could not be reached. There is no automatic re-send; this script
lists what is waiting so it can be reconciled by hand.

Usage:
    python scripts/dump_fallback_cache.py USER_ID [--kind progress] [--json]
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from quizwhiz.database import async_engine, async_session_maker, init_db
from quizwhiz.models.cache import CacheEntry, CacheKind
from quizwhiz.services.fallback_cache import SqlFallbackCache


async def load_entries(user_id: str, kinds: list[CacheKind]) -> dict[CacheKind, list[CacheEntry]]:
    """Load cached entries per kind for a user."""
    await init_db()
    cache = SqlFallbackCache(async_session_maker)
    try:
        return {kind: await cache.entries(user_id, kind) for kind in kinds}
    finally:
        await async_engine.dispose()


def format_entry(entry: CacheEntry) -> str:
    payload = ", ".join(f"{k}={v}" for k, v in entry.payload.items())
    return f"  {entry.created_at.isoformat(timespec='seconds')}  {payload}"


def main():
    parser = argparse.ArgumentParser(description="Show fallback-cached quiz writes for a user")
    parser.add_argument("user_id", help="User whose cache to show")
    parser.add_argument(
        "--kind",
        choices=[k.value for k in CacheKind],
        help="Only show one entity kind",
    )
    parser.add_argument("--json", action="store_true", help="Print raw JSON")
    args = parser.parse_args()

    kinds = [CacheKind(args.kind)] if args.kind else list(CacheKind)
    entries = asyncio.run(load_entries(args.user_id, kinds))

    if args.json:
        print(json.dumps(
            {kind.value: [e.model_dump(mode="json") for e in items] for kind, items in entries.items()},
            indent=2,
            ensure_ascii=False,
        ))
        return

    for kind, items in entries.items():
        print(f"{kind.value} ({len(items)})")
        for entry in items:
            print(format_entry(entry))


if __name__ == "__main__":
    main()
