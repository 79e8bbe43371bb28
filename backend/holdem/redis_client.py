"""Redis client wrapper for player chip balances."""

from __future__ import annotations

import os
from typing import Mapping, Optional

import redis.asyncio as redis

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

_pool: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    global _pool
    if _pool is None:
        _pool = redis.from_url(REDIS_URL, decode_responses=True)
    return _pool


def _balance_key(player_id: str) -> str:
    return f"balance:{player_id}"


async def get_balance(player_id: str) -> int:
    r = await get_redis()
    raw = await r.get(_balance_key(player_id))
    if raw is None:
        return 0
    return int(raw)


async def credit_balances(credits: Mapping[str, int]) -> dict[str, int]:
    """Add chips to several balances in one MULTI/EXEC; returns the new balances.

    Either every credit lands or none does.
    """
    if not credits:
        return {}
    r = await get_redis()
    async with r.pipeline(transaction=True) as pipe:
        for player_id, chips in credits.items():
            pipe.incrby(_balance_key(player_id), chips)
        results = await pipe.execute()
    return {player_id: int(value) for player_id, value in zip(credits, results)}


async def close() -> None:
    global _pool
    if _pool is not None:
        await _pool.aclose()
        _pool = None
