"""Idempotency keys: "this operation was already applied for this key".

Used by the result recorder so that a learner who finishes the quiz
twice (reload, double submit, second attempt) spends one seat, not two.
Keys look like ``seat:{CODE}:{sha256 of the names}``; the operation name is
the first segment, so one table serves any future operation too.
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

from app.db.redis import redis_pool

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def _escape_glob(text: str) -> str:
    return _GLOB_SPECIAL.sub(r"\\\1", text)


@runtime_checkable
class IdempotencyRepo(Protocol):
    async def claim(self, key: str) -> bool:
        """Record ``key`` as applied. Returns False if it already was."""
        ...

    async def exists(self, key: str) -> bool: ...

    async def release(self, key: str) -> None:
        """Undo a claim whose operation could not be completed."""
        ...

    async def purge_prefix(self, prefix: str) -> int: ...


class InMemoryIdempotencyRepo:
    def __init__(self) -> None:
        self._keys: set[str] = set()

    async def claim(self, key: str) -> bool:
        if key in self._keys:
            return False
        self._keys.add(key)
        return True

    async def exists(self, key: str) -> bool:
        return key in self._keys

    async def release(self, key: str) -> None:
        self._keys.discard(key)

    async def purge_prefix(self, prefix: str) -> int:
        doomed = [k for k in self._keys if k.startswith(prefix)]
        for k in doomed:
            self._keys.discard(k)
        return len(doomed)


class RedisIdempotencyRepo:
    _PREFIX = "safetyhub:idem:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def claim(self, key: str) -> bool:
        # SET NX is the atomic "first writer wins" primitive.
        return bool(await self._redis.set(f"{self._PREFIX}{key}", "1", nx=True))

    async def exists(self, key: str) -> bool:
        return bool(await self._redis.exists(f"{self._PREFIX}{key}"))

    async def release(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")

    async def purge_prefix(self, prefix: str) -> int:
        # SCAN, not KEYS: KEYS blocks the server while it walks the keyspace.
        removed = 0
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(
                cursor, match=f"{self._PREFIX}{_escape_glob(prefix)}*", count=100
            )
            if keys:
                removed += int(await self._redis.delete(*keys))
            if cursor == 0:
                break
        return removed


if redis_pool is not None:
    idempotency_repo: IdempotencyRepo = RedisIdempotencyRepo(redis_pool)
else:
    idempotency_repo = InMemoryIdempotencyRepo()
