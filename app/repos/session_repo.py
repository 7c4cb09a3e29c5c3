from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from app.db.redis import redis_pool
from app.models.session import LearnerSession
from app.repos import codec

logger = logging.getLogger(__name__)

# A learner who closes the tab can come back within a week and pick up
# where they left off.
SESSION_TTL_SECONDS = 7 * 24 * 3600


@runtime_checkable
class SessionRepo(Protocol):
    async def get(self, session_id: str) -> LearnerSession | None: ...
    async def save(self, session: LearnerSession) -> None: ...
    async def delete(self, session_id: str) -> None: ...


class InMemorySessionRepo:
    """In-memory session store for dev/tests; no TTL enforcement."""

    def __init__(self) -> None:
        self._store: dict[str, LearnerSession] = {}

    async def get(self, session_id: str) -> LearnerSession | None:
        return self._store.get(session_id)

    async def save(self, session: LearnerSession) -> None:
        self._store[session.session_id] = session

    async def delete(self, session_id: str) -> None:
        self._store.pop(session_id, None)


class RedisSessionRepo:
    _PREFIX = "safetyhub:session:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, session_id: str) -> LearnerSession | None:
        key = f"{self._PREFIX}{session_id}"
        raw = await self._redis.get(key)
        if raw is None:
            return None
        try:
            return codec.loads(LearnerSession, raw)
        except ValidationError:
            # Corrupt saved state is dropped; the learner starts over at ENTRY.
            logger.warning(
                "Discarding unreadable learner session",
                extra={"session_id": session_id},
            )
            await self._redis.delete(key)
            return None

    async def save(self, session: LearnerSession) -> None:
        await self._redis.setex(
            f"{self._PREFIX}{session.session_id}",
            SESSION_TTL_SECONDS,
            codec.dumps(session),
        )

    async def delete(self, session_id: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{session_id}")


if redis_pool is not None:
    session_repo: SessionRepo = RedisSessionRepo(redis_pool)
else:
    session_repo = InMemorySessionRepo()
