from __future__ import annotations

import dataclasses
from typing import Protocol, runtime_checkable
from uuid import UUID

from app.db.redis import redis_pool
from app.models.access_code import AccessCode, normalize_code
from app.repos import codec


@runtime_checkable
class AccessCodeRepo(Protocol):
    async def get_by_code(self, code: str) -> AccessCode | None: ...
    async def get_by_id(self, code_id: UUID) -> AccessCode | None: ...
    async def list_all(self) -> list[AccessCode]: ...
    async def add(self, record: AccessCode) -> None: ...
    async def save(self, record: AccessCode) -> None: ...
    async def delete(self, code_id: UUID) -> AccessCode | None: ...

    async def consume_seat(self, code: str) -> AccessCode | None:
        """Atomically take one seat from a LIMITED code.

        Returns the updated record, or None if the code doesn't exist,
        is not LIMITED, or has no seats left.  Never pushes
        ``seats_used`` past ``seat_allowance``.
        """
        ...


class InMemoryAccessCodeRepo:
    def __init__(self) -> None:
        self._by_code: dict[str, AccessCode] = {}

    async def get_by_code(self, code: str) -> AccessCode | None:
        return self._by_code.get(normalize_code(code))

    async def get_by_id(self, code_id: UUID) -> AccessCode | None:
        for record in self._by_code.values():
            if record.id == code_id:
                return record
        return None

    async def list_all(self) -> list[AccessCode]:
        return list(self._by_code.values())

    async def add(self, record: AccessCode) -> None:
        if record.code in self._by_code:
            raise ValueError("access code already exists")
        self._by_code[record.code] = record

    async def save(self, record: AccessCode) -> None:
        if record.code not in self._by_code:
            raise KeyError("access code not found")
        self._by_code[record.code] = record

    async def delete(self, code_id: UUID) -> AccessCode | None:
        record = await self.get_by_id(code_id)
        if record is None:
            return None
        del self._by_code[record.code]
        return record

    async def consume_seat(self, code: str) -> AccessCode | None:
        # No await between the check and the write: atomic on the event loop.
        key = normalize_code(code)
        record = self._by_code.get(key)
        if record is None or not record.is_limited:
            return None
        if record.seats_used >= record.seat_allowance:
            return None
        updated = dataclasses.replace(record, seats_used=record.seats_used + 1)
        self._by_code[key] = updated
        return updated


class RedisAccessCodeRepo:
    """Access codes as JSON documents in a hash, seat counters in another.

    Keeping ``seats_used`` in its own hash lets the Lua script below
    increment it atomically, and means an admin settings save (a
    read-modify-write of the JSON document) can never overwrite a seat
    consumed in between.  The counter hash is authoritative on read.
    """

    _CODES = "safetyhub:access_codes"  # CODE -> JSON
    _SEATS = "safetyhub:access_code_seats"  # CODE -> seats used
    _IDS = "safetyhub:access_code_ids"  # id -> CODE

    # KEYS[1] = codes hash, KEYS[2] = seats hash, ARGV[1] = CODE
    # Returns the new seats_used, or -1 when no seat can be taken.
    _CONSUME_SEAT_LUA = """
    local raw = redis.call('HGET', KEYS[1], ARGV[1])
    if not raw then
        return -1
    end
    local record = cjson.decode(raw)
    if record['seat_mode'] ~= 'LIMITED' then
        return -1
    end
    local used = tonumber(redis.call('HGET', KEYS[2], ARGV[1]) or '0')
    if used >= tonumber(record['seat_allowance']) then
        return -1
    end
    return redis.call('HINCRBY', KEYS[2], ARGV[1], 1)
    """

    def __init__(self, redis_client) -> None:
        self._redis = redis_client
        self._script = None

    async def _get_script(self):
        if self._script is None:
            self._script = self._redis.register_script(self._CONSUME_SEAT_LUA)
        return self._script

    async def _hydrate(self, code: str, raw: str | None) -> AccessCode | None:
        if raw is None:
            return None
        record = codec.loads(AccessCode, raw)
        used = await self._redis.hget(self._SEATS, code)
        if used is None:
            return record
        return dataclasses.replace(record, seats_used=int(used))

    async def get_by_code(self, code: str) -> AccessCode | None:
        key = normalize_code(code)
        return await self._hydrate(key, await self._redis.hget(self._CODES, key))

    async def get_by_id(self, code_id: UUID) -> AccessCode | None:
        code = await self._redis.hget(self._IDS, str(code_id))
        if code is None:
            return None
        return await self.get_by_code(code)

    async def list_all(self) -> list[AccessCode]:
        docs = await self._redis.hgetall(self._CODES)
        seats = await self._redis.hgetall(self._SEATS)
        records = []
        for code, raw in docs.items():
            record = codec.loads(AccessCode, raw)
            if code in seats:
                record = dataclasses.replace(record, seats_used=int(seats[code]))
            records.append(record)
        return sorted(records, key=lambda r: (r.created_at, r.code))

    async def add(self, record: AccessCode) -> None:
        created = await self._redis.hsetnx(self._CODES, record.code, codec.dumps(record))
        if not created:
            raise ValueError("access code already exists")
        await self._redis.hset(self._SEATS, record.code, record.seats_used)
        await self._redis.hset(self._IDS, str(record.id), record.code)

    async def save(self, record: AccessCode) -> None:
        if not await self._redis.hexists(self._CODES, record.code):
            raise KeyError("access code not found")
        await self._redis.hset(self._CODES, record.code, codec.dumps(record))

    async def delete(self, code_id: UUID) -> AccessCode | None:
        record = await self.get_by_id(code_id)
        if record is None:
            return None
        pipe = self._redis.pipeline(transaction=True)
        pipe.hdel(self._CODES, record.code)
        pipe.hdel(self._SEATS, record.code)
        pipe.hdel(self._IDS, str(code_id))
        await pipe.execute()
        return record

    async def consume_seat(self, code: str) -> AccessCode | None:
        key = normalize_code(code)
        script = await self._get_script()
        used = await script(keys=[self._CODES, self._SEATS], args=[key])
        if int(used) < 0:
            return None
        return await self.get_by_code(key)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    access_code_repo: AccessCodeRepo = RedisAccessCodeRepo(redis_pool)
else:
    access_code_repo = InMemoryAccessCodeRepo()
