from __future__ import annotations

from typing import Protocol, runtime_checkable

from app.db.redis import redis_pool
from app.models.access_code import normalize_code
from app.models.result import TestResult
from app.repos import codec


@runtime_checkable
class ResultRepo(Protocol):
    """Append-only store of completion records.

    There is deliberately no update method.  Records leave only through
    ``delete_by_access_code`` when their company is deleted.
    """

    async def add(self, result: TestResult) -> None: ...
    async def get_by_completion_id(self, completion_id: str) -> TestResult | None: ...
    async def list_all(self) -> list[TestResult]: ...
    async def list_by_access_code(self, code: str) -> list[TestResult]: ...
    async def delete_by_access_code(self, code: str) -> int: ...


class InMemoryResultRepo:
    def __init__(self) -> None:
        self._results: list[TestResult] = []

    async def add(self, result: TestResult) -> None:
        if any(r.completion_id == result.completion_id for r in self._results):
            raise ValueError("completion id already exists")
        self._results.append(result)

    async def get_by_completion_id(self, completion_id: str) -> TestResult | None:
        for r in self._results:
            if r.completion_id == completion_id:
                return r
        return None

    async def list_all(self) -> list[TestResult]:
        return list(self._results)

    async def list_by_access_code(self, code: str) -> list[TestResult]:
        key = normalize_code(code)
        return [r for r in self._results if normalize_code(r.learner.access_code) == key]

    async def delete_by_access_code(self, code: str) -> int:
        key = normalize_code(code)
        kept = [r for r in self._results if normalize_code(r.learner.access_code) != key]
        removed = len(self._results) - len(kept)
        self._results[:] = kept
        return removed


class RedisResultRepo:
    _RESULTS = "safetyhub:results"  # completion id -> JSON

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def add(self, result: TestResult) -> None:
        created = await self._redis.hsetnx(
            self._RESULTS, result.completion_id, codec.dumps(result)
        )
        if not created:
            raise ValueError("completion id already exists")

    async def get_by_completion_id(self, completion_id: str) -> TestResult | None:
        raw = await self._redis.hget(self._RESULTS, completion_id)
        if raw is None:
            return None
        return codec.loads(TestResult, raw)

    async def list_all(self) -> list[TestResult]:
        docs = await self._redis.hvals(self._RESULTS)
        results = [codec.loads(TestResult, raw) for raw in docs]
        return sorted(results, key=lambda r: (r.completed_at, r.completion_id))

    async def list_by_access_code(self, code: str) -> list[TestResult]:
        key = normalize_code(code)
        return [
            r
            for r in await self.list_all()
            if normalize_code(r.learner.access_code) == key
        ]

    async def delete_by_access_code(self, code: str) -> int:
        doomed = [r.completion_id for r in await self.list_by_access_code(code)]
        if not doomed:
            return 0
        return int(await self._redis.hdel(self._RESULTS, *doomed))


if redis_pool is not None:
    result_repo: ResultRepo = RedisResultRepo(redis_pool)
else:
    result_repo = InMemoryResultRepo()
