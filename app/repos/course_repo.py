from __future__ import annotations

import dataclasses
from typing import Protocol, runtime_checkable

from app.db.redis import redis_pool
from app.models.course import Course
from app.repos import codec


@runtime_checkable
class CourseRepo(Protocol):
    async def get_by_id(self, course_id: str) -> Course | None: ...
    async def list_all(self) -> list[Course]: ...
    async def upsert(self, course: Course) -> None: ...
    async def set_active(self, course_id: str, is_active: bool) -> Course | None: ...


class InMemoryCourseRepo:
    def __init__(self) -> None:
        self._by_id: dict[str, Course] = {}

    async def get_by_id(self, course_id: str) -> Course | None:
        return self._by_id.get(course_id)

    async def list_all(self) -> list[Course]:
        return list(self._by_id.values())

    async def upsert(self, course: Course) -> None:
        # Replacing an existing key keeps its position in the catalog.
        self._by_id[course.id] = course

    async def set_active(self, course_id: str, is_active: bool) -> Course | None:
        course = self._by_id.get(course_id)
        if course is None:
            return None
        updated = dataclasses.replace(course, is_active=is_active)
        self._by_id[course_id] = updated
        return updated


class RedisCourseRepo:
    _COURSES = "safetyhub:courses"  # id -> JSON

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get_by_id(self, course_id: str) -> Course | None:
        raw = await self._redis.hget(self._COURSES, course_id)
        if raw is None:
            return None
        return codec.loads(Course, raw)

    async def list_all(self) -> list[Course]:
        docs = await self._redis.hvals(self._COURSES)
        courses = [codec.loads(Course, raw) for raw in docs]
        return sorted(courses, key=lambda c: (c.created_at, c.id))

    async def upsert(self, course: Course) -> None:
        await self._redis.hset(self._COURSES, course.id, codec.dumps(course))

    async def set_active(self, course_id: str, is_active: bool) -> Course | None:
        course = await self.get_by_id(course_id)
        if course is None:
            return None
        updated = dataclasses.replace(course, is_active=is_active)
        await self.upsert(updated)
        return updated


if redis_pool is not None:
    course_repo: CourseRepo = RedisCourseRepo(redis_pool)
else:
    course_repo = InMemoryCourseRepo()
