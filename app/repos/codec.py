"""JSON encoding of domain dataclasses for the Redis repositories.

pydantic's TypeAdapter validates nested frozen dataclasses directly,
so the domain models stay plain dataclasses and the Redis repos never
hand-write field-by-field converters.
"""

from __future__ import annotations

from typing import TypeVar

from pydantic import TypeAdapter

from app.models.access_code import AccessCode
from app.models.course import Course
from app.models.result import TestResult
from app.models.session import LearnerSession

T = TypeVar("T")

_ADAPTERS: dict[type, TypeAdapter] = {
    AccessCode: TypeAdapter(AccessCode),
    Course: TypeAdapter(Course),
    TestResult: TypeAdapter(TestResult),
    LearnerSession: TypeAdapter(LearnerSession),
}


def dumps(obj: object) -> str:
    return _ADAPTERS[type(obj)].dump_json(obj).decode("utf-8")


def loads(model: type[T], raw: str | bytes) -> T:
    """Decode a stored document.

    Raises pydantic.ValidationError when the payload does not match the
    model (corrupt or written by an incompatible version).
    """
    return _ADAPTERS[model].validate_json(raw)
