"""Result algebra threaded through a task's handler chain.

Every processing handler receives the raw response and returns one of
``Empty``, ``Value`` or ``Failure``. The returned value replaces the task's
stored result; once a ``Failure`` is stored, later transforms are skipped.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Generic, TypeGuard, TypeVar

T = TypeVar("T")


@dataclasses.dataclass(frozen=True, slots=True)
class Empty:
    """A successful result that carries no payload."""


@dataclasses.dataclass(frozen=True, slots=True)
class Value(Generic[T]):
    """A successful result carrying exactly one payload."""

    payload: T


@dataclasses.dataclass(frozen=True, slots=True)
class Failure:
    """A failed result, containing the error."""

    error: BaseException


ServiceTaskResult = Empty | Value[Any] | Failure

_RESULT_TYPES = (Empty, Value, Failure)


def is_result(obj: object) -> TypeGuard[ServiceTaskResult]:
    """Return True when *obj* is one of the three result variants."""
    return isinstance(obj, _RESULT_TYPES)
