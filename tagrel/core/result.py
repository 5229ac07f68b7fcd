"""Ok / Err return values for fallible pipeline operations.

Pipeline steps report failure by returning Err rather than raising, so the
runner can stop at the first failing step and keep its error on the run record:

    match build_release(...):
        case Ok(path):
            ...
        case Err(error):
            record.fail(error)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Never, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")
D = TypeVar("D")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: D) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    error: E

    def unwrap(self) -> Never:
        raise ValueError(f"unwrap() on Err: {self.error}")

    def unwrap_or(self, default: D) -> D:
        return default


Result = Union[Ok[T], Err[E]]
