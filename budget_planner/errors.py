"""Exception types and user-facing notification records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

T = TypeVar('T')

NOTICE_LEVELS = ('info', 'success', 'warning', 'error')


class PlannerError(Exception):
    """Base class for budget planner errors."""


class ValidationError(PlannerError, ValueError):
    """Rejected user input: non-positive values, duplicates, malformed CSV."""


class RemoteStoreError(PlannerError):
    """A remote persistence call failed (network, HTTP status or database)."""


class AuthenticationError(PlannerError):
    """The identity service could not be reached or answered unexpectedly."""


@dataclass
class Notice:
    level: str
    message: str

    def __post_init__(self) -> None:
        if self.level not in NOTICE_LEVELS:
            raise ValueError(f"Unknown notice level '{self.level}'")


@dataclass
class OperationResult(Generic[T]):
    """Outcome of a persistence operation.

    ``ok`` is False for failures such as a missing snapshot id; ``notices``
    carries warnings for partial successes (e.g. local save succeeded but the
    remote copy failed).
    """

    ok: bool
    value: Optional[T] = None
    message: str = ''
    notices: List[Notice] = field(default_factory=list)

    @classmethod
    def success(cls, value: Optional[T] = None, message: str = '', notices: Optional[List[Notice]] = None) -> 'OperationResult[T]':
        return cls(True, value, message, list(notices or []))

    @classmethod
    def failure(cls, message: str, notices: Optional[List[Notice]] = None) -> 'OperationResult[T]':
        return cls(False, None, message, list(notices or []))

    def warn(self, message: str) -> None:
        self.notices.append(Notice('warning', message))
