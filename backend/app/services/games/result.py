"""Success/failure carrier used by the command handlers.

Expected failures (bad input, missing game, wrong phase, ...) travel as
values. Exceptions are reserved for faults nobody planned for.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar('T')


class ErrorKind(str, Enum):
    VALIDATION = 'Validation'
    NOT_FOUND = 'NotFound'
    CONFLICT = 'Conflict'
    BUSINESS_RULE = 'BusinessRule'
    UNAUTHORIZED = 'Unauthorized'


@dataclass(frozen=True)
class Error:
    kind: ErrorKind
    message: str

    @classmethod
    def validation(cls, message: str) -> 'Error':
        return cls(ErrorKind.VALIDATION, message)

    @classmethod
    def not_found(cls, message: str) -> 'Error':
        return cls(ErrorKind.NOT_FOUND, message)

    @classmethod
    def conflict(cls, message: str) -> 'Error':
        return cls(ErrorKind.CONFLICT, message)

    @classmethod
    def business_rule(cls, message: str) -> 'Error':
        return cls(ErrorKind.BUSINESS_RULE, message)

    @classmethod
    def unauthorized(cls, message: str) -> 'Error':
        return cls(ErrorKind.UNAUTHORIZED, message)


class Result(Generic[T]):
    """Either a value or an Error, never both."""

    __slots__ = ('_value', '_error')

    def __init__(self, value: Optional[T], error: Optional[Error]):
        self._value = value
        self._error = error

    @classmethod
    def success(cls, value: T = None) -> 'Result[T]':
        return cls(value, None)

    @classmethod
    def failure(cls, error: Error) -> 'Result[T]':
        if error is None:
            raise ValueError('A failed result must carry an error')
        return cls(None, error)

    @property
    def is_success(self) -> bool:
        return self._error is None

    @property
    def is_failure(self) -> bool:
        return self._error is not None

    @property
    def value(self) -> T:
        if self._error is not None:
            raise ValueError(f'Cannot read the value of a failed result ({self._error.kind.value})')
        return self._value

    @property
    def error(self) -> Optional[Error]:
        return self._error

    def __repr__(self) -> str:
        if self.is_success:
            return f'Result.success({self._value!r})'
        return f'Result.failure({self._error!r})'
