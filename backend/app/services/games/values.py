"""Validated wrappers for the raw strings and numbers clients send us.

Instances are only built through ``create`` (or ``SessionCode.generate``),
so holding one means the value already passed validation.
"""

import random
import re
import string
from dataclasses import dataclass
from typing import Optional

from .result import Error, Result

CODE_LENGTH = 8
CODE_ALPHABET = string.ascii_uppercase + string.digits
NICKNAME_MIN_LENGTH = 2
NICKNAME_MAX_LENGTH = 20
POSITION_PATTERN = re.compile(r'-?[0-9]{1,9}')


@dataclass(frozen=True)
class SessionCode:
    value: str

    @classmethod
    def create(cls, raw) -> Result['SessionCode']:
        if raw is None or not str(raw).strip():
            return Result.failure(Error.validation('Game code cannot be empty'))
        code = str(raw).strip().upper()
        if len(code) != CODE_LENGTH:
            return Result.failure(Error.validation(f'Game code must be exactly {CODE_LENGTH} characters'))
        if any(ch not in CODE_ALPHABET for ch in code):
            return Result.failure(Error.validation('Game code contains invalid characters (only A-Z and 0-9 allowed)'))
        return Result.success(cls(code))

    @classmethod
    def generate(cls, rng: Optional[random.Random] = None) -> 'SessionCode':
        rng = rng or random.Random()
        return cls(''.join(rng.choices(CODE_ALPHABET, k=CODE_LENGTH)))

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class ConnectionId:
    value: str

    @classmethod
    def create(cls, raw) -> Result['ConnectionId']:
        if raw is None or not str(raw).strip():
            return Result.failure(Error.validation('Connection ID cannot be empty'))
        return Result.success(cls(str(raw).strip()))

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class Nickname:
    value: str

    @classmethod
    def create(cls, raw) -> Result['Nickname']:
        if raw is None or not str(raw).strip():
            return Result.failure(Error.validation('Nickname cannot be empty'))
        name = str(raw).strip()
        if len(name) < NICKNAME_MIN_LENGTH:
            return Result.failure(Error.validation(f'Nickname must be at least {NICKNAME_MIN_LENGTH} characters'))
        if len(name) > NICKNAME_MAX_LENGTH:
            return Result.failure(Error.validation(f'Nickname cannot exceed {NICKNAME_MAX_LENGTH} characters'))
        return Result.success(cls(name))

    def matches(self, other: str) -> bool:
        """Case-insensitive comparison used for uniqueness within a game."""
        return self.value.casefold() == other.casefold()

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class Position:
    """Slot in a timeline. The upper bound depends on the timeline, so only
    negativity is rejected here."""
    value: int

    @classmethod
    def create(cls, raw) -> Result['Position']:
        # bool is an int subclass; True is not a position
        if isinstance(raw, bool):
            return Result.failure(Error.validation('Position must be an integer'))
        if isinstance(raw, int):
            number = raw
        elif isinstance(raw, str) and POSITION_PATTERN.fullmatch(raw.strip()):
            number = int(raw.strip())
        else:
            return Result.failure(Error.validation('Position must be an integer'))
        if number < 0:
            return Result.failure(Error.validation('Position cannot be negative'))
        return Result.success(cls(number))

    def __int__(self):
        return self.value

    def __str__(self):
        return str(self.value)
