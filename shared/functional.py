#!/usr/bin/env python3

"""
Shared Functional Utilities

Result monad and small helpers used by both the host link and the
development relay, so that configuration loading, frame parsing and
collaborator calls report failure the same way on both sides.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TypeVar, Generic, Callable, Any, Optional, Awaitable

logger = logging.getLogger(__name__)

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'


class Result(Generic[T, E], ABC):
    """
    Result monad for functional error handling

    A computation either produced a value (Success) or an error (Failure).
    Callers branch on is_success()/is_failure() or chain with flat_map.
    """

    @abstractmethod
    def is_success(self) -> bool:
        pass

    @abstractmethod
    def is_failure(self) -> bool:
        pass

    @abstractmethod
    def map(self, func: Callable[[T], U]) -> 'Result[U, E]':
        """Transform the success value if present"""
        pass

    @abstractmethod
    def flat_map(self, func: Callable[[T], 'Result[U, E]']) -> 'Result[U, E]':
        """Chain operations that return Results"""
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def get_or_raise(self) -> T:
        """Get the success value or raise the error"""
        pass


class Success(Result[T, E]):
    """Successful result containing a value"""

    def __init__(self, value: T):
        self._value = value

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def map(self, func: Callable[[T], U]) -> Result[U, E]:
        try:
            return Success(func(self._value))
        except Exception as e:
            return Failure(e)

    def flat_map(self, func: Callable[[T], Result[U, E]]) -> Result[U, E]:
        try:
            return func(self._value)
        except Exception as e:
            return Failure(e)

    def get_or_else(self, default: T) -> T:
        return self._value

    def get_or_raise(self) -> T:
        return self._value

    @property
    def value(self) -> T:
        return self._value

    def __repr__(self) -> str:
        return f"Success({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Success) and self._value == other._value


class Failure(Result[T, E]):
    """Failed result containing an error"""

    def __init__(self, error: E):
        self._error = error

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def map(self, func: Callable[[T], U]) -> Result[U, E]:
        return Failure(self._error)

    def flat_map(self, func: Callable[[T], Result[U, E]]) -> Result[U, E]:
        return Failure(self._error)

    def get_or_else(self, default: T) -> T:
        return default

    def get_or_raise(self) -> T:
        if isinstance(self._error, Exception):
            raise self._error
        raise RuntimeError(f"Operation failed: {self._error}")

    @property
    def error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Failure({self._error!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Failure) and self._error == other._error


def from_callable(func: Callable[[], T]) -> Result[T, Exception]:
    """Execute a function and wrap its outcome in a Result"""
    try:
        return Success(func())
    except Exception as e:
        logger.debug(f"Function call failed: {e}")
        return Failure(e)


async def from_async_callable(func: Callable[[], Awaitable[T]]) -> Result[T, Exception]:
    """Await a coroutine function and wrap its outcome in a Result"""
    try:
        return Success(await func())
    except Exception as e:
        logger.debug(f"Async function call failed: {e}")
        return Failure(e)


def from_optional(value: Optional[T], error_msg: str = "Value is None") -> Result[T, str]:
    if value is None:
        return Failure(error_msg)
    return Success(value)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure root logging with the project-wide format

    When log_file is given, records are written there as well as to stderr.
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=handlers,
        force=True
    )

    logger.info(f"Logging configured at {level} level")


def merge_configs(default: dict, user: dict) -> dict:
    """Merge configuration dictionaries, recursing into nested dicts"""
    result = default.copy()

    for key, value in user.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def validate_type(value: Any, expected_type: type, field_name: str) -> Result[Any, str]:
    if not isinstance(value, expected_type):
        return Failure(f"Field '{field_name}' must be {expected_type.__name__}, got {type(value).__name__}")

    return Success(value)
