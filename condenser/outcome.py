"""Result wrapper for calls into external collaborators."""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

from loguru import logger

from condenser.errors import CompactionCancelled

T = TypeVar("T")


@dataclass
class Outcome(Generic[T]):
    """Either a value or the error that prevented producing one."""
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def attempt(awaitable: Awaitable[T], what: str) -> Outcome[T]:
    """Await a collaborator call, capturing any failure.

    Cancellation is not a failure and is re-raised.
    """
    try:
        return Outcome(value=await awaitable)
    except CompactionCancelled:
        raise
    except Exception as e:
        logger.warning(f"{what} failed: {e}")
        return Outcome(error=e)


def attempt_sync(fn: Callable[..., T], *args: Any, what: str) -> Outcome[T]:
    """Synchronous counterpart of :func:`attempt`."""
    try:
        return Outcome(value=fn(*args))
    except Exception as e:
        logger.warning(f"{what} failed: {e}")
        return Outcome(error=e)
