"""Explicit success/failure wrapper for best-effort auxiliary calls.

Robots.txt lookups and rate-limit probes must never abort the analysis that
asked for them. Instead of catching and discarding exceptions at each call
site, the coroutine is run through ``Outcome.capture`` and the caller decides
what a failure means, usually by collapsing it with ``value_or_none()``.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a best-effort operation: either a value or an error."""
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "Outcome[T]":
        return cls(error=error)

    @classmethod
    async def capture(cls, awaitable: Awaitable[T], label: str = "operation") -> "Outcome[T]":
        """Await ``awaitable`` and wrap its result or its exception.

        Args:
            awaitable: Coroutine to run
            label: Name used when logging a failure

        Returns:
            Outcome holding either the value or the raised exception
        """
        try:
            return cls.success(await awaitable)
        except Exception as e:
            logger.warning(f"{label} failed: {e}")
            return cls.failure(e)

    def value_or_none(self) -> Optional[T]:
        return self.value if self.ok else None
