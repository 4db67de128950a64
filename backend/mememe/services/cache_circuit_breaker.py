"""Availability tracking for the distributed store."""

from __future__ import annotations

import logging
import time
from functools import wraps
from typing import Any, Callable

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Tracks whether the distributed store may be used.

    Any failed operation opens the circuit for ``timeout_seconds``; while open,
    protected calls short-circuit to ``None`` so callers fall through to the
    in-process tier. The next successful call after the timeout closes it.
    """

    def __init__(
        self,
        timeout_seconds: float,
        *,
        name: str = "valkey",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timeout = timeout_seconds
        self._name = name
        self._clock = clock
        self._open_until = 0.0

    @property
    def available(self) -> bool:
        return not self.is_open()

    def is_open(self) -> bool:
        """Check if the circuit breaker is currently open."""
        return self._clock() < self._open_until

    def open(self) -> None:
        """Open the circuit breaker for the configured timeout."""
        self._open_until = self._clock() + self._timeout

    def close(self) -> None:
        """Close the circuit breaker immediately."""
        self._open_until = 0.0

    def protect(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Decorator returning ``None`` instead of raising on store failures."""

        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            if self.is_open():
                return None
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                logger.warning(
                    "%s circuit opened by %s: %s", self._name, func.__name__, exc
                )
                self.open()
                return None
            self.close()
            return result

        return async_wrapper


__all__ = ["CircuitBreaker"]
