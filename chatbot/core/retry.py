from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Synchronous retry with exponential backoff.

    With the defaults a call is attempted 3 times, sleeping 1s after the
    first failure and 2s after the second.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)

    def delays(self) -> List[float]:
        return [self.initial_delay * (self.multiplier ** i) for i in range(max(self.max_attempts - 1, 0))]

    def call(
        self,
        func: Callable[[], T],
        *,
        retry_on: Callable[[BaseException], bool],
        description: str = "call",
    ) -> T:
        """Run ``func`` until it succeeds, a non-retryable error is raised,
        or attempts are exhausted (the last error is re-raised)."""
        delays = self.delays()
        attempts = max(self.max_attempts, 1)
        for attempt in range(1, attempts + 1):
            try:
                return func()
            except Exception as exc:
                if attempt >= attempts or not retry_on(exc):
                    raise
                delay = delays[attempt - 1]
                logger.warning(
                    "%s failed (attempt %s/%s): %s; retrying in %.1fs",
                    description,
                    attempt,
                    attempts,
                    exc,
                    delay,
                )
                self.sleep(delay)
        raise AssertionError("unreachable")
