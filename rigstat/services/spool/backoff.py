"""
Per-entry retry backoff.

An entry that failed n times in a row is not retried until
min(base * 2**(n-1), cap) seconds after its last failure. The entry
stays on disk meanwhile; sweeps keep re-enqueueing it and the worker
skips it until the delay has passed.
"""

import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class RetryState:
    failures: int = 0
    next_attempt_at: float = 0.0


class RetryBackoff:
    """Capped exponential backoff keyed by spool entry name"""

    def __init__(
        self,
        base_seconds: float = 1.0,
        cap_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_seconds = base_seconds
        self.cap_seconds = cap_seconds
        self._clock = clock
        self._states: dict[str, RetryState] = {}

    def delay_for(self, failures: int) -> float:
        if failures <= 0:
            return 0.0
        return min(self.base_seconds * 2 ** (failures - 1), self.cap_seconds)

    def ready(self, name: str) -> bool:
        state = self._states.get(name)
        return state is None or self._clock() >= state.next_attempt_at

    def record_failure(self, name: str) -> float:
        """Register a failed attempt and return the delay before the next one."""
        state = self._states.setdefault(name, RetryState())
        state.failures += 1
        delay = self.delay_for(state.failures)
        state.next_attempt_at = self._clock() + delay
        return delay

    def clear(self, name: str) -> None:
        self._states.pop(name, None)

    def prune(self, existing: set[str]) -> int:
        """Forget entries no longer in the spool; returns how many were dropped."""
        stale = [name for name in self._states if name not in existing]
        for name in stale:
            del self._states[name]
        return len(stale)

    def failures(self, name: str) -> int:
        state = self._states.get(name)
        return state.failures if state else 0

    def __len__(self) -> int:
        return len(self._states)
