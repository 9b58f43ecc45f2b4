"""Shared-secret verification with failure counting and timed lockout.

Each client moves through Clear -> Warned(n) -> Locked. A locked client is
refused before its credential is even compared, so a correct password
sent during the lock window does not lift the lock; only wall-clock time
does. A successful verification wipes the client's state entirely.
"""

import asyncio
import hmac
import math
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from pixelvault.app.core.logging import get_log_context, get_logger

logger = get_logger(__name__)

DEFAULT_MAX_FAILURES = 5
DEFAULT_LOCK_DURATION_SECONDS = 3600


class AccessDecision(str, Enum):
    """Outcome of a single credential check."""
    ALLOWED = "allowed"
    DENIED = "denied"
    BLOCKED = "blocked"


@dataclass
class LockoutState:
    """Failure bookkeeping for one client."""
    failure_count: int = 0
    blocked_until: Optional[float] = None

    def is_locked(self, now: float) -> bool:
        return self.blocked_until is not None and now < self.blocked_until


class InMemoryLockoutStore:
    """Process-local lockout state keyed by client identifier.

    Held only for the lifetime of the process. Bounded like the in-memory
    rate limiter: the least recently touched 20% are evicted when full.
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        self._max_entries = max_entries
        self._states: OrderedDict[str, LockoutState] = OrderedDict()

    def get(self, client_id: str) -> Optional[LockoutState]:
        return self._states.get(client_id)

    def set(self, client_id: str, state: LockoutState) -> None:
        if client_id in self._states:
            self._states.move_to_end(client_id)
        elif len(self._states) >= self._max_entries:
            remove_count = max(1, int(self._max_entries * 0.2))
            for _ in range(remove_count):
                self._states.popitem(last=False)
        self._states[client_id] = state

    def delete(self, client_id: str) -> None:
        self._states.pop(client_id, None)

    def __len__(self) -> int:
        return len(self._states)


class AccessGuard:
    """Per-client credential verifier with lockout.

    Args:
        max_failures: Consecutive failures that trigger a lock
        lock_duration_seconds: How long a lock lasts
        store: Lockout state store; a fresh in-memory one by default
        clock: Time source returning epoch seconds
    """

    def __init__(
        self,
        max_failures: int = DEFAULT_MAX_FAILURES,
        lock_duration_seconds: float = DEFAULT_LOCK_DURATION_SECONDS,
        store: Optional[InMemoryLockoutStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.max_failures = max_failures
        self.lock_duration_seconds = lock_duration_seconds
        self.store = store if store is not None else InMemoryLockoutStore()
        self._clock = clock
        self._lock = asyncio.Lock()

    async def verify(
        self, client_id: str, provided: Optional[str], expected: str
    ) -> AccessDecision:
        """Check ``provided`` against ``expected`` for ``client_id``.

        A missing credential counts as a mismatch.
        """
        async with self._lock:
            now = self._clock()
            state = self.store.get(client_id)

            if state is not None and state.is_locked(now):
                return AccessDecision.BLOCKED

            if state is not None and state.blocked_until is not None:
                # Lock expired; the client starts over from a clean count
                self.store.delete(client_id)
                state = None

            if _credentials_match(provided, expected):
                self.store.delete(client_id)
                return AccessDecision.ALLOWED

            state = state or LockoutState()
            state.failure_count += 1

            if state.failure_count >= self.max_failures:
                state.blocked_until = now + self.lock_duration_seconds
                self.store.set(client_id, state)
                logger.warning(
                    "Client locked out after repeated credential failures",
                    extra=get_log_context(
                        client_id=client_id,
                        failure_count=state.failure_count,
                        blocked_until=state.blocked_until,
                    ),
                )
                return AccessDecision.BLOCKED

            self.store.set(client_id, state)
            return AccessDecision.DENIED

    def retry_after(self, client_id: str) -> Optional[int]:
        """Seconds until the client's lock expires, or None if not locked."""
        state = self.store.get(client_id)
        now = self._clock()
        if state is None or not state.is_locked(now):
            return None
        return max(1, math.ceil(state.blocked_until - now))

    def remaining_attempts(self, client_id: str) -> int:
        """Failures the client may still make before being locked."""
        state = self.store.get(client_id)
        if state is not None and state.is_locked(self._clock()):
            return 0
        if state is None or state.blocked_until is not None:
            return self.max_failures
        return max(0, self.max_failures - state.failure_count)


def _credentials_match(provided: Optional[str], expected: str) -> bool:
    # Always compare to keep timing independent of a missing credential
    candidate = (provided or "").encode("utf-8")
    return hmac.compare_digest(candidate, expected.encode("utf-8")) and provided is not None
