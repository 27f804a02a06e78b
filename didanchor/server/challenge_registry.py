"""
Registry of issued, unanswered challenges.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from didanchor.common.exceptions import RateLimitError


class ChallengeRegistry:
    """Tracks issued challenges until they are consumed or expire.

    A challenge can be consumed exactly once. Expired entries are dropped on
    every register/consume call.
    """

    def __init__(
        self,
        ttl: int,
        max_pending: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_pending = max_pending
        self.clock = clock
        self._issued: dict[str, float] = {}
        self._lock = threading.Lock()

    def clean_expired(self) -> None:
        """Drop challenges older than the TTL."""
        with self._lock:
            self._clean_expired_locked()

    def _clean_expired_locked(self) -> None:
        now = self.clock()
        expired = [c for c, at in self._issued.items() if now - at > self.ttl]
        for challenge in expired:
            del self._issued[challenge]

    def register(self, challenge: str) -> None:
        """Record a freshly issued challenge."""
        with self._lock:
            self._clean_expired_locked()
            if len(self._issued) >= self.max_pending:
                msg = "too many pending challenges"
                raise RateLimitError(msg)
            self._issued[challenge] = self.clock()

    def consume(self, challenge: str) -> bool:
        """Remove a challenge; False when unknown, expired or already used."""
        with self._lock:
            self._clean_expired_locked()
            return self._issued.pop(challenge, None) is not None

    def pending_count(self) -> int:
        with self._lock:
            return len(self._issued)
