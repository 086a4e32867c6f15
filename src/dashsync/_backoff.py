"""Exponential backoff bookkeeping shared by the channel and poll loops."""

from __future__ import annotations

from dataclasses import dataclass

from dashsync.config import BackoffConfig


@dataclass
class ConnectionAttempt:
    """Consecutive failure count and the delay before the next try.

    Delays grow as ``initial * factor ** (attempt - 1)`` and are capped at
    ``maximum``. The attempt count itself is unbounded.
    """

    policy: BackoffConfig
    attempt: int = 0

    @property
    def next_delay(self) -> float:
        try:
            delay = self.policy.initial * (float(self.policy.factor) ** self.attempt)
        except OverflowError:
            return self.policy.maximum
        return min(delay, self.policy.maximum)

    def fail(self) -> float:
        """Record a failure and return the delay to wait before retrying."""
        delay = self.next_delay
        self.attempt += 1
        return delay

    def reset(self) -> None:
        self.attempt = 0
