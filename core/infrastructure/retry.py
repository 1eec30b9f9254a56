"""Capped exponential backoff for reconnect loops."""
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy for transport connection attempts."""

    max_attempts: int = 5
    initial_backoff_seconds: float = 0.5
    max_backoff_seconds: float = 10.0
    multiplier: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def backoff_for(self, attempt: int) -> float:
        """
        Delay to wait after the given failed attempt (1-based).

        Example:
            >>> RetryPolicy(initial_backoff_seconds=1, max_backoff_seconds=5).backoff_for(4)
            5
        """
        delay = self.initial_backoff_seconds * (self.multiplier ** (attempt - 1))
        return min(delay, self.max_backoff_seconds)
