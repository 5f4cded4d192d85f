"""Replay protection for signed requests.

A signed request is only accepted within a fixed age window of its
timestamp. Timestamps from the future are rejected beyond a small clock
skew tolerance; otherwise a forged future timestamp would yield a negative
age and pass the window check indefinitely.
"""

from dataclasses import dataclass

DEFAULT_MAX_AGE_MS = 5 * 60 * 1000
DEFAULT_MAX_SKEW_MS = 5_000


def check(
    timestamp: int,
    now: int,
    max_age_ms: int = DEFAULT_MAX_AGE_MS,
    max_skew_ms: int = DEFAULT_MAX_SKEW_MS,
) -> bool:
    """Check whether a request timestamp is fresh.

    Args:
        timestamp: Request timestamp in milliseconds
        now: Current time in milliseconds
        max_age_ms: Maximum accepted age
        max_skew_ms: Maximum accepted distance into the future

    Returns:
        True if the request is inside the window
    """
    age = now - timestamp
    if age < -max_skew_ms:
        return False
    return age <= max_age_ms


@dataclass(frozen=True)
class ReplayGuard:
    """Replay window bound to a configured age and skew tolerance."""

    max_age_ms: int = DEFAULT_MAX_AGE_MS
    max_skew_ms: int = DEFAULT_MAX_SKEW_MS

    def check(self, timestamp: int, now: int) -> bool:
        return check(timestamp, now, self.max_age_ms, self.max_skew_ms)
