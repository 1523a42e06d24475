"""Check throttling logic - Pure functions.

A check is skipped when the last recorded fetch is younger than its
configured minimum interval. Skipping is a normal outcome, not an error.
All functions are pure with no side effects.
"""

from dataclasses import dataclass


MINUTE_MS = 60_000


@dataclass(frozen=True)
class ThrottleResult:
    """Result of evaluating a throttle.

    Attributes:
        allowed: Whether the check may run now
        reason: Reason if skipped (None if allowed)
        next_allowed_ms: Earliest time the check may run (epoch ms)
    """
    allowed: bool
    reason: str | None
    next_allowed_ms: int


def check_throttle(
    check_name: str,
    last_fetch_ms: int | None,
    now_ms: int,
    min_interval_minutes: int,
) -> ThrottleResult:
    """Decide whether a check may run.

    Pure function. A missing checkpoint always allows the check; so does a
    checkpoint in the future (clock changes must not block checks forever).

    Args:
        check_name: Name used in the skip reason
        last_fetch_ms: Last persisted fetch timestamp, None if never run
        now_ms: Current time (epoch ms)
        min_interval_minutes: Minimum interval between runs

    Returns:
        ThrottleResult indicating if the check may run
    """
    if last_fetch_ms is None or last_fetch_ms > now_ms:
        return ThrottleResult(allowed=True, reason=None, next_allowed_ms=now_ms)

    next_allowed = last_fetch_ms + min_interval_minutes * MINUTE_MS

    if next_allowed > now_ms:
        return ThrottleResult(
            allowed=False,
            reason=(
                f"{check_name} check throttled: last fetch "
                f"{(now_ms - last_fetch_ms) // MINUTE_MS} min ago, "
                f"minimum {min_interval_minutes} min"
            ),
            next_allowed_ms=next_allowed,
        )

    return ThrottleResult(allowed=True, reason=None, next_allowed_ms=now_ms)
