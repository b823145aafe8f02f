from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable


@dataclass
class BackoffDecision:
    delay_seconds: float
    consecutive_failures: int


@dataclass
class _FailureStreak:
    count: int
    last_failure_at: float


class TenantBackoff:
    """Slows outbound calls for one tenant's integration after repeated failures.

    The first ``threshold`` failures cost nothing. Each further failure doubles
    the wait, capped at ``max_backoff_seconds``. A streak with no new failure
    for ``reset_after_seconds`` is dropped. Streaks are keyed by
    (tenant_id, integration) so one tenant's expired token never slows
    another tenant.
    """

    def __init__(
        self,
        *,
        threshold: int = 3,
        max_backoff_seconds: float = 8.0,
        reset_after_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.threshold = threshold
        self.max_backoff_seconds = max_backoff_seconds
        self.reset_after_seconds = reset_after_seconds
        self._clock = clock
        self._streaks: dict[tuple[str, str], _FailureStreak] = {}
        self._lock = Lock()

    def _live_streak(self, key: tuple[str, str]) -> _FailureStreak | None:
        streak = self._streaks.get(key)
        if streak and self._clock() - streak.last_failure_at > self.reset_after_seconds:
            del self._streaks[key]
            return None
        return streak

    def before_request(self, *, tenant_id: str, integration: str) -> BackoffDecision:
        with self._lock:
            streak = self._live_streak((tenant_id, integration))
        failures = streak.count if streak else 0
        if failures < self.threshold:
            return BackoffDecision(delay_seconds=0.0, consecutive_failures=failures)
        delay = min(float(2 ** (failures - self.threshold)), self.max_backoff_seconds)
        return BackoffDecision(delay_seconds=delay, consecutive_failures=failures)

    def register_success(self, *, tenant_id: str, integration: str) -> None:
        with self._lock:
            self._streaks.pop((tenant_id, integration), None)

    def register_failure(self, *, tenant_id: str, integration: str) -> int:
        key = (tenant_id, integration)
        with self._lock:
            streak = self._live_streak(key)
            if streak is None:
                streak = self._streaks[key] = _FailureStreak(count=0, last_failure_at=0.0)
            streak.count += 1
            streak.last_failure_at = self._clock()
            return streak.count
