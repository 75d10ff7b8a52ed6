"""Gate for the expensive run aggregation pass.

The pass runs at most once per interval and never twice at the same time.
Polls that arrive while the gate is closed are skipped, not queued. A pass
that has been "running" for longer than the grace window no longer blocks
new passes, so a hung request cannot lock the gate forever.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from ..common.metrics import RUN_STATS_SKIPPED_COUNTER

LOGGER = structlog.get_logger("linkpulse.node.scheduler")

DEFAULT_GRACE_SECONDS = 300.0

T = TypeVar("T")


@dataclass
class SchedulerState:
    next_allowed_at: float = 0.0
    is_running: bool = False
    started_at: Optional[float] = None


class ExtendedMetricsScheduler:
    """Single-flight, minimum-interval gate.

    State changes happen only right before and right after the awaited
    operation. On one asyncio loop that needs no lock; sharing a state across
    threads would.
    """

    def __init__(
        self,
        state: SchedulerState,
        interval_seconds: float,
        enabled: bool = True,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.state = state
        self.interval_seconds = interval_seconds
        self.enabled = enabled
        self.grace_seconds = grace_seconds
        self._clock = clock

    def should_run(self, now: Optional[float] = None) -> bool:
        if not self.enabled:
            return False
        now = self._clock() if now is None else now
        state = self.state
        if state.is_running and state.started_at is not None and now - state.started_at < self.grace_seconds:
            return False
        if state.next_allowed_at > now:
            return False
        return True

    async def run(self, operation: Callable[[], Awaitable[T]]) -> Optional[T]:
        """Invoke ``operation`` if the gate is open, else return None.

        Errors from ``operation`` propagate after the state is reset and the
        next attempt scheduled. A cancelled pass produced nothing, so it only
        clears the running flag and leaves the interval untouched.
        """
        if not self.should_run():
            if self.enabled:
                RUN_STATS_SKIPPED_COUNTER.inc()
                LOGGER.debug(
                    "Skipping run aggregation",
                    is_running=self.state.is_running,
                    next_allowed_at=self.state.next_allowed_at,
                )
            return None

        self.state.is_running = True
        self.state.started_at = self._clock()
        try:
            result = await operation()
        except asyncio.CancelledError:
            self.state.is_running = False
            LOGGER.debug("Run aggregation cancelled")
            raise
        except Exception:
            self._finish()
            raise
        self._finish()
        return result

    def _finish(self) -> None:
        self.state.is_running = False
        self.state.next_allowed_at = self._clock() + self.interval_seconds
