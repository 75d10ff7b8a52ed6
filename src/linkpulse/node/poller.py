"""One poll cycle: login, snapshots and the gated run aggregation."""

from __future__ import annotations

import asyncio
import time
from typing import Optional

import structlog
from opentelemetry import trace

from ..common.errors import AuthError, PollError
from ..common.metrics import (
    AUTH_FAILURES_COUNTER,
    POLL_COUNTER,
    POLL_ERRORS_COUNTER,
    POLL_LATENCY_HISTOGRAM,
    RUN_STATS_ERRORS_COUNTER,
    RUN_STATS_PASSES_COUNTER,
)
from ..common.schemas import NodeConfig, PollResult, RunStatsResult
from .client import NodeClient
from .runs import compute_run_stats
from .scheduler import ExtendedMetricsScheduler, SchedulerState
from .session import authenticate
from .snapshots import fetch_snapshots

LOGGER = structlog.get_logger("linkpulse.node.poller")
TRACER = trace.get_tracer("linkpulse.node.poller")


class NodePoller:
    def __init__(
        self,
        client: NodeClient,
        config: NodeConfig,
        scheduler: Optional[ExtendedMetricsScheduler] = None,
    ) -> None:
        self.client = client
        self.config = config
        self.scheduler = scheduler or ExtendedMetricsScheduler(
            SchedulerState(),
            interval_seconds=config.extended_metrics_interval_seconds,
            enabled=config.extended_metrics_enabled,
        )

    async def _run_stats(self) -> RunStatsResult:
        RUN_STATS_PASSES_COUNTER.inc()
        return await compute_run_stats(
            self.client,
            page_size=self.config.page_size,
            stale_age_seconds=self.config.stale_age_seconds,
        )

    async def _gated_run_stats(self) -> Optional[RunStatsResult]:
        try:
            return await self.scheduler.run(self._run_stats)
        except PollError as exc:
            RUN_STATS_ERRORS_COUNTER.inc()
            LOGGER.error("Run aggregation failed", **exc.log_fields())
            return None

    async def poll(self) -> Optional[PollResult]:
        """Poll the node once.

        Returns None when the node rejects the login; a node in a redundant
        pair that is not the active one always does. Snapshot failures
        propagate as :class:`PollError`.
        """
        POLL_COUNTER.inc()
        start = time.perf_counter()
        with TRACER.start_as_current_span("node.poll") as span:
            try:
                await authenticate(self.client, self.config.email, self.config.password)
            except AuthError as exc:
                AUTH_FAILURES_COUNTER.inc()
                LOGGER.debug("Node authentication failed", **exc.log_fields())
                span.set_attribute("linkpulse.authenticated", False)
                return None
            span.set_attribute("linkpulse.authenticated", True)

            run_stats_task = asyncio.create_task(self._gated_run_stats())
            try:
                balances, config = await fetch_snapshots(self.client)
                run_stats = await run_stats_task
            except BaseException as exc:
                # the pass result would be discarded, so stop it
                run_stats_task.cancel()
                await asyncio.gather(run_stats_task, return_exceptions=True)
                if isinstance(exc, PollError):
                    POLL_ERRORS_COUNTER.inc()
                raise
            finally:
                POLL_LATENCY_HISTOGRAM.observe(time.perf_counter() - start)

            span.set_attribute("linkpulse.run_stats", run_stats is not None)
            return PollResult(balances=balances, config=config, run_stats=run_stats)
