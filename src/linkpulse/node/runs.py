"""Run statistics aggregated across every job definition on the node."""

from __future__ import annotations

import asyncio
import re
from datetime import UTC, datetime
from typing import Any, Iterable, Optional

import structlog
from opentelemetry import trace

from ..common.errors import DataError
from ..common.schemas import STALE_STATUS, JobDefinition, Run, RunStatsResult
from .client import NodeClient
from .pagination import fetch_all_pages

LOGGER = structlog.get_logger("linkpulse.node.runs")
TRACER = trace.get_tracer("linkpulse.node.runs")

# fromisoformat accepts at most microsecond precision
_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    normalized = _FRACTION.sub(r"\1", value.strip().replace("Z", "+00:00"))
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def run_from_record(job_id: str, record: Any) -> Run:
    attributes = record.get("attributes") if isinstance(record, dict) else None
    if not isinstance(attributes, dict):
        raise DataError(f"Run record for job {job_id} has no attributes", payload=record)
    return Run(
        job_id=job_id,
        status=str(attributes.get("status")),
        created_at=parse_timestamp(attributes.get("createdAt")),
    )


async def list_job_definitions(client: NodeClient) -> tuple[int, list[JobDefinition]]:
    payload = await client.get_json("/v2/specs")
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, list):
        raise DataError("Invalid Specs Result", payload=payload)
    if not all(isinstance(item, dict) and item.get("id") is not None for item in data):
        raise DataError("Specs listing contains an entry without an id", payload=payload)
    jobs = [JobDefinition(id=str(item["id"])) for item in data]

    meta = payload.get("meta")
    count = meta.get("count") if isinstance(meta, dict) else None
    if count is None:
        return len(jobs), jobs
    if isinstance(count, bool) or not isinstance(count, int):
        raise DataError("Specs listing has a non-integer meta.count", payload=payload)
    return count, jobs


async def fetch_job_runs(client: NodeClient, job_id: str, page_size: int) -> list[Run]:
    pages = await fetch_all_pages(client, "/v2/runs", params={"jobSpecId": job_id, "size": page_size})
    return [run_from_record(job_id, record) for record in pages.records]


def _increment(counts: dict[str, int], key: str) -> None:
    counts[key] = counts.get(key, 0) + 1


def is_stale(run: Run, stale_age_seconds: float, now: datetime) -> bool:
    """Non-terminal runs older than the threshold are stale.

    Any status other than errored/completed counts as in flight, so a new
    terminal status introduced by the node would be flagged here too.
    """
    if run.is_terminal or run.created_at is None:
        return False
    return (now - run.created_at).total_seconds() > stale_age_seconds


def fold_runs(
    result: RunStatsResult,
    job_id: str,
    runs: Iterable[Run],
    stale_age_seconds: float,
    now: datetime,
) -> None:
    job_statuses = result.status_counts.setdefault(job_id, {})
    result.run_counts.setdefault(job_id, 0)
    for run in runs:
        result.total_run_count += 1
        result.run_counts[job_id] += 1
        _increment(result.total_status_counts, run.status)
        _increment(job_statuses, run.status)
        if is_stale(run, stale_age_seconds, now):
            _increment(result.total_status_counts, STALE_STATUS)
            _increment(job_statuses, STALE_STATUS)


async def compute_run_stats(
    client: NodeClient,
    page_size: int,
    stale_age_seconds: float,
    now: Optional[datetime] = None,
) -> RunStatsResult:
    """Fetch every job's full run history concurrently and fold it into counters."""
    with TRACER.start_as_current_span("node.compute_run_stats") as span:
        spec_count, jobs = await list_job_definitions(client)
        job_ids = [job.id for job in jobs]
        LOGGER.debug("Aggregating job runs", spec_ids=job_ids)

        histories = await asyncio.gather(*(fetch_job_runs(client, job_id, page_size) for job_id in job_ids))

        reference = now or datetime.now(UTC)
        result = RunStatsResult(spec_count=spec_count)
        for job_id, runs in zip(job_ids, histories):
            fold_runs(result, job_id, runs, stale_age_seconds, reference)

        span.set_attribute("linkpulse.spec_count", spec_count)
        span.set_attribute("linkpulse.run_count", result.total_run_count)
        return result
