"""InfluxDB line protocol rendering of poll results.

See https://docs.influxdata.com/influxdb/v1.7/write_protocols/line_protocol_tutorial/#syntax
"""

from __future__ import annotations

import re
import time
from typing import Mapping, Optional

from ..common.schemas import PollResult, RunStatsResult
from ..common.settings import ExporterSettings

_TAG_INVALID = re.compile(r"[^a-z0-9]")
_DASHES = re.compile(r"-+")
_ESCAPE = re.compile(r"([,= ])")


def clean_tag_token(value: str) -> str:
    cleaned = _TAG_INVALID.sub("-", value.strip())
    return _DASHES.sub("-", cleaned, count=1)


def parse_additional_tags(raw: str) -> dict[str, str]:
    tags: dict[str, str] = {}
    for item in (raw or "").split(","):
        if "=" not in item:
            continue
        parts = [clean_tag_token(part) for part in (p.strip() for p in item.split("=")) if part]
        if len(parts) == 2:
            tags[parts[0]] = parts[1]
    return tags


def build_tags(settings: ExporterSettings) -> dict[str, str]:
    """Additional tags first, then the fixed ones, which win on conflicts."""
    tags = parse_additional_tags(settings.additional_tags)
    fixed = {
        "technology": settings.tag_technology,
        "blockchain": settings.tag_blockchain,
        "network": settings.tag_network,
        "host": settings.tag_host,
    }
    for key, value in fixed.items():
        if value:
            tags[clean_tag_token(key)] = clean_tag_token(value)
    return tags


def render_tag_string(tags: Mapping[str, str]) -> str:
    return ",".join(f"{key}={value}" for key, value in tags.items())


def escape(value: object) -> str:
    return _ESCAPE.sub(r"\\\1", str(value))


def timestamp_ns(now: Optional[float] = None) -> int:
    # millisecond resolution padded to nanoseconds
    now = time.time() if now is None else now
    return int(now * 1000) * 1_000_000


def _format_float(value: float) -> str:
    return repr(float(value))


def _status_fields(counts: Mapping[str, int]) -> list[str]:
    return [f"runs_{escape(status)}={count}i" for status, count in sorted(counts.items())]


def _series(measurement: str, tag_string: str, extra_tags: Mapping[str, object]) -> str:
    parts = [escape(measurement)]
    if tag_string:
        parts.append(tag_string)
    parts.extend(f"{key}={escape(value)}" for key, value in extra_tags.items())
    return ",".join(parts)


def render_line_protocol(
    result: PollResult,
    measurement: str,
    tag_string: str = "",
    timestamp: Optional[int] = None,
    track_runs: bool = False,
    track_jobs: bool = False,
) -> str:
    timestamp = timestamp_ns() if timestamp is None else timestamp
    base_tags = {
        "account": result.config.account,
        "oracle": result.config.oracle_contract_address,
    }

    fields = [
        f"eth={_format_float(result.balances.eth_balance)}",
        f"link={_format_float(result.balances.link_balance)}",
        f"gasPrice={_format_float(result.config.gas_price)}",
    ]
    stats: Optional[RunStatsResult] = result.run_stats
    if stats is not None and track_runs:
        fields.append(f"specs={stats.spec_count}i")
        fields.append(f"runs={stats.total_run_count}i")
        fields.extend(_status_fields(stats.total_status_counts))

    lines = [f"{_series(measurement, tag_string, base_tags)} {','.join(fields)} {timestamp}"]

    if stats is not None and track_jobs:
        for job_id, run_count in stats.run_counts.items():
            job_fields = [f"runs={run_count}i", *_status_fields(stats.status_counts.get(job_id, {}))]
            series = _series(measurement, tag_string, {**base_tags, "job": job_id})
            lines.append(f"{series} {','.join(job_fields)} {timestamp}")

    return "\n".join(lines)
