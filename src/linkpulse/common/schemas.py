"""Data models shared by the node poller, aggregator and renderer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr


STALE_STATUS = "stale"
TERMINAL_STATUSES = frozenset({"errored", "completed"})


class NodeConfig(BaseModel):
    """Connection and polling parameters for one Chainlink node."""

    url: str
    email: Optional[str] = None
    password: Optional[SecretStr] = None
    page_size: int = 5000
    stale_age_seconds: float = 3600.0
    track_runs: bool = False
    track_jobs: bool = False
    extended_metrics_interval_seconds: float = 300.0

    @property
    def extended_metrics_enabled(self) -> bool:
        return self.track_runs or self.track_jobs


class BalanceSnapshot(BaseModel):
    """Account balances converted from wei."""

    model_config = ConfigDict(frozen=True)

    account: Optional[str] = None
    eth_balance: float = 0.0
    link_balance: float = 0.0


class ConfigSnapshot(BaseModel):
    """Subset of the node configuration whitelist."""

    model_config = ConfigDict(frozen=True)

    account: Optional[str] = None
    chain_id: Optional[str] = None
    link_contract_address: Optional[str] = None
    oracle_contract_address: Optional[str] = None
    gas_price: float = 0.0


class JobDefinition(BaseModel):
    id: str


class Run(BaseModel):
    """A single job run as reported by the runs listing."""

    job_id: str
    status: str
    created_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class PageSet(BaseModel):
    """All records returned by a paginated listing, in server order."""

    records: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.records)


class RunStatsResult(BaseModel):
    """Run counters folded across every job definition."""

    spec_count: int = 0
    run_counts: dict[str, int] = Field(default_factory=dict)
    status_counts: dict[str, dict[str, int]] = Field(default_factory=dict)
    total_run_count: int = 0
    total_status_counts: dict[str, int] = Field(default_factory=dict)


class PollResult(BaseModel):
    """Outcome of one successful poll of the node."""

    balances: BalanceSnapshot
    config: ConfigSnapshot
    run_stats: Optional[RunStatsResult] = None
