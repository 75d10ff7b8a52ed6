from __future__ import annotations

import pytest

from linkpulse.common.schemas import BalanceSnapshot, ConfigSnapshot, PollResult, RunStatsResult
from linkpulse.common.settings import ExporterSettings
from linkpulse.exporter.render import (
    build_tags,
    clean_tag_token,
    parse_additional_tags,
    render_line_protocol,
    render_tag_string,
    timestamp_ns,
)

TS = 1_700_000_000_000_000_000


@pytest.fixture
def result() -> PollResult:
    return PollResult(
        balances=BalanceSnapshot(account="0xabc", eth_balance=1.5, link_balance=25.0),
        config=ConfigSnapshot(account="0xabc", chain_id="1", oracle_contract_address="0xoracle", gas_price=20.0),
    )


@pytest.fixture
def stats() -> RunStatsResult:
    return RunStatsResult(
        spec_count=2,
        run_counts={"job-a": 1, "job-b": 1},
        status_counts={"job-a": {"completed": 1}, "job-b": {"pending": 1, "stale": 1}},
        total_run_count=2,
        total_status_counts={"completed": 1, "pending": 1, "stale": 1},
    )


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("mainnet", "mainnet"),
        (" eu-west ", "eu-west"),
        ("Node_1", "-ode-1"),
        ("a  b", "a-b"),
        ("a..b..c", "a-b--c"),
    ],
)
def test_clean_tag_token(raw, expected):
    assert clean_tag_token(raw) == expected


def test_parse_additional_tags_drops_malformed_entries():
    tags = parse_additional_tags("region=eu, broken, team = oracle ,empty=, =value,a=b=c")
    assert tags == {"region": "eu", "team": "oracle"}


def test_build_tags_fixed_tags_override_additional(monkeypatch):
    monkeypatch.setenv("ADDITIONAL_TAGS", "network=ropsten,region=eu")
    monkeypatch.setenv("TAG_NETWORK", "mainnet")
    monkeypatch.setenv("TAG_TECHNOLOGY", "chainlink")
    settings = ExporterSettings(_env_file=None)

    tags = build_tags(settings)

    assert tags == {"network": "mainnet", "region": "eu", "technology": "chainlink"}
    assert render_tag_string(tags) == "network=mainnet,region=eu,technology=chainlink"


def test_render_basic_line(result):
    line = render_line_protocol(result, "chainlink-node", "network=mainnet", timestamp=TS)
    assert line == (
        "chainlink-node,network=mainnet,account=0xabc,oracle=0xoracle "
        f"eth=1.5,link=25.0,gasPrice=20.0 {TS}"
    )


def test_render_without_tags(result):
    line = render_line_protocol(result, "chainlink-node", "", timestamp=TS)
    assert line.startswith("chainlink-node,account=0xabc,oracle=0xoracle ")


def test_render_ignores_run_stats_when_not_tracked(result, stats):
    line = render_line_protocol(result.model_copy(update={"run_stats": stats}), "m", timestamp=TS)
    assert "runs" not in line


def test_render_run_totals(result, stats):
    output = render_line_protocol(
        result.model_copy(update={"run_stats": stats}), "m", timestamp=TS, track_runs=True
    )
    assert output == (
        "m,account=0xabc,oracle=0xoracle eth=1.5,link=25.0,gasPrice=20.0,specs=2i,runs=2i,"
        f"runs_completed=1i,runs_pending=1i,runs_stale=1i {TS}"
    )


def test_render_per_job_lines(result, stats):
    lines = render_line_protocol(
        result.model_copy(update={"run_stats": stats}), "m", timestamp=TS, track_jobs=True
    ).split("\n")

    assert len(lines) == 3
    assert "specs=" not in lines[0]
    assert lines[1] == f"m,account=0xabc,oracle=0xoracle,job=job-a runs=1i,runs_completed=1i {TS}"
    assert lines[2] == f"m,account=0xabc,oracle=0xoracle,job=job-b runs=1i,runs_pending=1i,runs_stale=1i {TS}"


def test_render_escapes_tag_values(result):
    odd = result.model_copy(
        update={"config": ConfigSnapshot(account="a b", oracle_contract_address="x,y=z", gas_price=1.0)}
    )
    line = render_line_protocol(odd, "m", timestamp=TS)
    assert line.startswith("m,account=a\\ b,oracle=x\\,y\\=z ")


def test_timestamp_is_millisecond_resolution():
    assert timestamp_ns(1_700_000_000.123456) == 1_700_000_000_123_000_000
