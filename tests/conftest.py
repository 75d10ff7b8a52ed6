from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from linkpulse.common.observability import configure_logging

from tests.utils.node import FakeNode, run_record


@pytest.fixture(scope="session", autouse=True)
def structured_logging() -> None:
    # structlog's default logger prints to stdout, which the CLI tests read
    configure_logging("linkpulse.tests", "WARNING")


@pytest.fixture
def fake_node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def two_jobs(fake_node: FakeNode, now: datetime) -> FakeNode:
    for job_id in ("job-a", "job-b"):
        fake_node.add_job(
            job_id,
            [
                run_record("completed", now - timedelta(hours=2)),
                run_record("pending_confirmations", now - timedelta(hours=1)),
            ],
        )
    return fake_node
