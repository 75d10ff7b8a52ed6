from __future__ import annotations

from datetime import timedelta

import httpx
import pytest
from fastapi.testclient import TestClient

from linkpulse import __version__
from linkpulse.common.settings import ExporterSettings
from linkpulse.exporter.app import create_app

from tests.utils.node import ACCOUNT, NODE_URL, ORACLE, run_record


def _settings(**overrides) -> ExporterSettings:
    values = {
        "node_url": NODE_URL,
        "node_email": "ops@example.com",
        "node_password": "hunter2",
        "tag_network": "mainnet",
        "metrics_token": "scrape-token",
        "log_level": "WARNING",
    }
    values.update(overrides)
    return ExporterSettings(_env_file=None, **values)


@pytest.fixture
def make_client(fake_node):
    clients: list[TestClient] = []

    def factory(**overrides) -> TestClient:
        app = create_app(_settings(**overrides), client=fake_node.client())
        test_client = TestClient(app)
        test_client.__enter__()
        clients.append(test_client)
        return test_client

    yield factory
    for test_client in clients:
        test_client.__exit__(None, None, None)


def test_root_reports_name_and_version(make_client):
    response = make_client().get("/")
    assert response.json() == {"name": "linkpulse", "version": __version__}


def test_ping(make_client):
    response = make_client().get("/ping")
    assert response.status_code == 200
    assert response.text == "OK"


def test_influxdb_renders_line_protocol(make_client):
    response = make_client().get("/influxdb")

    assert response.status_code == 200
    series, fields, timestamp = response.text.split(" ")
    assert series == f"chainlink-node,network=mainnet,account={ACCOUNT},oracle={ORACLE}"
    assert fields == "eth=1.5,link=25.0,gasPrice=20.0"
    assert timestamp.isdigit() and timestamp.endswith("000000")


def test_influxdb_auth_failure_returns_empty_body(make_client, fake_node):
    fake_node.login_status = 401
    response = make_client().get("/influxdb")

    assert response.status_code == 200
    assert response.text == ""


def test_influxdb_shape_error_returns_500(make_client, fake_node):
    fake_node.balances = {"data": []}
    response = make_client().get("/influxdb")
    assert response.status_code == 500


def test_influxdb_unexpected_error_returns_500(make_client, fake_node):
    def explode(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("unexpected")

    fake_node.hooks["/v2/config"] = explode
    response = make_client().get("/influxdb")
    assert response.status_code == 500


def test_influxdb_run_stats_gated_between_scrapes(make_client, fake_node, now):
    fake_node.add_job("job-a", [run_record("completed", now - timedelta(hours=1))])
    client = make_client(track_runs=True, track_jobs=True, extended_metrics_interval_seconds=600)

    first = client.get("/influxdb").text.split("\n")
    second = client.get("/influxdb").text.split("\n")

    assert len(first) == 2
    assert "specs=1i,runs=1i,runs_completed=1i" in first[0]
    assert ",job=job-a runs=1i,runs_completed=1i " in first[1]
    assert len(second) == 1
    assert "runs=" not in second[0]
    assert fake_node.count("/v2/specs") == 1


def test_metrics_requires_token(make_client):
    client = make_client()
    assert client.get("/metrics").status_code == 401

    response = client.get("/metrics", headers={"Authorization": "Bearer scrape-token"})
    assert response.status_code == 200
    assert "linkpulse_polls_total" in response.text
