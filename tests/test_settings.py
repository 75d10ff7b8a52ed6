from __future__ import annotations

import pytest
from pydantic import ValidationError

from linkpulse.common.settings import ExporterSettings


def test_defaults(monkeypatch):
    for name in ("CHAINLINK_URL", "TRACK_RUNS", "TRACK_JOBS", "CHAINLINK_EMAIL"):
        monkeypatch.delenv(name, raising=False)
    settings = ExporterSettings(_env_file=None)

    assert settings.node_url == "http://localhost:6688"
    assert settings.server_port == 8080
    assert settings.measurement == "chainlink-node"
    assert settings.page_size == 5000
    assert settings.extended_metrics_enabled is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("CHAINLINK_URL", "https://node.example.com/ ")
    monkeypatch.setenv("CHAINLINK_EMAIL", "ops@example.com")
    monkeypatch.setenv("CHAINLINK_PASSWORD", "hunter2")
    monkeypatch.setenv("CHAINLINK_PAGE_SIZE", "250")
    monkeypatch.setenv("CHAINLINK_STALE_AGE", "900")
    monkeypatch.setenv("TRACK_JOBS", "true")
    monkeypatch.setenv("EXTENDED_METRICS_INTERVAL", "120")
    monkeypatch.setenv("TAG_HOST", "  ")

    settings = ExporterSettings(_env_file=None)
    config = settings.node_config()

    assert settings.node_url == "https://node.example.com"
    assert settings.tag_host is None
    assert config.url == "https://node.example.com"
    assert config.email == "ops@example.com"
    assert config.password.get_secret_value() == "hunter2"
    assert config.page_size == 250
    assert config.stale_age_seconds == 900
    assert config.track_jobs is True
    assert config.extended_metrics_enabled is True
    assert config.extended_metrics_interval_seconds == 120


def test_page_size_must_be_positive(monkeypatch):
    monkeypatch.setenv("CHAINLINK_PAGE_SIZE", "0")
    with pytest.raises(ValidationError):
        ExporterSettings(_env_file=None)


def test_metrics_networks_from_environment(monkeypatch):
    monkeypatch.setenv("LINKPULSE_METRICS_ALLOWED_CIDRS", "10.0.0.0/8, fd00::/8")
    settings = ExporterSettings(_env_file=None)
    assert [str(network) for network in settings.metrics_allowed_cidrs] == ["10.0.0.0/8", "fd00::/8"]


def test_metrics_networks_reject_garbage(monkeypatch):
    monkeypatch.setenv("LINKPULSE_METRICS_ALLOWED_CIDRS", "localhost")
    with pytest.raises(ValidationError):
        ExporterSettings(_env_file=None)
