"""Application configuration models shared by the exporter and CLI."""

from __future__ import annotations

from ipaddress import ip_network
from typing import Annotated, Optional

from pydantic import Field, IPvAnyNetwork, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .schemas import NodeConfig


def env_field(default, env_name: str):
    return Field(default, validation_alias=env_name)


class ExporterSettings(BaseSettings):
    """Runtime settings for the node exporter service."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", populate_by_name=True)

    server_host: str = env_field("0.0.0.0", "SERVER_HOST")
    server_port: int = env_field(8080, "SERVER_PORT")
    node_url: str = env_field("http://localhost:6688", "CHAINLINK_URL")
    node_email: Optional[str] = env_field(None, "CHAINLINK_EMAIL")
    node_password: Optional[SecretStr] = env_field(None, "CHAINLINK_PASSWORD")
    page_size: int = env_field(5000, "CHAINLINK_PAGE_SIZE")
    stale_age_seconds: float = env_field(3600.0, "CHAINLINK_STALE_AGE")
    request_timeout_seconds: float = env_field(10.0, "CHAINLINK_TIMEOUT")
    track_runs: bool = env_field(False, "TRACK_RUNS")
    track_jobs: bool = env_field(False, "TRACK_JOBS")
    extended_metrics_interval_seconds: float = env_field(300.0, "EXTENDED_METRICS_INTERVAL")
    measurement: str = env_field("chainlink-node", "MEASUREMENT")
    additional_tags: str = env_field("", "ADDITIONAL_TAGS")
    tag_technology: Optional[str] = env_field(None, "TAG_TECHNOLOGY")
    tag_blockchain: Optional[str] = env_field(None, "TAG_BLOCKCHAIN")
    tag_network: Optional[str] = env_field(None, "TAG_NETWORK")
    tag_host: Optional[str] = env_field(None, "TAG_HOST")
    metrics_token: Optional[SecretStr] = env_field(None, "LINKPULSE_METRICS_TOKEN")
    metrics_allowed_cidrs: Annotated[list[IPvAnyNetwork], NoDecode] = Field(
        default_factory=lambda: [ip_network("127.0.0.0/8"), ip_network("::1/128")],
        validation_alias="LINKPULSE_METRICS_ALLOWED_CIDRS",
    )
    log_level: str = env_field("INFO", "LOG_LEVEL")
    otel_exporter_endpoint: Optional[str] = env_field(None, "LINKPULSE_OTEL_EXPORTER_ENDPOINT")
    otel_exporter_headers: Optional[str] = env_field(None, "LINKPULSE_OTEL_EXPORTER_HEADERS")
    otel_sampler_ratio: float = env_field(0.1, "LINKPULSE_OTEL_SAMPLER_RATIO")

    @field_validator("node_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value):
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value

    @field_validator("node_email", "tag_technology", "tag_blockchain", "tag_network", "tag_host", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
        return value

    @field_validator("metrics_allowed_cidrs", mode="before")
    @classmethod
    def _split_metrics_cidrs(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("page_size")
    @classmethod
    def _positive_page_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("page size must be at least 1")
        return value

    @property
    def extended_metrics_enabled(self) -> bool:
        return self.track_runs or self.track_jobs

    def node_config(self) -> NodeConfig:
        return NodeConfig(
            url=self.node_url,
            email=self.node_email,
            password=self.node_password,
            page_size=self.page_size,
            stale_age_seconds=self.stale_age_seconds,
            track_runs=self.track_runs,
            track_jobs=self.track_jobs,
            extended_metrics_interval_seconds=self.extended_metrics_interval_seconds,
        )
