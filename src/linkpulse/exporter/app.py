"""HTTP server exposing node metrics as InfluxDB line protocol."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.responses import PlainTextResponse
import structlog

from .. import __version__
from ..common.errors import PollError
from ..common.http_security import require_metrics_access
from ..common.metrics import GLOBAL_REGISTRY
from ..common.observability import configure_logging, configure_tracing, instrument_fastapi_app
from ..common.settings import ExporterSettings
from ..node.client import NodeClient
from ..node.poller import NodePoller
from ..node.scheduler import ExtendedMetricsScheduler, SchedulerState
from .render import build_tags, render_line_protocol, render_tag_string

LOGGER = structlog.get_logger("linkpulse.exporter")

SERVICE_NAME = "linkpulse"


class ExporterState:
    """Process-wide collaborators shared by every request."""

    def __init__(self, settings: ExporterSettings, client: NodeClient) -> None:
        self.settings = settings
        self.client = client
        self.tag_string = render_tag_string(build_tags(settings))
        self.scheduler_state = SchedulerState()
        node_config = settings.node_config()
        self.scheduler = ExtendedMetricsScheduler(
            self.scheduler_state,
            interval_seconds=node_config.extended_metrics_interval_seconds,
            enabled=node_config.extended_metrics_enabled,
        )
        self.poller = NodePoller(client, node_config, self.scheduler)

    async def render(self) -> str:
        result = await self.poller.poll()
        if result is None:
            return ""
        return render_line_protocol(
            result,
            measurement=self.settings.measurement,
            tag_string=self.tag_string,
            track_runs=self.settings.track_runs,
            track_jobs=self.settings.track_jobs,
        )


def create_app(
    settings: Optional[ExporterSettings] = None,
    client: Optional[NodeClient] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_settings = settings or ExporterSettings()
        configure_logging(SERVICE_NAME, app_settings.log_level, node_url=app_settings.node_url)
        configure_tracing(app_settings, SERVICE_NAME)
        node_client = client or NodeClient.create(app_settings.node_url, app_settings.request_timeout_seconds)
        app.state.exporter = ExporterState(app_settings, node_client)
        LOGGER.info(
            "Exporter ready",
            node_url=app_settings.node_url,
            track_runs=app_settings.track_runs,
            track_jobs=app_settings.track_jobs,
        )
        try:
            yield
        finally:
            await node_client.aclose()

    app = FastAPI(lifespan=lifespan)
    instrument_fastapi_app(app)

    def get_state(request: Request) -> ExporterState:
        return request.app.state.exporter  # type: ignore[attr-defined]

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # noqa: ANN001 - FastAPI middleware signature
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start
        log_kwargs = {
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round(duration * 1000, 2),
        }
        if response.status_code >= 500:
            LOGGER.error("http_request", **log_kwargs)
        else:
            LOGGER.debug("http_request", **log_kwargs)
        return response

    @app.get("/")
    async def describe() -> dict[str, str]:
        return {"name": SERVICE_NAME, "version": __version__}

    @app.get("/ping", response_class=PlainTextResponse)
    async def ping() -> PlainTextResponse:
        return PlainTextResponse("OK")

    @app.get("/influxdb", response_class=PlainTextResponse)
    async def influxdb(state: ExporterState = Depends(get_state)) -> Response:
        try:
            body = await state.render()
        except PollError as exc:
            LOGGER.error("Node poll failed", **exc.log_fields())
            return PlainTextResponse("Internal Server Error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
        except Exception as exc:  # noqa: BLE001 - any failure becomes a 500 for the scraper
            LOGGER.exception("Unexpected poll failure", error=str(exc))
            return PlainTextResponse("Internal Server Error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return PlainTextResponse(body)

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics_endpoint(request: Request, state: ExporterState = Depends(get_state)) -> PlainTextResponse:
        require_metrics_access(request, state.settings)
        return PlainTextResponse(GLOBAL_REGISTRY.render())

    return app
