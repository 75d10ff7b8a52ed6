"""Command-line entrypoint for running the exporter server."""

from __future__ import annotations

import uvicorn

from ..common.settings import ExporterSettings
from .app import create_app


def main() -> None:
    settings = ExporterSettings()
    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_config=None,
        log_level="info",
    )


if __name__ == "__main__":
    main()
