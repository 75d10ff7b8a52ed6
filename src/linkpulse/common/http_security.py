"""Access control for the exporter's self-metrics endpoint."""

from __future__ import annotations

import hmac
from ipaddress import ip_address
from typing import Optional

import structlog
from fastapi import HTTPException, Request, status

from .settings import ExporterSettings

LOGGER = structlog.get_logger("linkpulse.http_security")


def _client_host(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _bearer_token(request: Request) -> str:
    scheme, _, credentials = (request.headers.get("authorization") or "").partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return credentials.strip()


def require_metrics_access(request: Request, settings: ExporterSettings) -> None:
    """Gate ``/metrics`` for one exporter.

    With ``metrics_token`` set, only a matching bearer token gets through and
    the client address is ignored. Without one, the client must sit inside
    ``metrics_allowed_cidrs``, which defaults to loopback.
    """
    expected = settings.metrics_token.get_secret_value() if settings.metrics_token else ""
    if expected:
        if not hmac.compare_digest(_bearer_token(request).encode(), expected.encode()):
            LOGGER.warning("Rejected metrics scrape", reason="token", client=_client_host(request))
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid metrics token",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return

    host = _client_host(request)
    try:
        address = ip_address(host) if host else None
    except ValueError:
        address = None
    if address is None or not any(address in network for network in settings.metrics_allowed_cidrs):
        LOGGER.warning("Rejected metrics scrape", reason="address", client=host)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Metrics access restricted")
