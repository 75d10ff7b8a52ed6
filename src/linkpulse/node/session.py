"""Session login against the node."""

from __future__ import annotations

from typing import Optional

import httpx
import structlog
from opentelemetry import trace
from pydantic import SecretStr

from ..common.errors import AuthError
from .client import NodeClient

LOGGER = structlog.get_logger("linkpulse.node.session")
TRACER = trace.get_tracer("linkpulse.node.session")


def _failure_detail(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.text:
        return exc.response.text
    return str(exc)


async def authenticate(client: NodeClient, email: Optional[str], password: Optional[SecretStr]) -> None:
    """Log in and leave the session cookie in the client's jar.

    Raises :class:`AuthError` for any rejection or transport failure; the
    error payload carries the node's response body when there is one.
    """
    with TRACER.start_as_current_span("node.authenticate"):
        payload = {
            "email": email,
            "password": password.get_secret_value() if password else None,
        }
        try:
            await client.post("/sessions", payload)
        except httpx.HTTPError as exc:
            detail = _failure_detail(exc)
            raise AuthError("Node authentication failed", payload=detail) from exc
        LOGGER.debug("Authenticated against node", url=client.base_url)
