"""HTTP access to a Chainlink node's management API."""

from __future__ import annotations

from typing import Any, Optional

import httpx
import structlog

from ..common.errors import DataError, TransportError

LOGGER = structlog.get_logger("linkpulse.node.client")


class NodeClient:
    """Wraps an ``httpx.AsyncClient`` bound to one node.

    The underlying client keeps the session cookie jar, so a login performed
    through :meth:`post` is reused by every later request.
    """

    def __init__(self, http_client: httpx.AsyncClient, base_url: str) -> None:
        self.http = http_client
        self.base_url = base_url.rstrip("/")

    @classmethod
    def create(cls, base_url: str, timeout_seconds: float = 10.0, **kwargs: Any) -> "NodeClient":
        http_client = httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds), **kwargs)
        return cls(http_client, base_url)

    async def aclose(self) -> None:
        await self.http.aclose()

    def url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{path}"

    async def post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        """POST JSON; transport failures surface as raw ``httpx`` errors."""
        response = await self.http.post(self.url(path), json=payload)
        response.raise_for_status()
        return response

    async def get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        url = self.url(path)
        try:
            response = await self.http.get(url, params=params)
        except httpx.HTTPError as exc:
            raise TransportError(f"GET {path} failed: {exc}", payload=str(exc)) from exc
        if response.is_error:
            LOGGER.error("Node request failed", path=path, status=response.status_code, body=response.text[:2000])
            raise TransportError(f"GET {path} returned HTTP {response.status_code}", payload=response.text)
        try:
            return response.json()
        except ValueError as exc:
            raise DataError(f"GET {path} returned a non-JSON body", payload=response.text) from exc
