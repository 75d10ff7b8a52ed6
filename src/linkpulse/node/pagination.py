"""Cursor pagination over node listing endpoints."""

from __future__ import annotations

from typing import Any, Optional

import structlog

from ..common.errors import DataError
from ..common.schemas import PageSet
from .client import NodeClient

LOGGER = structlog.get_logger("linkpulse.node.pagination")


def _page_records(payload: Any, path: str) -> list[dict[str, Any]]:
    data = payload.get("data") if isinstance(payload, dict) else None
    if data is None:
        return []
    if not isinstance(data, list):
        raise DataError(f"Listing {path} returned a non-list data member", payload=payload)
    if not all(isinstance(record, dict) for record in data):
        raise DataError(f"Listing {path} returned a non-object record", payload=payload)
    return data


def _next_cursor(payload: Any) -> Optional[str]:
    links = payload.get("links") if isinstance(payload, dict) else None
    if not isinstance(links, dict):
        return None
    return links.get("next") or None


async def fetch_all_pages(
    client: NodeClient,
    path: str,
    params: Optional[dict[str, Any]] = None,
) -> PageSet:
    """Fetch the first page and follow ``links.next`` until the node stops sending one.

    ``links.next`` is resolved against the node URL. There is no page cap: a
    node that keeps returning a cursor keeps this loop running.
    """
    payload = await client.get_json(path, params=params)
    records = list(_page_records(payload, path))

    cursor = _next_cursor(payload)
    while cursor:
        LOGGER.debug("Paginating", next=cursor)
        payload = await client.get_json(cursor)
        records.extend(_page_records(payload, cursor))
        cursor = _next_cursor(payload)

    return PageSet(records=records)
