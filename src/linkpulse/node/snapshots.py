"""Balance and configuration snapshots."""

from __future__ import annotations

import asyncio
import re
from typing import Any

import structlog
from opentelemetry import trace

from ..common.errors import DataError
from ..common.schemas import BalanceSnapshot, ConfigSnapshot
from .client import NodeClient

LOGGER = structlog.get_logger("linkpulse.node.snapshots")
TRACER = trace.get_tracer("linkpulse.node.snapshots")

WEI = 10**18
GWEI = 10**9

BALANCES_TYPE = "accountBalances"
CONFIG_TYPE = "configWhitelists"

_INT_PREFIX = re.compile(r"\s*\+?(\d+)")


def parse_int(raw: Any) -> int:
    """Leading-integer parse of a raw numeric field.

    ``"12abc"`` yields 12, floats are truncated, and anything unparseable or
    negative yields 0. Only decimal digits are read: a ``"0x1f"`` string
    yields 0, not 31. The node reports wei and gas prices as decimal strings.
    """
    if isinstance(raw, bool) or raw is None:
        return 0
    if isinstance(raw, int):
        return max(raw, 0)
    if isinstance(raw, float):
        if raw != raw or raw in (float("inf"), float("-inf")):
            return 0
        return max(int(raw), 0)
    if isinstance(raw, str):
        match = _INT_PREFIX.match(raw)
        if match:
            return int(match.group(1))
    return 0


async def fetch_balances(client: NodeClient) -> BalanceSnapshot:
    with TRACER.start_as_current_span("node.fetch_balances"):
        payload = await client.get_json("/v2/user/balances")
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or not data or not isinstance(data[0], dict) or data[0].get("type") != BALANCES_TYPE:
            raise DataError("Invalid Balances Result", payload=payload)

        attributes = data[0].get("attributes") or {}
        return BalanceSnapshot(
            account=attributes.get("address"),
            eth_balance=parse_int(attributes.get("ethBalance")) / WEI,
            link_balance=parse_int(attributes.get("linkBalance")) / WEI,
        )


async def fetch_config(client: NodeClient) -> ConfigSnapshot:
    with TRACER.start_as_current_span("node.fetch_config"):
        payload = await client.get_json("/v2/config")
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict) or data.get("type") != CONFIG_TYPE:
            raise DataError("Invalid Config Result", payload=payload)

        attributes = data.get("attributes") or {}
        chain_id = attributes.get("ethChainId")
        return ConfigSnapshot(
            account=attributes.get("accountAddress"),
            chain_id=str(chain_id) if chain_id is not None else None,
            link_contract_address=attributes.get("linkContractAddress"),
            oracle_contract_address=attributes.get("oracleContractAddress"),
            gas_price=parse_int(attributes.get("ethGasPriceDefault")) / GWEI,
        )


async def fetch_snapshots(client: NodeClient) -> tuple[BalanceSnapshot, ConfigSnapshot]:
    balances, config = await asyncio.gather(fetch_balances(client), fetch_config(client))
    LOGGER.debug("Fetched node snapshots", balances=balances.model_dump(), config=config.model_dump())
    return balances, config
