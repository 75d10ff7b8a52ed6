"""CLI helper for polling a node once and printing the result."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from pydantic import SecretStr

from ..common.errors import PollError
from ..common.observability import configure_logging
from ..common.settings import ExporterSettings
from ..exporter.render import build_tags, render_line_protocol, render_tag_string
from ..node.client import NodeClient
from ..node.poller import NodePoller


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Poll a Chainlink node once")
    parser.add_argument("--url", help="Node base URL (defaults to CHAINLINK_URL)")
    parser.add_argument("--email", help="Login email (defaults to CHAINLINK_EMAIL)")
    parser.add_argument("--password", help="Login password (defaults to CHAINLINK_PASSWORD)")
    parser.add_argument("--track-runs", action="store_true", help="Include node-wide run statistics")
    parser.add_argument("--track-jobs", action="store_true", help="Include per-job run statistics")
    parser.add_argument("--json", action="store_true", help="Output the poll result as JSON")
    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> ExporterSettings:
    settings = ExporterSettings()
    overrides: dict[str, object] = {}
    if args.url:
        overrides["node_url"] = args.url.rstrip("/")
    if args.email:
        overrides["node_email"] = args.email
    if args.password:
        overrides["node_password"] = SecretStr(args.password)
    if args.track_runs:
        overrides["track_runs"] = True
    if args.track_jobs:
        overrides["track_jobs"] = True
    return settings.model_copy(update=overrides)


async def poll_once(
    settings: ExporterSettings,
    as_json: bool = False,
    client: NodeClient | None = None,
) -> int:
    node_config = settings.node_config()
    node_client = client or NodeClient.create(settings.node_url, settings.request_timeout_seconds)
    try:
        result = await NodePoller(node_client, node_config).poll()
    except PollError as exc:
        print(f"Poll failed ({exc.kind.value}): {exc}", file=sys.stderr)
        return 1
    finally:
        await node_client.aclose()

    if result is None:
        print("Authentication failed", file=sys.stderr)
        return 2

    if as_json:
        print(json.dumps(result.model_dump(mode="json"), indent=2))
        return 0

    print(
        render_line_protocol(
            result,
            measurement=settings.measurement,
            tag_string=render_tag_string(build_tags(settings)),
            track_runs=settings.track_runs,
            track_jobs=settings.track_jobs,
        )
    )
    return 0


async def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings(args)
    configure_logging("linkpulse.cli", settings.log_level, node_url=settings.node_url)
    return await poll_once(settings, as_json=args.json)


def main() -> None:
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
