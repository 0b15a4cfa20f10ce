#!/usr/bin/env python3
"""Query a game server and print its MOTD as HTML, runs or plain text."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from motd_parser import HARD_MAX_DEPTH, MAX_DEPTH, parse
from motd_render import render, render_plain, render_runs
from status_client import (
    ServerStatus,
    StatusAddressError,
    StatusConnectError,
    StatusError,
    query_status,
    resolve_address,
)

logger = logging.getLogger("motd_cli")

ERROR_CODE_GENERAL = 1
ERROR_CODE_ADDRESS = 2
ERROR_CODE_STREAM = 3

DEFAULT_TIMEOUT_SECONDS = 5.0


def _depth(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {raw!r}") from None
    if not 0 <= value <= HARD_MAX_DEPTH:
        raise argparse.ArgumentTypeError(f"must be between 0 and {HARD_MAX_DEPTH}")
    return value


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render a server's legacy MOTD")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("address", nargs="?", help="Server address, host[:port]; SRV is used when no port is given")
    source.add_argument("--text", help="Render this legacy-encoded string instead of querying")
    parser.add_argument(
        "--format",
        choices=("html", "runs", "plain", "json"),
        default="html",
        help="Output format (json prints the full status response and needs an address)",
    )
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT_SECONDS, help="Query timeout in seconds")
    parser.add_argument(
        "--max-depth",
        type=_depth,
        default=MAX_DEPTH,
        help=f"Maximum color nesting depth (0-{HARD_MAX_DEPTH})",
    )
    parser.add_argument("--strict", action="store_true", help="Fail on unrecognized formatting codes")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)
    if args.text is not None and args.format == "json":
        parser.error("--format json needs a server address, not --text")
    return args


def render_text(text: str, fmt: str, *, max_depth: int = MAX_DEPTH, strict: bool = False) -> str:
    document = parse(text, max_depth=max_depth, strict=strict)
    for warning in document.warnings:
        logger.warning("Unrecognized formatting code %r at position %d", warning.code, warning.position)
    if fmt == "runs":
        return json.dumps(render_runs(document), separators=(",", ":"))
    if fmt == "plain":
        return render_plain(document)
    return render(document)


async def _lookup(address: str, timeout: float) -> ServerStatus:
    host, port = await resolve_address(address, timeout=timeout)
    return await query_status(host, port, timeout=timeout)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.text is not None:
        description = args.text
    else:
        try:
            status = asyncio.run(_lookup(args.address, args.timeout))
        except (ValueError, StatusAddressError) as exc:
            print(f"Address could not be parsed: {exc}", file=sys.stderr)
            return ERROR_CODE_ADDRESS
        except StatusConnectError as exc:
            print(f"Stream connection error: {exc}", file=sys.stderr)
            return ERROR_CODE_STREAM
        except StatusError as exc:
            print(f"Status query failed: {exc}", file=sys.stderr)
            return ERROR_CODE_GENERAL
        if args.format == "json":
            print(json.dumps(status.raw, indent=2))
            return 0
        description = status.description

    try:
        print(render_text(description, args.format, max_depth=args.max_depth, strict=args.strict))
    except ValueError as exc:
        print(f"MOTD could not be parsed: {exc}", file=sys.stderr)
        return ERROR_CODE_GENERAL
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
