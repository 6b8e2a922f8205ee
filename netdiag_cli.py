#!/usr/bin/env python3
"""
Network diagnostic CLI -- speed test, reachability probe, and test server.

Usage::

    python netdiag_cli.py --serve                       # run the test server
    python netdiag_cli.py --url http://host:8787        # full speed test
    python netdiag_cli.py --mode download --size 100    # download only, 100 MB
    python netdiag_cli.py --simple                      # plain text
    python netdiag_cli.py --json -o result.json         # JSON to stdout and file
    python netdiag_cli.py --reachability                # DoH + HTTP reachability table
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from netdiag.api import DiagnosticAPI, Endpoint
from netdiag.config import load_config, save_config
from netdiag.constants import DOMAINS, PAYLOAD_SIZES
from netdiag.errors import APIError
from netdiag.logging_config import configure_logging
from netdiag.reachability import ReachabilityProber
from netdiag.session import ResultSink, SessionState, SpeedTestRunner, TestMode, TestPlan, TestSession
from ui.dashboard import (
    ConsoleSink,
    ReachabilityTable,
    console,
    print_client_info,
    print_header,
    print_session_summary,
)
from ui.output import format_text_result, reachability_to_dict, save_json, session_to_dict

logger = logging.getLogger("netdiag.cli")

_SIZE_CHOICES = {size // 1_000_000: size for size in PAYLOAD_SIZES}


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _build_plan(mode: str, size_mb: int) -> TestPlan:
    """Raise ``ValueError`` if the mode or size is not offered."""
    if size_mb not in _SIZE_CHOICES:
        raise ValueError(
            f"Size must be one of {', '.join(str(s) for s in sorted(_SIZE_CHOICES))} MB"
        )
    try:
        test_mode = TestMode(mode)
    except ValueError:
        raise ValueError(f"Mode must be one of {', '.join(m.value for m in TestMode)}") from None
    return TestPlan(mode=test_mode, payload_bytes=_SIZE_CHOICES[size_mb])


def _save_defaults(args: argparse.Namespace) -> str:
    """Persist the chosen flags as the new defaults.  Returns the file path."""
    plan = _build_plan(args.mode, args.size)
    config = load_config()
    config.update(
        base_url=Endpoint.from_url(args.url).base_url,
        mode=plan.mode.value,
        payload_bytes=plan.payload_bytes,
        read_timeout=args.timeout,
        host=args.host,
        port=args.port,
    )
    return save_config(config)


# ---------------------------------------------------------------------------
# Runners
# ---------------------------------------------------------------------------

async def run_speedtest(
    endpoint: Endpoint,
    plan: TestPlan,
    *,
    json_output: bool = False,
    output_file: Optional[str] = None,
    simple: bool = False,
    read_timeout: float = 30.0,
) -> TestSession:
    """Run one session against *endpoint* and report it."""
    show_ui = not json_output and not simple

    if show_ui:
        print_header()

    client_info = None
    async with DiagnosticAPI(endpoint, read_timeout=read_timeout) as api:
        try:
            client_info = await api.get_client_info()
        except APIError as exc:
            logger.warning("Failed to fetch client info: %s", exc)

    if show_ui:
        print_client_info(client_info)
        console.print(
            f"[dim]{plan.mode.value} test, {plan.payload_bytes // 1_000_000} MB "
            f"against {endpoint.base_url}[/dim]\n"
        )

    sink = ConsoleSink() if show_ui else ResultSink()
    session = TestSession(plan=plan)
    await SpeedTestRunner(endpoint, sink, read_timeout=read_timeout).run(session)

    if show_ui:
        print_session_summary(session)
    elif simple:
        print(format_text_result(session))

    result_json = session_to_dict(session, client_info, endpoint.base_url)
    if json_output:
        print(json.dumps(result_json, indent=2))
    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"[green]Results saved to:[/green] {output_file}")

    return session


async def run_reachability(
    *,
    json_output: bool = False,
    output_file: Optional[str] = None,
    read_timeout: float = 30.0,
) -> dict:
    prober = ReachabilityProber(DOMAINS, read_timeout=read_timeout)

    if json_output:
        rows = await prober.run()
    else:
        print_header()
        with ReachabilityTable(prober.domains) as table:
            prober.on_cell = table.update_cell
            rows = await prober.run()

    result_json = reachability_to_dict(rows)
    if json_output:
        print(json.dumps(result_json, indent=2))
    if output_file:
        save_json(result_json, output_file)
    return result_json


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main() -> None:
    config = load_config()

    parser = argparse.ArgumentParser(
        description="Network diagnostic tool -- latency, throughput and reachability",
    )
    # What to run
    parser.add_argument("--serve", action="store_true", help="Run the diagnostic server")
    parser.add_argument("--reachability", "-r", action="store_true", help="Probe DNS/HTTP reachability of well-known domains")

    # Speed test parameters
    parser.add_argument("--url", "-u", default=config["base_url"], help="Diagnostic server base URL")
    parser.add_argument("--mode", "-m", default=config["mode"], choices=[m.value for m in TestMode], help="Which phases to run (default: full)")
    parser.add_argument("--size", type=int, default=config["payload_bytes"] // 1_000_000, metavar="MB", help="Payload size: 10, 25, 50 or 100 MB (default: 25)")
    parser.add_argument("--timeout", type=float, default=config["read_timeout"], metavar="SECS", help="Fail a phase after a read stalls this long")

    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")

    # Server
    parser.add_argument("--host", default=config["host"], help="Bind address for --serve")
    parser.add_argument("--port", type=int, default=config["port"], help="Port for --serve")
    parser.add_argument("--no-cors", action="store_true", help="Do not send CORS headers (--serve)")

    # Config
    parser.add_argument("--save-config", action="store_true", help="Save the given options as defaults and exit")

    args = parser.parse_args()

    configure_logging("INFO" if args.serve else "WARNING")

    if args.save_config:
        try:
            path = _save_defaults(args)
        except ValueError as exc:
            console.print(f"[red]Error: {exc}[/red]")
            sys.exit(1)
        console.print(f"[green]Defaults saved to:[/green] {path}")
        return

    if args.serve:
        from server.app import run_server
        run_server(args.host, args.port, cors=not args.no_cors)
        return

    try:
        if args.reachability:
            asyncio.run(
                run_reachability(
                    json_output=args.json,
                    output_file=args.output,
                    read_timeout=args.timeout,
                )
            )
            return

        try:
            plan = _build_plan(args.mode, args.size)
        except ValueError as exc:
            console.print(f"[red]Error: {exc}[/red]")
            sys.exit(1)

        session = asyncio.run(
            run_speedtest(
                Endpoint.from_url(args.url),
                plan,
                json_output=args.json,
                output_file=args.output,
                simple=args.simple,
                read_timeout=args.timeout,
            )
        )
        if session.state is SessionState.FAILED:
            sys.exit(1)

    except KeyboardInterrupt:
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except IOError as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
