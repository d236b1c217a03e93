#!/usr/bin/env python3
"""
CLI tool for interacting with the telemetry service.

Usage:
    python -m telemetry_svc.cli analytics
    python -m telemetry_svc.cli health
    python -m telemetry_svc.cli session session_3f2a
    python -m telemetry_svc.cli export --format csv --output events.csv
    python -m telemetry_svc.cli clear --older-than-days 30
    python -m telemetry_svc.cli summarize telemetry-export.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import httpx
from colorama import Fore, Style, init as colorama_init

from .telemetry.export import parse_json
from .telemetry.manager import TelemetryManager


def colorize(text: str, color: str) -> str:
    return f"{color}{text}{Style.RESET_ALL}"


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def print_json(data: Any, indent: int = 2) -> None:
    print(json.dumps(data, indent=indent, default=str))


def print_analytics(data: dict[str, Any]) -> None:
    """Pretty print an analytics snapshot dict."""
    print(colorize("\nSessions:", Style.BRIGHT), data.get("total_sessions", 0))
    print(colorize("Events:", Style.BRIGHT), data.get("total_events", 0))
    print(colorize("Avg session:", Style.BRIGHT), f"{data.get('average_session_duration', 0) / 1000:.1f}s")
    print(colorize("Success rate:", Style.BRIGHT), _pct(data.get("success_rate", 0)))
    print(colorize("Avg quality:", Style.BRIGHT), f"{data.get('average_quality', 0):.2f}")
    print(colorize("Satisfaction:", Style.BRIGHT), _pct(data.get("user_satisfaction", 0)))

    prompts = data.get("top_prompts", [])
    print(colorize("\nTop prompts:", Style.BRIGHT))
    for p in prompts:
        print(f"  {colorize(str(p['count']).rjust(4), Fore.CYAN)}  {p['prompt']}")
    if not prompts:
        print(colorize("  (none)", Style.DIM))

    agents = data.get("agent_performance", [])
    if agents:
        print(colorize("\nAgents:", Style.BRIGHT))
        for a in agents:
            print(
                f"  {colorize(a['agent'], Fore.GREEN)}: {a['usage']} uses, "
                f"{_pct(a['success_rate'])} completed, {a['average_response_time']:.0f}ms avg"
            )

    issues = data.get("common_issues", [])
    if issues:
        print(colorize("\nCommon issues:", Style.BRIGHT))
        for i in issues:
            print(f"  {colorize(str(i['count']).rjust(4), Fore.RED)}  [{i['severity']}] {i['issue']}")

    opportunities = data.get("improvement_opportunities", [])
    if opportunities:
        print(colorize("\nImprovement opportunities:", Style.BRIGHT))
        for o in opportunities:
            print(f"  {colorize(o['area'], Fore.YELLOW)} ({o['impact']}): {o['description']}")


async def _get(args, path: str, **params) -> httpx.Response:
    async with httpx.AsyncClient(base_url=args.base_url) as client:
        return await client.get(path, params=params or None)


async def _post(args, path: str, body: dict[str, Any]) -> httpx.Response:
    async with httpx.AsyncClient(base_url=args.base_url) as client:
        return await client.post(path, json=body)


def _fail(response: httpx.Response) -> int:
    print(colorize(f"Error: {response.status_code}", Fore.RED), file=sys.stderr)
    print(response.text, file=sys.stderr)
    return 1


async def cmd_analytics(args):
    """Show the current analytics snapshot."""
    response = await _get(args, "/telemetry/analytics")
    if response.status_code != 200:
        return _fail(response)

    if args.json:
        print_json(response.json())
    else:
        print_analytics(response.json())
    return 0


async def cmd_health(args):
    """Show event and error rates over the last hour."""
    response = await _get(args, "/telemetry/health")
    if response.status_code != 200:
        return _fail(response)

    data = response.json()
    print(colorize("\nUptime:", Style.BRIGHT), f"{data['uptime_ms'] / 1000:.0f}s")
    print(colorize("Events (1h):", Style.BRIGHT), data["event_rate"])
    print(colorize("Error rate (1h):", Style.BRIGHT), _pct(data["error_rate"]))
    print(colorize("Sessions:", Style.BRIGHT), data["session_count"])
    return 0


async def cmd_session(args):
    """Show a session and its events."""
    response = await _get(args, f"/telemetry/sessions/{args.session_id}")
    if response.status_code == 404:
        print(colorize(f"Session not found: {args.session_id}", Fore.YELLOW), file=sys.stderr)
        return 1
    if response.status_code != 200:
        return _fail(response)
    session = response.json()

    response = await _get(args, f"/telemetry/sessions/{args.session_id}/events")
    if response.status_code != 200:
        return _fail(response)
    events = response.json()["events"]

    print(colorize("\nSession:", Style.BRIGHT), session["id"])
    print(colorize("User:", Style.BRIGHT), session.get("user_id") or colorize("(anonymous)", Style.DIM))
    print(colorize("Started:", Style.BRIGHT), session["start_time"])
    print(colorize("Ended:", Style.BRIGHT), session.get("end_time") or colorize("(open)", Style.DIM))

    print(colorize(f"\nEvents ({len(events)}):", Style.BRIGHT))
    for e in events:
        print(f"  {colorize(e['timestamp'], Style.DIM)} {colorize(e['kind'].ljust(8), Fore.CYAN)} {e['id']}")
    return 0


async def cmd_export(args):
    """Download an export."""
    response = await _get(args, "/telemetry/export", format=args.format)
    if response.status_code != 200:
        return _fail(response)

    if args.output:
        Path(args.output).write_text(response.text, encoding="utf-8")
        print(colorize("Wrote", Fore.GREEN), args.output)
    else:
        print(response.text)
    return 0


async def cmd_clear(args):
    """Drop data older than N days."""
    response = await _post(args, "/telemetry/maintenance/clear", {"older_than_days": args.older_than_days})
    if response.status_code != 200:
        return _fail(response)

    data = response.json()
    print(
        colorize("Cleared", Fore.GREEN),
        f"{data['events_removed']} events and {data['sessions_removed']} sessions before {data['cutoff']}",
    )
    return 0


def cmd_summarize(args):
    """Recompute analytics from a JSON export file, offline."""
    manager = TelemetryManager(sink=None)
    manager.load_data(parse_json(Path(args.file).read_text(encoding="utf-8")))
    snapshot = manager.get_analytics().to_dict()

    if args.json:
        print_json(snapshot)
    else:
        print_analytics(snapshot)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="CLI tool for the Telemetry Service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--base-url",
        default="http://localhost:8060",
        help="Base URL of the telemetry service",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    analytics_parser = subparsers.add_parser("analytics", help="Show analytics snapshot")
    analytics_parser.add_argument("--json", action="store_true", help="Print raw JSON")

    subparsers.add_parser("health", help="Show event stream health")

    session_parser = subparsers.add_parser("session", help="Show a session and its events")
    session_parser.add_argument("session_id", help="Session ID")

    export_parser = subparsers.add_parser("export", help="Export telemetry data")
    export_parser.add_argument("--format", choices=["json", "csv"], default="json")
    export_parser.add_argument("--output", "-o", help="Write to file instead of stdout")

    clear_parser = subparsers.add_parser("clear", help="Drop old telemetry data")
    clear_parser.add_argument("--older-than-days", type=float, required=True)

    summarize_parser = subparsers.add_parser("summarize", help="Analyze a JSON export file offline")
    summarize_parser.add_argument("file", help="Path to a JSON export")
    summarize_parser.add_argument("--json", action="store_true", help="Print raw JSON")

    return parser


_ASYNC_COMMANDS = {
    "analytics": cmd_analytics,
    "health": cmd_health,
    "session": cmd_session,
    "export": cmd_export,
    "clear": cmd_clear,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "summarize":
        return cmd_summarize(args)
    if args.command in _ASYNC_COMMANDS:
        return asyncio.run(_ASYNC_COMMANDS[args.command](args))

    parser.print_help()
    return 1


def run() -> None:
    """Console entry point."""
    colorama_init()
    sys.exit(main())


if __name__ == "__main__":
    run()
