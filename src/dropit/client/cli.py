"""Command-line client for the DropIt server.

Submits requests and shows negotiation progress.  Output formats: table
(default) or JSON.

Usage::

    python -m dropit.client.cli submit "I want a refund" --phone 4155552671 --order ORD1 --watch
    python -m dropit.client.cli status 3f9c2e... --format json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from dropit.client.poller import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SERVER_URL,
    DropItClient,
    NegotiationPoller,
    describe_phase,
)
from dropit.domain.errors import DropItError


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser.

    Returns:
        A configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(description="Have DropIt call customer service for you")
    parser.add_argument(
        "--server",
        default=DEFAULT_SERVER_URL,
        help=f"Server URL (default: {DEFAULT_SERVER_URL})",
    )
    parser.add_argument("--token", help="Bearer token from /login")
    parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        dest="output_format",
        help="Output format (default: table)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_POLL_INTERVAL,
        help=f"Seconds between status checks (default: {DEFAULT_POLL_INTERVAL})",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    submit = commands.add_parser("submit", help="Start a new negotiation")
    submit.add_argument("message", help='What you need, e.g. "I want a refund for my order"')
    submit.add_argument("--phone", required=True, help="Customer service number to call")
    submit.add_argument("--order", help="Order or account number")
    submit.add_argument("--screenshot", type=Path, help="Screenshot of the order")
    submit.add_argument("--name", help="Your full name")
    submit.add_argument("--email", help="Your email")
    submit.add_argument("--appointment-time", help="Preferred appointment time")
    submit.add_argument("--appointment-action", choices=["book", "cancel"])
    submit.add_argument("--watch", action="store_true", help="Follow progress until done")

    status = commands.add_parser("status", help="Show a negotiation's status")
    status.add_argument("negotiation_id")
    status.add_argument("--watch", action="store_true", help="Follow progress until done")

    return parser


def format_table(snapshot: dict[str, Any]) -> str:
    """Format a snapshot as aligned ``label: value`` lines."""
    result = snapshot.get("result") or {}
    rows: list[tuple[str, Any]] = [
        ("Negotiation", snapshot.get("id")),
        ("Status", snapshot.get("status")),
        ("Progress", describe_phase(snapshot)),
        ("Category", snapshot.get("category")),
        ("Elapsed", f"{snapshot.get('durationSeconds', 0)}s"),
    ]
    if snapshot.get("error"):
        rows.append(("Error", snapshot["error"]))
    if result:
        rows.append(("Outcome", result.get("outcome")))
        code = result.get("code")
        if result.get("realConfirmationCode") is None and code:
            code = f"{code} (generated, not from the call)"
        rows.append(("Confirmation", code))
        if result.get("refundAmount") is not None:
            rows.append(("Refund", f"${result['refundAmount']}"))

    width = max(len(label) for label, _ in rows)
    return "\n".join(
        f"{label.ljust(width)}  {'-' if value is None else value}" for label, value in rows
    )


def format_json(snapshot: dict[str, Any]) -> str:
    return json.dumps(snapshot, indent=2)


async def _run(args: argparse.Namespace) -> int:
    render = format_json if args.output_format == "json" else format_table

    async with DropItClient(args.server, token=args.token) as client:
        if args.command == "submit":
            negotiation_id = await client.submit(
                args.message,
                args.phone,
                order_number=args.order,
                full_name=args.name,
                email=args.email,
                appointment_time=args.appointment_time,
                appointment_action=args.appointment_action,
                screenshot=args.screenshot,
            )
            print(f"Negotiation started: {negotiation_id}")
        else:
            negotiation_id = args.negotiation_id

        if not args.watch:
            print(render(await client.get_status(negotiation_id)))
            return 0

        def show_progress(snapshot: dict[str, Any]) -> None:
            print(describe_phase(snapshot), flush=True)

        poller = NegotiationPoller(client, interval=args.interval)
        final = await poller.wait(negotiation_id, show_progress)
        print(render(final))
        return 0 if final.get("status") == "completed" else 1


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, talk to the server, and print results."""
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(_run(args))
    except DropItError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
