"""
ravenlet-send - send test events to a Sentry project.

Usage:
    ravenlet-send --dsn https://key@sentry.example.com/1 -m "Hello" -n 3
"""

import argparse
import asyncio
import sys
from typing import Dict, List, Optional

from .client import RavenClient
from .config import ClientSettings
from .exceptions import InvalidDsnError
from .logs import configure_logging
from .models import ErrorLevel, SentryEvent


def parse_tag(value: str) -> tuple:
    """Parse a key=value command-line tag."""
    key, sep, tag_value = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"tag must be key=value, got {value!r}")
    return key, tag_value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ravenlet-send",
        description="Send test events to a Sentry project",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Unset options fall back to RAVENLET_* environment variables.

Examples:
  # One info message
  ravenlet-send --dsn https://key@sentry.example.com/1 -m "Deploy finished"

  # Five errors with tags
  ravenlet-send -l error -n 5 -t team=backend -t region=eu
        """,
    )

    parser.add_argument("--dsn", help="Sentry DSN (default: $RAVENLET_DSN)")
    parser.add_argument("--message", "-m", default="ravenlet test event", help="Message to send")
    parser.add_argument(
        "--level",
        "-l",
        choices=[level.value for level in ErrorLevel],
        default=ErrorLevel.INFO.value,
        help="Event level (default: info)",
    )
    parser.add_argument("--count", "-n", type=int, default=1, help="Number of events to send (default: 1)")
    parser.add_argument("--tag", "-t", type=parse_tag, action="append", default=[], help="Tag as key=value (repeatable)")
    parser.add_argument("--release", help="Release (default: $RAVENLET_RELEASE)")
    parser.add_argument("--environment", "-e", help="Environment (default: $RAVENLET_ENVIRONMENT)")
    parser.add_argument("--log-level", help="Log level (default: $RAVENLET_LOG_LEVEL)")

    return parser


async def send_events(client: RavenClient, message: str, level: ErrorLevel, count: int, tags: Dict[str, str]) -> int:
    """
    Send count events and report each result.

    Returns:
        Number of events accepted by Sentry
    """
    success = 0

    for i in range(count):
        event = SentryEvent.from_message(message, level=level, tags=dict(tags))
        result = await client.capture(event)

        if result is not None:
            print(f"[{i + 1}/{count}] [OK] {result.strip()}")
            success += 1
        else:
            print(f"[{i + 1}/{count}] [ERROR] event not sent")

    return success


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = ClientSettings()

    configure_logging(args.log_level or settings.log_level, json=False)

    dsn = args.dsn or settings.dsn
    if not dsn:
        print("[ERROR] No DSN given (use --dsn or RAVENLET_DSN)", file=sys.stderr)
        return 2

    overrides = {"dsn": dsn}
    if args.release:
        overrides["release"] = args.release
    if args.environment:
        overrides["environment"] = args.environment

    try:
        client = RavenClient.from_settings(settings.model_copy(update=overrides))
    except InvalidDsnError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2

    print(f"=== Sending {args.count} event(s) to project {client.current_dsn.project_id} ===")
    success = asyncio.run(
        send_events(client, args.message, ErrorLevel(args.level), args.count, dict(args.tag))
    )
    print(f"[*] Result: {success}/{args.count} events sent successfully")

    return 0 if success == args.count else 1


if __name__ == "__main__":
    sys.exit(main())
