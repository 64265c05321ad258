#!/usr/bin/env python3
"""
Streetwise CLI - Main Entry Point

Usage:
    streetwise watch                        # Live map summary and incident feed
    streetwise watch --once                 # Print the feed once and exit
    streetwise report -t theft -d "..." --lat -1.29 --lng 36.82
    streetwise report -t lights -d "..." --lat ... --lng ... --end-lat ... --end-lng ...
    streetwise buddy-up -m "Walking to the library" --lat ... --lng ...
    streetwise chat 12 --send "On my way"
    streetwise whoami
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from streetwise import __version__
from streetwise.api_client import StreetwiseAPIClient
from streetwise.config import StreetwiseConfig
from streetwise.logging_config import setup_logging
from streetwise.session import SessionManager
from streetwise.view import StreetwiseView


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    parser = argparse.ArgumentParser(
        prog="streetwise",
        description="Streetwise - campus safety map client for Campus Pulse+",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Authentication:
  Sign in through the web portal and pass the session cookie with
  --cookie or STREETWISE_SESSION_COOKIE.

Environment:
  STREETWISE_API_URL       Backend base URL (default: http://localhost:5000)
  STREETWISE_MAP_TOKEN     Map SDK access token
  STREETWISE_SESSION_COOKIE
        """
    )

    parser.add_argument("--api-url", type=str, help="Backend base URL")
    parser.add_argument("--cookie", type=str, help="Session cookie value")
    parser.add_argument("--map-token", type=str, help="Map SDK access token")
    parser.add_argument("--config", type=str, help="Path to config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    watch_parser = subparsers.add_parser("watch", help="Show the live map and incident feed")
    watch_parser.add_argument("--once", action="store_true", help="Render once and exit")

    report_parser = subparsers.add_parser("report", help="Pin an incident and submit a report")
    report_parser.add_argument(
        "-t", "--type",
        required=True,
        choices=["theft", "harassment", "lights", "other"],
        help="Incident type"
    )
    report_parser.add_argument("-d", "--description", required=True, help="What happened")
    report_parser.add_argument("--lat", type=float, required=True, help="Latitude (road start)")
    report_parser.add_argument("--lng", type=float, required=True, help="Longitude (road start)")
    report_parser.add_argument("--end-lat", type=float, help="Road segment end latitude")
    report_parser.add_argument("--end-lng", type=float, help="Road segment end longitude")

    buddy_parser = subparsers.add_parser("buddy-up", help="Ask for company while walking")
    buddy_parser.add_argument("-m", "--message", required=True, help="Message for buddies")
    buddy_parser.add_argument("--lat", type=float, required=True, help="Your latitude")
    buddy_parser.add_argument("--lng", type=float, required=True, help="Your longitude")

    chat_parser = subparsers.add_parser("chat", help="Open the buddy chat for a report")
    chat_parser.add_argument("report_id", help="Security report ID")
    chat_parser.add_argument("--send", type=str, help="Message to send")
    chat_parser.add_argument("--follow", action="store_true", help="Keep polling until Ctrl+C")

    subparsers.add_parser("whoami", help="Show the signed-in user")

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse and cross-check command line arguments"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command == "report" and (args.end_lat is None) != (args.end_lng is None):
        parser.error("--end-lat and --end-lng must be given together")

    return args


def build_config(args: argparse.Namespace) -> StreetwiseConfig:
    config = StreetwiseConfig.load_default(args.config)
    if args.api_url:
        config.api_base_url = args.api_url
    if args.cookie:
        config.session_cookie = args.cookie
    if args.map_token:
        config.map_access_token = args.map_token
    if args.verbose:
        config.verbose = True
    return config


async def _watch(view: StreetwiseView, once: bool) -> int:
    await view.refresher.wait_for_feed()
    view.render()
    if once:
        return 0

    while True:
        await asyncio.sleep(view.config.feed_refresh_interval)
        view.console.clear()
        view.render()


async def _report(view: StreetwiseView, args: argparse.Namespace) -> int:
    is_road = args.end_lat is not None
    if not view.enable_pin_mode("road" if is_road else "location"):
        return 1

    view.map_click(args.lat, args.lng)
    if is_road:
        view.map_click(args.end_lat, args.end_lng)

    return 0 if await view.submit_report(args.type, args.description) else 1


async def _chat(view: StreetwiseView, args: argparse.Namespace) -> int:
    await view.refresher.wait_for_feed()
    if not await view.select_report(args.report_id):
        return 1

    if args.send and not await view.send_chat(args.send):
        return 1

    view.renderer.print_chat(view.chat.report, view.chat.messages)
    while args.follow:
        await asyncio.sleep(view.config.chat_poll_interval)
        view.console.clear()
        view.renderer.print_chat(view.chat.report, view.chat.messages)
    return 0


async def run(args: argparse.Namespace, console: Optional[Console] = None) -> int:
    console = console or Console()
    config = build_config(args)
    setup_logging(config)

    async with StreetwiseAPIClient(config) as api:
        session = SessionManager(api)
        user = await session.hydrate()

        if args.command == "whoami":
            if user is None:
                console.print("[red]Not signed in[/red]")
                return 1
            who = escape(f"{user.name or user.email} ({user.role or 'unknown role'})")
            console.print(f"[green]Signed in as[/green] {who}")
            return 0

        async with StreetwiseView(config, api, session, console=console) as view:
            if args.command == "report":
                return await _report(view, args)
            if args.command == "buddy-up":
                ok = await view.request_buddy_up(args.message, args.lat, args.lng)
                return 0 if ok else 1
            if args.command == "chat":
                return await _chat(view, args)
            return await _watch(view, getattr(args, "once", False))


def main():
    """Main entry point"""
    args = parse_args()
    console = Console()

    try:
        sys.exit(asyncio.run(run(args, console)))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")
        sys.exit(0)


if __name__ == "__main__":
    main()
