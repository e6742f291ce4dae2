"""
Command line front end for hooks and scripts that coordinate agents.

Exit status: 0 on success (including "no messages"), 1 when the store could
not be written or a named mailbox does not exist, 2 when a lock is denied or
a release is refused.
"""
import argparse
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import Settings, configure_logging
from .coordination import CoordinationManager, LockDenied, StoreWriteFailed, format_duration
from .coordination.models import utcnow

console = Console()
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STORE_FAILED = 1
EXIT_DENIED = 2


def _require_agent(args, settings: Settings) -> str:
    agent = args.agent or settings.agent_id
    if not agent:
        raise SystemExit("An agent id is required (--agent or AGENT_COORD_AGENT_ID)")
    return agent


def cmd_acquire(coord: CoordinationManager, args) -> int:
    result = coord.locks.acquire_or_validate(args.path, _require_agent(args, coord.settings))
    if isinstance(result, LockDenied):
        console.print(f"[red]✗[/red] {escape(result.reason())}")
        return EXIT_DENIED
    verb = "Acquired" if result.created else "Already held"
    console.print(f"[green]✓[/green] {verb}: {escape(args.path)}")
    return EXIT_OK


def cmd_touch(coord: CoordinationManager, args) -> int:
    if coord.locks.touch(args.path, _require_agent(args, coord.settings)):
        console.print(f"[green]✓[/green] Touched {escape(args.path)}")
        return EXIT_OK
    console.print(f"[yellow]Not the owner of {escape(args.path)}[/yellow]")
    return EXIT_DENIED


def cmd_release(coord: CoordinationManager, args) -> int:
    if coord.locks.release(args.path, _require_agent(args, coord.settings)):
        console.print(f"[green]✓[/green] Released {escape(args.path)}")
        return EXIT_OK
    console.print(f"[yellow]Not the owner of {escape(args.path)}[/yellow]")
    return EXIT_DENIED


def cmd_release_all(coord: CoordinationManager, args) -> int:
    agent = _require_agent(args, coord.settings)
    count = coord.locks.release_all_owned_by(agent)
    console.print(f"[green]✓[/green] Released {count} lock(s) held by {escape(agent)}")
    return EXIT_OK


def cmd_register(coord: CoordinationManager, args) -> int:
    agent = _require_agent(args, coord.settings)
    coord.mailbox.register(agent)
    console.print(f"[green]✓[/green] Mailbox ready for {escape(agent)}")
    return EXIT_OK


def cmd_send(coord: CoordinationManager, args) -> int:
    coord.mailbox.send(_require_agent(args, coord.settings), args.to, args.body)
    console.print(f"[blue]→[/blue] Sent to {escape(args.to)}")
    return EXIT_OK


def _print_messages(messages) -> None:
    if not messages:
        console.print("No messages")
        return
    for message in messages:
        console.print(message.render(), markup=False, highlight=False)


def cmd_peek(coord: CoordinationManager, args) -> int:
    _print_messages(coord.mailbox.peek(args.name))
    return EXIT_OK


def cmd_await(coord: CoordinationManager, args) -> int:
    result = coord.awaiter.wait(args.name, timeout=args.timeout)
    _print_messages(result.messages)
    return EXIT_OK


def cmd_close_mailbox(coord: CoordinationManager, args) -> int:
    if args.name == "all":
        count = coord.mailbox.close_all()
        if count:
            console.print(f"Closed {count} mailbox(es)")
        else:
            console.print("No mailboxes to close")
        return EXIT_OK

    if coord.mailbox.close(args.name):
        console.print(f"Closed mailbox: {escape(args.name)}")
        return EXIT_OK
    console.print(f"Mailbox not found: {escape(args.name)}")
    return EXIT_STORE_FAILED


def build_status_table(coord: CoordinationManager) -> Table:
    """Generate a table of current locks and pending mailboxes."""
    now = utcnow()
    table = Table(title="Coordination Status")
    table.add_column("Kind", style="magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Owner / Pending", style="green")
    table.add_column("Age", style="yellow")

    for record in coord.locks.list_locks():
        table.add_row(
            "lock",
            escape(record.resource_path),
            escape(record.owner_id),
            format_duration(now - record.acquired_at),
        )
    for agent in coord.mailbox.list_agents():
        table.add_row("mailbox", escape(agent), str(len(coord.mailbox.peek(agent))), "-")
    return table


def cmd_status(coord: CoordinationManager, args) -> int:
    console.print(build_status_table(coord))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent-coord",
        description="File-backed locks and mailboxes for cooperating agents",
    )
    parser.add_argument("--dir", help="Coordination directory (overrides AGENT_COORD_COORDINATION_DIR)")
    parser.add_argument("--log-level", help="Logging level (overrides AGENT_COORD_LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command", required=True)

    def with_agent(p):
        p.add_argument("--agent", help="Acting agent id (defaults to AGENT_COORD_AGENT_ID)")
        return p

    p = with_agent(sub.add_parser("acquire", help="Acquire or re-validate a resource lock"))
    p.add_argument("path")
    p.set_defaults(func=cmd_acquire)

    p = with_agent(sub.add_parser("touch", help="Mark an owned lock as recently used"))
    p.add_argument("path")
    p.set_defaults(func=cmd_touch)

    p = with_agent(sub.add_parser("release", help="Release one owned lock"))
    p.add_argument("path")
    p.set_defaults(func=cmd_release)

    p = with_agent(sub.add_parser("release-all", help="Release every lock held by an agent"))
    p.set_defaults(func=cmd_release_all)

    p = with_agent(sub.add_parser("register", help="Create an empty mailbox"))
    p.set_defaults(func=cmd_register)

    p = with_agent(sub.add_parser("send", help="Send a message"))
    p.add_argument("to")
    p.add_argument("body")
    p.set_defaults(func=cmd_send)

    p = sub.add_parser("peek", help="Show pending messages without consuming them")
    p.add_argument("name")
    p.set_defaults(func=cmd_peek)

    p = sub.add_parser("await", help="Wait for messages and consume them")
    p.add_argument("name")
    p.add_argument("--timeout", type=float, default=None, help="Seconds to wait")
    p.set_defaults(func=cmd_await)

    p = sub.add_parser("close-mailbox", help="Delete one mailbox, or all of them")
    p.add_argument("name", nargs="?", default="all")
    p.set_defaults(func=cmd_close_mailbox)

    p = sub.add_parser("status", help="Show locks and mailboxes")
    p.set_defaults(func=cmd_status)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.dir:
        overrides["coordination_dir"] = args.dir
    if args.log_level:
        overrides["log_level"] = args.log_level
    settings = Settings(**overrides)
    configure_logging(settings)

    coord = CoordinationManager(settings)
    try:
        return args.func(coord, args)
    except StoreWriteFailed as e:
        logger.error("%s", e)
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return EXIT_STORE_FAILED


if __name__ == "__main__":
    sys.exit(main())
