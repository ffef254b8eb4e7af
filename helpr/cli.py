"""CLI for Helpr: create the store, sign a user in, and follow jobs from a terminal."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys


def _session_store():
    from helpr.config import get_settings
    from helpr.services.auth import FileSessionStore

    return FileSessionStore(get_settings().session_store.path)


def _require_context():
    ctx = _session_store().load()
    if ctx is None:
        print("Not signed in. Run: helpr login --user <id> --role customer|provider")
        sys.exit(1)
    return ctx


def _client(args):
    from helpr.client import HelprClient
    from helpr.config import get_settings

    settings = get_settings()
    return HelprClient(
        args.api_url or settings.api_base_url,
        _require_context(),
        timeout=settings.sync.request_timeout_seconds,
    )


async def cmd_init_db(args):
    """Create the service and service_fill_request tables."""
    from helpr.db.engine import create_schema, engine

    await create_schema()
    await engine.dispose()
    print(f"Schema ready at {engine.url}")


async def cmd_login(args):
    from helpr.services.auth import ROLES, ClientContext

    role = args.role.lower()
    if role not in ROLES:
        print(f"Role must be one of: {', '.join(ROLES)}")
        sys.exit(1)
    return_to = {"command": "watch", "service_id": args.then_watch} if args.then_watch else None
    store = _session_store()
    store.save(ClientContext(user_id=args.user, role=role, return_to=return_to))
    print(f"Signed in as {args.user} ({role})")
    if return_to:
        print("Run `helpr resume` to follow that job.")


async def cmd_logout(args):
    _session_store().clear()
    print("Signed out")


async def cmd_board(args):
    """Print the caller's bookings (customer) or job board (provider)."""
    async with _client(args) as client:
        listings = await client.list_services()
    if not listings:
        print("No jobs right now.")
        return
    for item in listings:
        s = item.service
        mine = f"  my bid ${item.my_bid.bid_amount:.2f}" if item.my_bid else ""
        print(f"{s.id}  {s.status.value:<13} {s.service_type:<10} bids={item.bid_count}{mine}  {s.start_location}")


async def cmd_advance(args):
    from helpr.client import HelprAPIError

    async with _client(args) as client:
        try:
            service = await client.advance(args.service_id)
        except HelprAPIError as e:
            print(e.message or e.code)
            sys.exit(2)
    print(f"{service.id} is now {service.status.value}")


async def cmd_resume(args):
    """Continue with the destination stored at login, if any."""
    from helpr.services.auth import resume_pending

    _require_context()
    target = resume_pending(_session_store())
    if not target or target.get("command") != "watch":
        print("Nothing to resume.")
        return
    args.service_id = target["service_id"]
    args.interval = 0.0
    await cmd_watch(args)


async def cmd_watch(args):
    """Poll one job and print each status change until it completes or Ctrl-C."""
    from helpr.config import get_settings
    from helpr.schemas import ServiceStatus
    from helpr.services.sync import SyncedView

    interval = args.interval or get_settings().sync.poll_interval_seconds
    done = asyncio.Event()

    def on_change(service):
        helpr = service.assigned_provider_id or "-"
        print(f"{service.status.value:<13} helpr={helpr}")
        if service.status is ServiceStatus.COMPLETED:
            done.set()

    def on_error(error, exc):
        print(f"{error.message} ({exc}); retrying")

    async with _client(args) as client:
        view = SyncedView(
            lambda: client.get_service(args.service_id),
            interval=interval,
            on_change=on_change,
            on_error=on_error,
            name=f"watch:{args.service_id}",
        )
        async with view:
            await done.wait()


def main():
    parser = argparse.ArgumentParser(prog="helpr", description="Helpr marketplace tools")
    parser.add_argument("--api-url", default="", help="API base URL (default from settings)")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("init-db", help="Create database tables")

    p_login = sub.add_parser("login", help="Store the acting user for later commands")
    p_login.add_argument("--user", required=True)
    p_login.add_argument("--role", required=True, help="customer | provider")
    p_login.add_argument("--then-watch", default="", metavar="SERVICE_ID", help="Job to follow after signing in")

    sub.add_parser("logout", help="Forget the stored user")
    sub.add_parser("resume", help="Pick up where login left off")
    sub.add_parser("board", help="List your bookings or open jobs")

    p_adv = sub.add_parser("advance", help="Move an assigned job to its next status")
    p_adv.add_argument("service_id")

    p_watch = sub.add_parser("watch", help="Follow a job's status")
    p_watch.add_argument("service_id")
    p_watch.add_argument("--interval", type=float, default=0.0, help="Poll interval in seconds")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "init-db": cmd_init_db,
        "login": cmd_login,
        "logout": cmd_logout,
        "resume": cmd_resume,
        "board": cmd_board,
        "advance": cmd_advance,
        "watch": cmd_watch,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)
    try:
        asyncio.run(handler(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
