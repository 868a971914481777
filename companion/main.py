"""Momentum Companion — command-line entry point.

Run:
    momentum-companion connect --url https://momentum.example.com/api --email me@example.com
    momentum-companion sync
    momentum-companion run --interval 30
    momentum-companion disconnect
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from dataclasses import dataclass
from datetime import datetime

from companion.config import Settings, get_settings
from companion.health.export_source import ExportHealthSource
from companion.health.reader import HealthReader
from companion.preferences import SUPPORTED_SYNC_FREQUENCIES, AppPreferences
from companion.sync.errors import SyncError
from companion.sync.orchestrator import SyncOrchestrator, SyncOutcome
from companion.sync.scheduler import SyncScheduler
from companion.sync.sync_log import SyncLogRepository

logger = logging.getLogger("momentum")


# ---------- Logging ----------


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


# ---------- Wiring ----------


@dataclass
class Runtime:
    """Store handles and services, constructed once per process."""

    settings: Settings
    preferences: AppPreferences
    sync_log: SyncLogRepository
    reader: HealthReader
    orchestrator: SyncOrchestrator
    scheduler: SyncScheduler


def build_runtime(settings: Settings) -> Runtime:
    preferences = AppPreferences(settings.preferences_path)
    sync_log = SyncLogRepository(settings.sync_log_path)
    reader = HealthReader(ExportHealthSource(settings.health_export_path))
    orchestrator = SyncOrchestrator(reader, preferences, sync_log, settings=settings)
    return Runtime(
        settings=settings,
        preferences=preferences,
        sync_log=sync_log,
        reader=reader,
        orchestrator=orchestrator,
        scheduler=SyncScheduler(orchestrator),
    )


def _format_millis(epoch_millis: int) -> str:
    if epoch_millis <= 0:
        return "never"
    return datetime.fromtimestamp(epoch_millis / 1000.0).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_logs(runtime: Runtime, count: int) -> None:
    entries = runtime.sync_log.recent(count)
    if not entries:
        print("No sync log entries.")
        return
    for entry in entries:
        print(f"{_format_millis(entry.timestamp)}  {entry.type:<15} {entry.status:<7} {entry.message}")


# ---------- Commands ----------


async def cmd_connect(args: argparse.Namespace, runtime: Runtime) -> int:
    password = args.password or getpass.getpass("Password: ")
    login = await runtime.orchestrator.connect(
        args.url, args.email, password, allow_self_signed=args.allow_self_signed
    )
    name = login.user.name if login.user and login.user.name else args.email
    print(f"Connected to {runtime.preferences.server_url} as {name}")

    if not args.no_import:
        result = await runtime.scheduler.run_initial_import(runtime.settings.initial_import_days)
        print(result.message)
    return 0


async def cmd_sync(args: argparse.Namespace, runtime: Runtime) -> int:
    result = await runtime.scheduler.sync_now()
    await asyncio.sleep(runtime.settings.sync_settle_seconds)
    _print_logs(runtime, args.count)
    if result is None:
        return 1
    return 0 if result.outcome is SyncOutcome.SUCCESS else 1


async def cmd_import(args: argparse.Namespace, runtime: Runtime) -> int:
    result = await runtime.scheduler.run_initial_import(args.days)
    print(result.message)
    return 0 if result.outcome is SyncOutcome.SUCCESS else 1


async def cmd_status(args: argparse.Namespace, runtime: Runtime) -> int:
    prefs = runtime.preferences
    print(f"Server:      {prefs.server_url or '-'}")
    print(f"Configured:  {'yes' if prefs.is_configured else 'no'}")
    print(f"Last sync:   {_format_millis(prefs.last_sync_timestamp)}")
    print(f"Interval:    {prefs.sync_frequency_minutes} min")
    if not prefs.is_configured:
        return 1

    status = await runtime.orchestrator.status()
    print(f"Server sync: {status.last_sync or 'never'}")
    for name, goal in status.goals().items():
        print(f"Goal {name}: {goal}")
    return 0


async def cmd_today(args: argparse.Namespace, runtime: Runtime) -> int:
    overview = await runtime.orchestrator.today()
    metric = overview.metric
    if args.raw:
        for line in await runtime.reader.describe_day(metric.date):
            print(line)
    print(f"{metric.date}: {metric.steps} steps, "
          f"{metric.active_calories} kcal, {metric.active_minutes} active min")

    source = "server" if overview.goals_from_server else "default"
    print(f"Goals ({source}):")
    for name, value in (
        ("steps", metric.steps),
        ("active_calories", metric.active_calories),
        ("active_minutes", metric.active_minutes),
    ):
        print(f"  {name:<16} {value} / {overview.goals[name]} ({overview.percent_of_goal(name)}%)")

    if not overview.activities:
        print("No exercise sessions today.")
    for activity in overview.activities:
        print(f"  {activity.start_time} {activity.label} {activity.duration_minutes} min")
    return 0


async def cmd_logs(args: argparse.Namespace, runtime: Runtime) -> int:
    if args.clear:
        runtime.sync_log.clear()
        print("Sync log cleared.")
        return 0
    _print_logs(runtime, args.count)
    return 0


async def cmd_profile(args: argparse.Namespace, runtime: Runtime) -> int:
    is_male = None
    if args.sex is not None:
        is_male = args.sex == "male"
    profile = runtime.preferences.set_user_profile(
        steps_per_minute=args.steps_per_min,
        weight_kg=args.weight,
        height_cm=args.height,
        age=args.age,
        is_male=is_male,
    )
    if args.interval is not None:
        runtime.preferences.set_sync_frequency_minutes(args.interval)

    print(f"Steps/min:   {profile.steps_per_minute}")
    print(f"Weight:      {profile.weight_kg:g} kg")
    print(f"Height:      {profile.height_cm} cm")
    print(f"Age:         {profile.age}")
    print(f"Sex:         {'male' if profile.is_male else 'female'}")
    print(f"Interval:    {runtime.preferences.sync_frequency_minutes} min")
    return 0


async def cmd_disconnect(args: argparse.Namespace, runtime: Runtime) -> int:
    runtime.scheduler.cancel_all()
    runtime.preferences.clear_all()
    print("Disconnected; stored account and settings cleared.")
    return 0


async def cmd_run(args: argparse.Namespace, runtime: Runtime) -> int:
    interval = args.interval or runtime.preferences.sync_frequency_minutes
    if args.interval is not None:
        runtime.preferences.set_sync_frequency_minutes(args.interval)

    task = runtime.scheduler.schedule_periodic(interval)
    logger.info("Running %s every %d min (Ctrl-C to stop)", runtime.scheduler.job_name, interval)
    try:
        await task
    finally:
        runtime.scheduler.cancel_all()
    return 0


_COMMANDS = {
    "connect": cmd_connect,
    "sync": cmd_sync,
    "import": cmd_import,
    "status": cmd_status,
    "today": cmd_today,
    "logs": cmd_logs,
    "profile": cmd_profile,
    "run": cmd_run,
    "disconnect": cmd_disconnect,
}


# ---------- Arguments ----------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="momentum-companion",
        description="Sync health-store activity and sleep data to a Momentum server.",
    )
    parser.add_argument("--log-level", default=None, help="Override MOMENTUM_LOG_LEVEL.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("connect", help="Log in to a server and store the account.")
    p.add_argument("--url", required=True, help="Server API base URL.")
    p.add_argument("--email", required=True)
    p.add_argument("--password", default=None, help="Prompted for when omitted.")
    p.add_argument("--allow-self-signed", action="store_true",
                   help="Skip TLS certificate verification.")
    p.add_argument("--no-import", action="store_true",
                   help="Do not run the initial import after connecting.")

    p = sub.add_parser("sync", help="Run one sync now and show the recent log.")
    p.add_argument("--count", type=int, default=5, help="Log entries to show (default: 5).")

    p = sub.add_parser("import", help="Push the last N days (default: 30).")
    p.add_argument("--days", type=int, default=None)

    sub.add_parser("status", help="Show local and server sync status.")

    p = sub.add_parser("today", help="Show today's metrics computed locally.")
    p.add_argument("--raw", action="store_true", help="Also dump today's raw records.")

    p = sub.add_parser("logs", help="Show or clear the sync log.")
    p.add_argument("--count", type=int, default=50, help="Entries to show (default: 50).")
    p.add_argument("--clear", action="store_true")

    p = sub.add_parser("profile", help="Show or update the user profile.")
    p.add_argument("--steps-per-min", type=int, default=None)
    p.add_argument("--weight", type=float, default=None, help="Weight in kg.")
    p.add_argument("--height", type=int, default=None, help="Height in cm.")
    p.add_argument("--age", type=int, default=None)
    p.add_argument("--sex", choices=("male", "female"), default=None)
    p.add_argument("--interval", type=int, choices=SUPPORTED_SYNC_FREQUENCIES, default=None,
                   help="Sync interval in minutes.")

    p = sub.add_parser("run", help="Run the periodic sync scheduler in the foreground.")
    p.add_argument("--interval", type=int, choices=SUPPORTED_SYNC_FREQUENCIES, default=None)

    sub.add_parser("disconnect", help="Stop scheduled syncs and forget the stored account.")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI.

    Returns:
        Exit code (0 on success).
    """
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)
    logger.debug("Starting %s v%s", settings.app_name, settings.app_version)

    runtime = build_runtime(settings)
    try:
        return asyncio.run(_COMMANDS[args.command](args, runtime))
    except (SyncError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
