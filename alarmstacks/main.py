"""Command-line entry point for AlarmStacks."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

from alarmstacks.config import Config
from alarmstacks.db.kv_store import SqliteKeyValueStore
from alarmstacks.db.migrations import run_migrations
from alarmstacks.db.repository import ChainRepository
from alarmstacks.engine.snooze_coordinator import SnoozeCoordinator
from alarmstacks.parser.stack_file import load_stack_definition
from alarmstacks.utils.error_handler import handle_cli_error
from alarmstacks.utils.time_utils import (
    format_relative_time,
    from_epoch,
    to_utc,
    utc_now,
)

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


class LoggingAlarmDelivery:
    """Delivery adapter for CLI runs: records arm/cancel requests in the log."""

    def schedule_alarm(self, step_id, fire_at, sound_name, accent_hex, allow_snooze) -> None:
        logger.info(
            f"ARM {step_id} at {fire_at.isoformat()} "
            f"sound={sound_name or '-'} accent={accent_hex or '-'} snooze={allow_snooze}"
        )

    def cancel_alarm(self, step_id: str) -> None:
        logger.info(f"CANCEL {step_id}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="alarmstacks", description="Chained alarm scheduling with snooze propagation."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the database")

    activate = sub.add_parser("activate", help="Activate a stack from a JSON definition")
    activate.add_argument("file", type=Path)
    activate.add_argument("--start", help="ISO datetime to schedule from (default: now)")
    activate.add_argument("--tz", default=None, help="Timezone (default: TIMEZONE)")

    show = sub.add_parser("show", help="List a stack's active steps")
    show.add_argument("stack_id")

    snooze = sub.add_parser("snooze", help="Snooze a step and shift its chain")
    snooze.add_argument("step_id")
    snooze.add_argument("--minutes", type=int, default=None)

    fired = sub.add_parser("fired", help="Mark a step as fired")
    fired.add_argument("step_id")

    retire = sub.add_parser("retire", help="Cancel and delete a stack")
    retire.add_argument("stack_id")

    return parser


def show_chain(repo: ChainRepository, stack_id: str) -> None:
    chain = repo.load_chain(stack_id)
    if chain is None:
        print(f"Stack {stack_id} is not active.")
        return

    now = utc_now()
    print(f"Stack {stack_id} (anchor {from_epoch(chain.first_target_epoch, Config.TIMEZONE):%Y-%m-%d %H:%M:%S})")
    for step in chain.steps:
        fire_at = from_epoch(chain.fire_epoch(step), Config.TIMEZONE)
        snooze_mark = " [snoozed]" if step.is_snooze else ""
        print(
            f"  {step.step_id}  {step.kind:<8} +{step.offset_from_first}s  "
            f"{fire_at:%a %H:%M:%S} ({format_relative_time(fire_at, now)})  "
            f"{step.title or ''}{snooze_mark}"
        )


async def run(args: argparse.Namespace) -> None:
    await run_migrations(Config.DATABASE_PATH)
    if args.command == "init":
        print(f"Database ready at {Config.DATABASE_PATH}")
        return

    store = SqliteKeyValueStore(Config.DATABASE_PATH)
    await store.connect()
    try:
        repo = ChainRepository(store)
        coordinator = SnoozeCoordinator(repo, LoggingAlarmDelivery())

        if args.command == "activate":
            stack_id, name, steps = load_stack_definition(args.file)
            tz = args.tz or Config.TIMEZONE
            start = datetime.fromisoformat(args.start) if args.start else utc_now()
            start = to_utc(start, tz)
            coordinator.activate_stack(stack_id, steps, start, tz, name=name)
            show_chain(repo, stack_id)

        elif args.command == "show":
            show_chain(repo, args.stack_id)

        elif args.command == "snooze":
            results = coordinator.snooze_and_shift(args.step_id, args.minutes)
            if results is None:
                print(f"Nothing to snooze for {args.step_id}.")
            else:
                for result in results:
                    print(f"{result.old_id} -> {result.new_id}")

        elif args.command == "fired":
            if not coordinator.mark_fired(args.step_id):
                print(f"{args.step_id} is not active.")

        elif args.command == "retire":
            ids = coordinator.retire_stack(args.stack_id)
            print(f"Retired {args.stack_id} ({len(ids)} alarms cancelled)")

        await store.commit()
    finally:
        await store.close()


def main() -> None:
    """Run one command."""
    args = build_parser().parse_args()

    # Validate configuration
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    try:
        asyncio.run(run(args))
    except Exception as e:
        message, status = handle_cli_error(e)
        print(message, file=sys.stderr)
        sys.exit(status)


if __name__ == "__main__":
    main()
