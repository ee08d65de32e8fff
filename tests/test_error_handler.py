"""Tests for command-line error reporting."""

import sqlite3

from alarmstacks.engine.scheduling import SchedulingError
from alarmstacks.main import build_parser
from alarmstacks.utils.error_handler import handle_cli_error


def test_exit_statuses():
    """Test each error family maps to its exit status."""
    assert handle_cli_error(SchedulingError("no weekday"))[1] == 3
    assert handle_cli_error(ValueError("bad"))[1] == 2
    assert handle_cli_error(sqlite3.OperationalError("locked"))[1] == 4
    assert handle_cli_error(FileNotFoundError("stack.json"))[1] == 4
    assert handle_cli_error(RuntimeError("boom")) == (
        "Something went wrong. The error has been logged.",
        1,
    )


def test_snooze_command_arguments():
    """Test the snooze subcommand parses its step id and minutes."""
    args = build_parser().parse_args(["snooze", "S2", "--minutes", "3"])

    assert args.command == "snooze"
    assert args.step_id == "S2"
    assert args.minutes == 3
