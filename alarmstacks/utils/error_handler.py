"""Error reporting for command-line runs."""

import logging
import sqlite3
import traceback

from alarmstacks.engine.scheduling import SchedulingError

logger = logging.getLogger(__name__)


def handle_cli_error(error: BaseException) -> tuple[str, int]:
    """Log an error and turn it into a user-facing message and exit status."""
    # Log the error
    logger.error("Exception while running command:", exc_info=error)

    tb_string = "".join(traceback.format_exception(None, error, error.__traceback__))
    logger.debug(f"Traceback:\n{tb_string}")

    if isinstance(error, SchedulingError):
        return (
            f"Could not compute a fire time: {error}\n"
            "Check the step's hour, minute and weekdays.",
            3,
        )
    if isinstance(error, (ValueError, KeyError)):
        return f"Invalid input: {error}", 2
    if isinstance(error, sqlite3.Error):
        return f"Storage error: {error}", 4
    if isinstance(error, OSError):
        return f"File error: {error}", 4

    return "Something went wrong. The error has been logged.", 1
