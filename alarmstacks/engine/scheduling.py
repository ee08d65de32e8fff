"""Next-fire-time computation for a single step.

All functions here are pure: they depend only on the step kind, the
base instant and the calendar (timezone) passed in.

Local wall-clock construction follows two rules:
- a time that does not exist on a day (spring-forward gap) resolves
  forward by the size of the gap, e.g. 02:30 -> 03:30;
- a time that occurs twice on a day (fall-back overlap) resolves to
  the first occurrence.
"""

from datetime import date, datetime, time, timedelta, tzinfo
from typing import assert_never

from dateutil.relativedelta import relativedelta
from dateutil.tz import datetime_exists, resolve_imaginary

from alarmstacks.db.models import FixedTime, RelativeToPrev, StepKind, Timer
from alarmstacks.utils.constants import WEEKDAY_SEARCH_DAYS
from alarmstacks.utils.time_utils import UTC, from_utc, get_zone, to_utc


class SchedulingError(Exception):
    """No fire date could be constructed for otherwise-valid inputs."""


def next_fire_date(kind: StepKind, base: datetime, tz: str | tzinfo = UTC) -> datetime:
    """Compute when a step of `kind` fires next, starting from `base`.

    Args:
        kind: Timer, RelativeToPrev or FixedTime
        base: Reference instant; naive values are taken as local to `tz`
        tz: Calendar used for day boundaries and wall-clock times

    Returns:
        Timezone-aware datetime in `tz`

    Raises:
        SchedulingError: weekday search found no match within its bound
    """
    zone = get_zone(tz)
    # Naive bases are local to the calendar
    base = to_utc(base, zone)

    match kind:
        case Timer(duration_seconds=seconds, every_n_days=n):
            candidate = _add_seconds(base, seconds, zone)
            if n is not None and n > 1:
                return align_to_every_n_days(base, candidate, n, zone)
            return candidate

        case RelativeToPrev(offset_seconds=offset):
            return _add_seconds(base, offset, zone)

        case FixedTime():
            allowed = kind.allowed_weekdays
            if allowed is None:
                return _next_daily(kind.hour, kind.minute, base, zone)
            return _next_on_weekdays(kind.hour, kind.minute, allowed, base, zone)

        case _:
            assert_never(kind)


def align_to_every_n_days(
    base: datetime, candidate: datetime, n: int, tz: tzinfo
) -> datetime:
    """Move a multi-day timer result onto its every-N-days cadence.

    A candidate on the base's own calendar day is returned unchanged.
    Otherwise the result is the first day at a whole multiple of `n`
    days from the base day that is not before the candidate's day, at
    the base's original time of day.
    """
    base_local = base.astimezone(tz)
    base_day = base_local.date()
    candidate_day = candidate.astimezone(tz).date()

    if candidate_day == base_day:
        return candidate

    delta_days = (candidate_day - base_day).days
    periods = -(-delta_days // n)  # ceiling division
    target_day = base_day + relativedelta(days=periods * n)
    return wall_clock(target_day, base_local.time(), tz)


def wall_clock(day: date, at: time, tz: tzinfo) -> datetime:
    """Build the instant for a local date and time in `tz`.

    Nonexistent local times are pushed forward past the gap; ambiguous
    ones take the first (pre-transition) occurrence.
    """
    local = datetime.combine(day, at).replace(tzinfo=tz, fold=0)
    if not datetime_exists(local):
        local = resolve_imaginary(local)
    # Normalise through UTC so utcoffset() and fold agree
    return local.astimezone(UTC).astimezone(tz)


def _add_seconds(base: datetime, seconds: int, tz: tzinfo) -> datetime:
    # Absolute arithmetic: aware + timedelta on a local datetime is wall-clock math
    return from_utc(to_utc(base, tz) + timedelta(seconds=seconds), tz)


def _next_daily(hour: int, minute: int, base: datetime, tz: tzinfo) -> datetime:
    base_utc = base.astimezone(UTC)
    day = base.astimezone(tz).date()
    at = time(hour, minute)

    candidate = wall_clock(day, at, tz)
    if candidate.astimezone(UTC) > base_utc:
        return candidate

    # Calendar-day step, not +86400s, so DST days keep the wall-clock time
    candidate = wall_clock(day + relativedelta(days=1), at, tz)
    if candidate.astimezone(UTC) > base_utc:
        return candidate

    raise SchedulingError(f"No fire date for {hour:02d}:{minute:02d} after {base.isoformat()}")


def _next_on_weekdays(
    hour: int, minute: int, weekdays: frozenset[int], base: datetime, tz: tzinfo
) -> datetime:
    base_utc = base.astimezone(UTC)
    start = base.astimezone(tz).date()
    at = time(hour, minute)

    for offset in range(WEEKDAY_SEARCH_DAYS):
        day = start + relativedelta(days=offset)
        if day.isoweekday() not in weekdays:
            continue
        candidate = wall_clock(day, at, tz)
        if candidate.astimezone(UTC) > base_utc:
            return candidate

    raise SchedulingError(
        f"No matching weekday in {sorted(weekdays)} for {hour:02d}:{minute:02d} "
        f"within {WEEKDAY_SEARCH_DAYS} days of {base.isoformat()}"
    )
