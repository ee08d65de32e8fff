"""Stack definition files (JSON) -> authored steps.

Example:
    {
        "id": "morning",
        "name": "Morning",
        "steps": [
            {"id": "wake", "title": "Wake", "kind": "fixed", "hour": 6, "minute": 30,
             "weekdays": [1, 2, 3, 4, 5]},
            {"id": "stretch", "title": "Stretch", "kind": "timer", "duration_seconds": 600},
            {"id": "leave", "title": "Leave", "kind": "relative", "offset_seconds": 1800,
             "allow_snooze": false, "sound": "Pulse", "accent": "#00AEEF"}
        ]
    }
"""

import json
from pathlib import Path
from typing import Any

from alarmstacks.db.models import FixedTime, RelativeToPrev, Step, StepKind, Timer
from alarmstacks.utils.constants import (
    DEFAULT_ALLOW_SNOOZE,
    DEFAULT_SNOOZE_MINUTES,
    KIND_FIXED,
    KIND_RELATIVE,
    KIND_TIMER,
    STEP_KIND_LABELS,
)


def load_stack_definition(path: Path) -> tuple[str, str | None, list[Step]]:
    """Read a stack file. Returns (stack_id, name, steps)."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{path}: invalid JSON ({e})") from e
    return parse_stack_definition(raw)


def parse_stack_definition(raw: Any) -> tuple[str, str | None, list[Step]]:
    if not isinstance(raw, dict):
        raise ValueError("Stack definition must be an object")

    stack_id = raw.get("id")
    if not isinstance(stack_id, str) or not stack_id:
        raise ValueError("Stack definition needs a string 'id'")

    items = raw.get("steps")
    if not isinstance(items, list) or not items:
        raise ValueError(f"Stack {stack_id} needs a non-empty 'steps' list")

    steps = [parse_step(item, index) for index, item in enumerate(items)]

    seen = set()
    for step in steps:
        if step.step_id in seen:
            raise ValueError(f"Duplicate step id {step.step_id!r} in stack {stack_id}")
        seen.add(step.step_id)

    return stack_id, raw.get("name"), steps


def parse_step(item: Any, index: int) -> Step:
    if not isinstance(item, dict):
        raise ValueError(f"Step {index} must be an object")

    step_id = item.get("id")
    if not isinstance(step_id, str) or not step_id:
        raise ValueError(f"Step {index} needs a string 'id'")

    try:
        kind = _parse_kind(item)
    except (KeyError, TypeError) as e:
        raise ValueError(f"Step {step_id}: missing or invalid field {e}") from e

    return Step(
        step_id=step_id,
        title=str(item.get("title", step_id)),
        kind=kind,
        allow_snooze=bool(item.get("allow_snooze", DEFAULT_ALLOW_SNOOZE)),
        snooze_minutes=int(item.get("snooze_minutes", DEFAULT_SNOOZE_MINUTES)),
        sound_name=item.get("sound"),
        accent_hex=item.get("accent"),
    )


def _parse_kind(item: dict) -> StepKind:
    label = item.get("kind")
    if label == KIND_TIMER:
        every = item.get("every_n_days")
        return Timer(
            duration_seconds=int(item["duration_seconds"]),
            every_n_days=int(every) if every is not None else None,
        )
    if label == KIND_RELATIVE:
        return RelativeToPrev(offset_seconds=int(item["offset_seconds"]))
    if label == KIND_FIXED:
        weekday = item.get("weekday")
        weekdays = item.get("weekdays")
        return FixedTime(
            hour=int(item["hour"]),
            minute=int(item["minute"]),
            weekday=int(weekday) if weekday is not None else None,
            weekdays=tuple(int(d) for d in weekdays) if weekdays is not None else None,
        )
    raise ValueError(f"Unknown step kind {label!r}, expected one of {', '.join(STEP_KIND_LABELS)}")
