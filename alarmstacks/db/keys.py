"""Key namespace for the flat key-value store.

Every component that reads or writes chain state goes through these
functions; the strings are a stable contract with anything else that
shares the store.
"""

# Per step id


def stack_id(step_id: str) -> str:
    return f"ak.stackID.{step_id}"


def offset_from_first(step_id: str) -> str:
    """Seconds from the stack's first target (stored as a double)."""
    return f"ak.offsetFromFirst.{step_id}"


def kind(step_id: str) -> str:
    """Step kind label: fixed, timer or relative."""
    return f"ak.kind.{step_id}"


def allow_snooze(step_id: str) -> str:
    return f"ak.allowSnooze.{step_id}"


def is_snooze(step_id: str) -> str:
    return f"ak.isSnooze.{step_id}"


def stack_name(step_id: str) -> str:
    return f"ak.stackName.{step_id}"


def step_title(step_id: str) -> str:
    return f"ak.stepTitle.{step_id}"


def sound_name(step_id: str) -> str:
    return f"ak.soundName.{step_id}"


def accent_hex(step_id: str) -> str:
    return f"ak.accentHex.{step_id}"


def eff_target(step_id: str) -> str:
    """Effective fire time (epoch seconds, double)."""
    return f"ak.effTarget.{step_id}"


def snooze_minutes(step_id: str) -> str:
    return f"ak.snoozeMinutes.{step_id}"


def snooze_origin(step_id: str) -> str:
    """Replacement id -> original base id."""
    return f"ak.snooze.origin.{step_id}"


# Per stack


def first_target(stack: str) -> str:
    """Anchor time of the first step (epoch seconds, double)."""
    return f"ak.firstTarget.{stack}"


def active_ids(stack: str) -> str:
    return f"alarmkit.ids.{stack}"


# Per logical step


def snooze_map(base_id: str) -> str:
    """Original base id -> id currently scheduled for it."""
    return f"ak.snooze.map.{base_id}"


def step_keys(step_id: str) -> list[str]:
    """All per-step keys, used when a step id is retired."""
    return [
        stack_id(step_id),
        offset_from_first(step_id),
        kind(step_id),
        allow_snooze(step_id),
        is_snooze(step_id),
        stack_name(step_id),
        step_title(step_id),
        sound_name(step_id),
        accent_hex(step_id),
        eff_target(step_id),
        snooze_minutes(step_id),
        snooze_origin(step_id),
    ]
