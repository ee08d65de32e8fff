"""Data models."""

from dataclasses import dataclass, field
from typing import Union, assert_never

from alarmstacks.utils.constants import (
    DEFAULT_ALLOW_SNOOZE,
    DEFAULT_SNOOZE_MINUTES,
    KIND_FIXED,
    KIND_RELATIVE,
    KIND_TIMER,
    SHIFTABLE_KINDS,
)


# Step kinds


@dataclass(frozen=True)
class Timer:
    """Fires a fixed duration after its base."""

    duration_seconds: int
    every_n_days: int | None = None  # cadence anchored to the base's calendar day

    def __post_init__(self):
        if self.duration_seconds <= 0:
            raise ValueError(f"Timer duration must be positive, got {self.duration_seconds}")
        if self.every_n_days is not None and self.every_n_days < 1:
            raise ValueError(f"every_n_days must be >= 1, got {self.every_n_days}")


@dataclass(frozen=True)
class RelativeToPrev:
    """Fires at base + offset; the offset may be negative."""

    offset_seconds: int


@dataclass(frozen=True)
class FixedTime:
    """Fires at the next wall-clock hour:minute, optionally on given weekdays."""

    hour: int
    minute: int
    weekday: int | None = None  # ISO 1=Monday..7=Sunday
    weekdays: tuple[int, ...] | None = None  # takes precedence over weekday

    def __post_init__(self):
        if not 0 <= self.hour <= 23:
            raise ValueError(f"hour must be 0-23, got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"minute must be 0-59, got {self.minute}")
        if self.weekdays is not None:
            object.__setattr__(self, "weekdays", tuple(self.weekdays))

    @property
    def allowed_weekdays(self) -> frozenset[int] | None:
        """Valid weekdays to fire on, or None when any day is allowed.

        An explicit restriction with no valid day yields an empty set.
        """
        if self.weekdays:
            return frozenset(d for d in self.weekdays if 1 <= d <= 7)
        if self.weekday is not None:
            return frozenset(d for d in (self.weekday,) if 1 <= d <= 7)
        return None


StepKind = Union[Timer, RelativeToPrev, FixedTime]


def kind_label(kind: StepKind) -> str:
    """Persisted label for a step kind."""
    match kind:
        case Timer():
            return KIND_TIMER
        case RelativeToPrev():
            return KIND_RELATIVE
        case FixedTime():
            return KIND_FIXED
        case _:
            assert_never(kind)


@dataclass
class Step:
    """An authored step of a stack."""

    step_id: str
    title: str
    kind: StepKind
    allow_snooze: bool = DEFAULT_ALLOW_SNOOZE
    snooze_minutes: int = DEFAULT_SNOOZE_MINUTES
    sound_name: str | None = None
    accent_hex: str | None = None

    @property
    def kind_label(self) -> str:
        return kind_label(self.kind)


# Activated chain state


@dataclass
class ChainStep:
    """One active step id of a chain as it lives in the store."""

    step_id: str
    kind: str  # "fixed" | "timer" | "relative"
    offset_from_first: int = 0  # seconds
    allow_snooze: bool = DEFAULT_ALLOW_SNOOZE
    effective_target: float | None = None  # epoch seconds
    is_snooze: bool = False
    snooze_minutes: int | None = None
    stack_name: str | None = None
    title: str | None = None
    sound_name: str | None = None
    accent_hex: str | None = None

    @property
    def is_fixed(self) -> bool:
        # Unknown labels are never shifted either
        return self.kind not in SHIFTABLE_KINDS


@dataclass
class Chain:
    """Ordered steps sharing one anchor time."""

    stack_id: str
    first_target_epoch: float
    steps: list[ChainStep] = field(default_factory=list)

    @property
    def active_ids(self) -> list[str]:
        return [step.step_id for step in self.steps]

    def find(self, step_id: str) -> ChainStep | None:
        for step in self.steps:
            if step.step_id == step_id:
                return step
        return None

    def nominal_epoch(self, step: ChainStep) -> float:
        """Anchor + offset."""
        return self.first_target_epoch + step.offset_from_first

    def fire_epoch(self, step: ChainStep) -> float:
        """Recorded effective target, falling back to the nominal time."""
        if step.effective_target is not None:
            return step.effective_target
        return self.nominal_epoch(step)

    def sort_steps(self) -> None:
        """Order non-fixed steps by offset, leaving fixed steps in their slots."""
        slots = [i for i, step in enumerate(self.steps) if not step.is_fixed]
        ordered = sorted(
            (self.steps[i] for i in slots), key=lambda step: step.offset_from_first
        )
        for i, step in zip(slots, ordered):
            self.steps[i] = step
