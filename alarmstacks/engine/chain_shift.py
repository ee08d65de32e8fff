"""Snooze propagation through a chain of steps.

Nominal times are always `firstTarget(stack) + offsetFromFirst(id)`.
A snooze on step B by `delta` seconds moves:
- the whole chain, when B is the first non-fixed step (the anchor moves,
  offsets stay put);
- otherwise B and every non-fixed step strictly after it (their offsets
  grow by `delta`).
Fixed-time steps keep their own schedule unless they are B itself.

Every moved step gets a new id; the old id's keys are removed. The
snooze mapping keeps the user-facing original id pointing at whichever
id currently stands in for it, so re-snoozing before it fires
supersedes the previous replacement.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable

from alarmstacks.config import Config
from alarmstacks.db.models import Chain, ChainStep
from alarmstacks.db.repository import ChainRepository
from alarmstacks.utils.time_utils import local_string, to_epoch, utc_now

logger = logging.getLogger(__name__)


def new_step_id() -> str:
    """Default id factory."""
    return str(uuid.uuid4()).upper()


@dataclass(frozen=True)
class PlannedShift:
    """One step of the replacement set and where it will land."""

    old_id: str
    new_offset_from_first: int  # seconds
    nominal_target_epoch: float
    effective_target_epoch: float  # after the minimum lead is enforced
    enforced_lead_seconds: int | None  # None = nominal time kept
    kind: str
    allow_snooze: bool
    is_base: bool


@dataclass(frozen=True)
class ShiftPlan:
    """A computed, not yet applied snooze."""

    stack_id: str
    base_id: str  # user-facing original id
    resolved_id: str  # id currently scheduled for the base step
    is_first_step: bool
    delta_seconds: int
    base_old_offset: int
    new_first_target_epoch: float | None  # set only when the whole chain moves
    now_epoch: float
    shifts: tuple[PlannedShift, ...]

    @property
    def replace_ids(self) -> tuple[str, ...]:
        return tuple(shift.old_id for shift in self.shifts)


@dataclass(frozen=True)
class RescheduledStep:
    """A step after apply: the id to arm in place of `old_id`."""

    old_id: str
    new_id: str
    stack_id: str
    new_offset_from_first: int
    effective_target_epoch: float
    kind: str
    allow_snooze: bool


class ChainShiftEngine:
    """Builds and applies snooze plans against a ChainRepository.

    Not transactional: callers must run at most one snooze per stack at
    a time.
    """

    def __init__(
        self,
        repo: ChainRepository,
        now: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = new_step_id,
        min_lead_seconds: int | None = None,
    ):
        self.repo = repo
        self._now = now
        self._new_id = id_factory
        self.min_lead_seconds = (
            Config.MIN_LEAD_SECONDS if min_lead_seconds is None else min_lead_seconds
        )

    # Plan

    def resolve(self, base_id: str) -> tuple[str, str] | None:
        """Map a step id to (original base id, currently active id)."""
        origin = self.repo.snooze_origin(base_id) or base_id

        candidates = []
        replacement = self.repo.snooze_replacement(origin)
        if replacement:
            candidates.append(replacement)
        candidates.extend([base_id, origin])

        for candidate in candidates:
            if self.repo.is_active(candidate):
                return origin, candidate
        return None

    def build_plan_for_snooze(self, base_id: str, snooze_minutes: int) -> ShiftPlan | None:
        """Compute the shift caused by snoozing `base_id`.

        Returns None when the id no longer maps to an active step.
        """
        if snooze_minutes <= 0:
            raise ValueError(f"snooze_minutes must be positive, got {snooze_minutes}")

        resolved = self.resolve(base_id)
        if resolved is None:
            logger.info(f"Snooze target {base_id} is not active, nothing to shift")
            return None
        origin, current_id = resolved

        stack_id = self.repo.stack_id_for(current_id)
        chain = self.repo.load_chain(stack_id) if stack_id else None
        if chain is None:
            logger.warning(f"No chain anchor for step {current_id} (stack {stack_id})")
            return None

        base = chain.find(current_id)
        if base is None:
            return None

        # Read once; every lead comparison below uses the same instant
        now_epoch = to_epoch(self._now())
        delta = snooze_minutes * 60

        non_fixed = [step for step in chain.steps if not step.is_fixed]
        is_first = not base.is_fixed and base.offset_from_first == min(
            step.offset_from_first for step in non_fixed
        )

        new_first_target = chain.first_target_epoch + delta if is_first else None
        anchor = new_first_target if is_first else chain.first_target_epoch

        shifts = []
        for step in chain.steps:
            if step is base:
                shifts.append(self._plan_base(chain, step, delta, is_first, anchor, now_epoch))
                continue
            if step.is_fixed:
                continue
            if not is_first and step.offset_from_first <= base.offset_from_first:
                continue

            new_offset = step.offset_from_first if is_first else step.offset_from_first + delta
            shifts.append(self._planned(step, new_offset, anchor + new_offset, now_epoch))

        return ShiftPlan(
            stack_id=chain.stack_id,
            base_id=origin,
            resolved_id=current_id,
            is_first_step=is_first,
            delta_seconds=delta,
            base_old_offset=base.offset_from_first,
            new_first_target_epoch=new_first_target,
            now_epoch=now_epoch,
            shifts=tuple(shifts),
        )

    def _plan_base(
        self,
        chain: Chain,
        step: ChainStep,
        delta: int,
        is_first: bool,
        anchor: float,
        now_epoch: float,
    ) -> PlannedShift:
        if is_first:
            return self._planned(step, step.offset_from_first, anchor + step.offset_from_first,
                                 now_epoch, is_base=True)
        if step.is_fixed:
            # A snoozed fixed-time step moves from its own fire time
            return self._planned(step, step.offset_from_first + delta,
                                 chain.fire_epoch(step) + delta, now_epoch, is_base=True)
        new_offset = step.offset_from_first + delta
        return self._planned(step, new_offset, anchor + new_offset, now_epoch, is_base=True)

    def _planned(
        self,
        step: ChainStep,
        new_offset: int,
        nominal: float,
        now_epoch: float,
        is_base: bool = False,
    ) -> PlannedShift:
        floor = now_epoch + self.min_lead_seconds
        if nominal < floor:
            effective, enforced = floor, self.min_lead_seconds
        else:
            effective, enforced = nominal, None
        return PlannedShift(
            old_id=step.step_id,
            new_offset_from_first=new_offset,
            nominal_target_epoch=nominal,
            effective_target_epoch=effective,
            enforced_lead_seconds=enforced,
            kind=step.kind,
            allow_snooze=step.allow_snooze,
            is_base=is_base,
        )

    # Apply

    def apply(self, plan: ShiftPlan) -> list[RescheduledStep]:
        """Write a plan to the store. Applying the same plan twice double-shifts."""
        chain = self.repo.load_chain(plan.stack_id)
        if chain is None:
            raise RuntimeError(f"Chain {plan.stack_id} disappeared before apply")

        logger.info(
            f"Chain shift stack={plan.stack_id} base={plan.base_id} "
            f"resolved={plan.resolved_id} delta={plan.delta_seconds}s "
            f"baseOffset={plan.base_old_offset}s isFirst={'y' if plan.is_first_step else 'n'}"
        )

        if plan.new_first_target_epoch is not None:
            chain.first_target_epoch = plan.new_first_target_epoch

        by_old_id = {shift.old_id: shift for shift in plan.shifts}
        results = []
        for index, step in enumerate(chain.steps):
            shift = by_old_id.get(step.step_id)
            if shift is None:
                continue

            new_id = self._new_id()
            chain.steps[index] = replace(
                step,
                step_id=new_id,
                offset_from_first=shift.new_offset_from_first,
                effective_target=shift.effective_target_epoch,
                is_snooze=step.is_snooze or shift.is_base,
            )
            results.append(
                RescheduledStep(
                    old_id=step.step_id,
                    new_id=new_id,
                    stack_id=plan.stack_id,
                    new_offset_from_first=shift.new_offset_from_first,
                    effective_target_epoch=shift.effective_target_epoch,
                    kind=shift.kind,
                    allow_snooze=shift.allow_snooze,
                )
            )
            lead = shift.enforced_lead_seconds if shift.enforced_lead_seconds is not None else "-"
            logger.info(
                f"Chain resched id={new_id} prev={step.step_id} "
                f"newOffset={shift.new_offset_from_first}s "
                f"newTarget={local_string(shift.effective_target_epoch, Config.TIMEZONE)} "
                f"enforcedLead={lead} kind={shift.kind} allowSnooze={shift.allow_snooze}"
            )

        missing = set(by_old_id) - {result.old_id for result in results}
        if missing:
            logger.warning(f"Plan ids no longer active in {plan.stack_id}: {sorted(missing)}")

        chain.sort_steps()
        self.repo.save_chain(chain)

        for result in results:
            # Earlier replacements keep their mapping as they move downstream
            origin = plan.base_id if result.old_id == plan.resolved_id else (
                self.repo.snooze_origin(result.old_id)
            )
            self.repo.remove_step(result.old_id)
            if origin:
                self.repo.record_snooze(origin, result.new_id)

        return results
