"""Single entry point for activating, snoozing and retiring stacks."""

import logging
import threading
from datetime import datetime, tzinfo
from typing import Protocol, runtime_checkable

from alarmstacks.config import Config
from alarmstacks.db.models import Chain, Step
from alarmstacks.db.repository import ChainRepository
from alarmstacks.engine.chain_shift import ChainShiftEngine, RescheduledStep
from alarmstacks.engine.stack_planner import plan_stack
from alarmstacks.utils.time_utils import format_duration, from_epoch

logger = logging.getLogger(__name__)


@runtime_checkable
class AlarmDeliveryPort(Protocol):
    """Whatever actually fires an alarm at a computed time."""

    def schedule_alarm(
        self,
        step_id: str,
        fire_at: datetime,
        sound_name: str | None,
        accent_hex: str | None,
        allow_snooze: bool,
    ) -> None: ...

    def cancel_alarm(self, step_id: str) -> None: ...


class SnoozeCoordinator:
    """Drives the chain shift engine and keeps alarm delivery in step with it."""

    def __init__(
        self,
        repo: ChainRepository,
        delivery: AlarmDeliveryPort,
        engine: ChainShiftEngine | None = None,
    ):
        self.repo = repo
        self.delivery = delivery
        self.engine = engine or ChainShiftEngine(repo)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _stack_lock(self, stack_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(stack_id, threading.Lock())

    def _drop_lock(self, stack_id: str) -> None:
        # Called while holding the lock; later callers get a fresh one
        with self._locks_guard:
            self._locks.pop(stack_id, None)

    # Lifecycle

    def activate_stack(
        self,
        stack_id: str,
        steps: list[Step],
        start: datetime,
        tz: str | tzinfo | None = None,
        name: str | None = None,
    ) -> Chain:
        """Plan a stack from `start`, persist it and arm every step."""
        with self._stack_lock(stack_id):
            if self.repo.load_chain(stack_id) is not None:
                self._retire(stack_id)

            chain = plan_stack(stack_id, steps, start, tz or Config.TIMEZONE, name=name)
            self.repo.save_chain(chain)
            for step in chain.steps:
                self._arm(step.step_id, chain.fire_epoch(step), step.sound_name,
                          step.accent_hex, step.allow_snooze)

        logger.info(f"Activated stack {stack_id} with {len(chain.steps)} steps")
        return chain

    def retire_stack(self, stack_id: str) -> list[str]:
        """Cancel every active alarm of a stack and delete its state."""
        with self._stack_lock(stack_id):
            ids = self._retire(stack_id)
            self._drop_lock(stack_id)
        return ids

    def _retire(self, stack_id: str) -> list[str]:
        ids = self.repo.delete_chain(stack_id)
        for step_id in ids:
            self.delivery.cancel_alarm(step_id)
        return ids

    def mark_fired(self, step_id: str) -> bool:
        """Drop a fired step; retires the chain once nothing is left.

        Returns False when the id was not active.
        """
        stack_id = self.repo.stack_id_for(step_id)
        if stack_id is None:
            return False

        with self._stack_lock(stack_id):
            chain = self.repo.load_chain(stack_id)
            if chain is None or chain.find(step_id) is None:
                return False

            chain.steps = [step for step in chain.steps if step.step_id != step_id]
            if not chain.steps:
                self.repo.delete_chain(stack_id)
                self._drop_lock(stack_id)
                logger.info(f"Stack {stack_id} finished, chain retired")
                return True

            self.repo.save_chain(chain)
            self.repo.retire_step(step_id)

        logger.info(f"Step {step_id} fired, {len(chain.steps)} left in {stack_id}")
        return True

    # Snooze

    def snooze_and_shift(
        self, fired_id: str, minutes: int | None = None
    ) -> list[RescheduledStep] | None:
        """Snooze a fired step and shift the rest of its chain.

        Returns the rescheduled steps, or None when nothing was done
        (snooze disabled for the step, or the id is no longer active).
        """
        resolved = self.engine.resolve(fired_id)
        stack_id = self.repo.stack_id_for(resolved[1]) if resolved else None
        if stack_id is None:
            logger.info(f"Snooze target {fired_id} is not scheduled")
            return None

        with self._stack_lock(stack_id):
            # Re-resolve: the chain may have changed while waiting for the lock
            resolved = self.engine.resolve(fired_id)
            if resolved is None or self.repo.stack_id_for(resolved[1]) != stack_id:
                logger.info(f"Snooze target {fired_id} is no longer scheduled")
                return None
            base_id, current_id = resolved
            current = self.repo.load_step(current_id)

            # Snooze replacements are always snoozable
            if not current.is_snooze and not current.allow_snooze:
                logger.info(f"Snooze ignored: allowSnooze=false for {base_id}")
                return None

            if minutes is None:
                minutes = current.snooze_minutes or Config.DEFAULT_SNOOZE_MINUTES

            plan = self.engine.build_plan_for_snooze(base_id, minutes)
            if plan is None:
                logger.warning(f"Failed to build snooze plan for {base_id}")
                return None
            results = self.engine.apply(plan)

            for result in results:
                self.delivery.cancel_alarm(result.old_id)
            for result in results:
                step = self.repo.load_step(result.new_id)
                self._arm(result.new_id, result.effective_target_epoch, step.sound_name,
                          step.accent_hex, result.allow_snooze)

        logger.info(
            f"Snoozed {base_id} for {format_duration(minutes)}, "
            f"{len(results)} step(s) rescheduled"
        )
        return results

    def _arm(
        self,
        step_id: str,
        epoch: float,
        sound_name: str | None,
        accent_hex: str | None,
        allow_snooze: bool,
    ) -> None:
        fire_at = from_epoch(epoch, Config.TIMEZONE)
        self.delivery.schedule_alarm(step_id, fire_at, sound_name, accent_hex, allow_snooze)
