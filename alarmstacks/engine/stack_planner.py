"""Turn an authored stack into an activated chain."""

import logging
from datetime import datetime, tzinfo

from alarmstacks.db.models import Chain, ChainStep, Step
from alarmstacks.engine.scheduling import next_fire_date
from alarmstacks.utils.time_utils import UTC, local_string, to_epoch

logger = logging.getLogger(__name__)


def plan_stack(
    stack_id: str,
    steps: list[Step],
    start: datetime,
    tz: str | tzinfo = UTC,
    name: str | None = None,
) -> Chain:
    """Compute every step's fire time and lay them out as a chain.

    Each step is scheduled from the previous step's fire time; the first
    step is scheduled from `start`. The first step's fire time becomes the
    chain's anchor and every offset is measured from it.
    """
    if not steps:
        raise ValueError(f"Stack {stack_id} has no steps")

    fire_times: list[datetime] = []
    base = start
    for step in steps:
        fire_at = next_fire_date(step.kind, base, tz)
        fire_times.append(fire_at)
        base = fire_at

    first_target = to_epoch(fire_times[0])
    chain = Chain(stack_id=stack_id, first_target_epoch=first_target)

    for step, fire_at in zip(steps, fire_times):
        epoch = to_epoch(fire_at)
        chain.steps.append(
            ChainStep(
                step_id=step.step_id,
                kind=step.kind_label,
                offset_from_first=int(round(epoch - first_target)),
                allow_snooze=step.allow_snooze,
                effective_target=epoch,
                snooze_minutes=step.snooze_minutes,
                stack_name=name,
                title=step.title,
                sound_name=step.sound_name,
                accent_hex=step.accent_hex,
            )
        )

    chain.sort_steps()

    logger.info(
        f"Planned stack {stack_id}: {len(steps)} steps, "
        f"first at {local_string(first_target, tz)}"
    )
    return chain
