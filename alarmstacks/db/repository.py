"""Chain repository - the flat-key encoding of chain state."""

import logging

from alarmstacks.db import keys
from alarmstacks.db.kv_store import KeyValueStore
from alarmstacks.db.models import Chain, ChainStep
from alarmstacks.utils.constants import DEFAULT_ALLOW_SNOOZE, KIND_TIMER

logger = logging.getLogger(__name__)


class ChainRepository:
    """Loads and saves structured chains over a KeyValueStore."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    # Chain operations

    def load_chain(self, stack_id: str) -> Chain | None:
        """Load a stack's chain, or None when the stack has no anchor time."""
        first_target = self.store.get_double(keys.first_target(stack_id))
        if first_target is None:
            return None

        ids = self.store.get_string_array(keys.active_ids(stack_id)) or []
        return Chain(
            stack_id=stack_id,
            first_target_epoch=first_target,
            steps=[self.load_step(step_id) for step_id in ids],
        )

    def load_step(self, step_id: str) -> ChainStep:
        """Read one step's keys, filling store defaults for missing values."""
        store = self.store
        offset = store.get_double(keys.offset_from_first(step_id)) or 0.0
        allow = store.get_bool(keys.allow_snooze(step_id))
        return ChainStep(
            step_id=step_id,
            kind=store.get_string(keys.kind(step_id)) or KIND_TIMER,
            offset_from_first=int(round(offset)),
            allow_snooze=DEFAULT_ALLOW_SNOOZE if allow is None else allow,
            effective_target=store.get_double(keys.eff_target(step_id)),
            is_snooze=store.get_bool(keys.is_snooze(step_id)) or False,
            snooze_minutes=store.get_int(keys.snooze_minutes(step_id)),
            stack_name=store.get_string(keys.stack_name(step_id)),
            title=store.get_string(keys.step_title(step_id)),
            sound_name=store.get_string(keys.sound_name(step_id)),
            accent_hex=store.get_string(keys.accent_hex(step_id)),
        )

    def save_chain(self, chain: Chain) -> None:
        """Write the anchor, active ids and every step's keys."""
        self.store.set_double(chain.first_target_epoch, keys.first_target(chain.stack_id))
        self.store.set_string_array(chain.active_ids, keys.active_ids(chain.stack_id))
        for step in chain.steps:
            self.save_step(chain.stack_id, step)

    def save_step(self, stack_id: str, step: ChainStep) -> None:
        step_id = step.step_id
        self.store.set_string(stack_id, keys.stack_id(step_id))
        self.store.set_double(float(step.offset_from_first), keys.offset_from_first(step_id))
        self.store.set_string(step.kind, keys.kind(step_id))
        self.store.set_bool(step.allow_snooze, keys.allow_snooze(step_id))

        if step.is_snooze:
            self.store.set_bool(True, keys.is_snooze(step_id))
        else:
            self.store.remove(keys.is_snooze(step_id))

        if step.effective_target is not None:
            self.store.set_double(step.effective_target, keys.eff_target(step_id))
        if step.snooze_minutes is not None:
            self.store.set_int(step.snooze_minutes, keys.snooze_minutes(step_id))

        # Display metadata is only written when known
        optional = (
            (step.stack_name, keys.stack_name(step_id)),
            (step.title, keys.step_title(step_id)),
            (step.sound_name, keys.sound_name(step_id)),
            (step.accent_hex, keys.accent_hex(step_id)),
        )
        for value, key in optional:
            if value is not None:
                self.store.set_string(value, key)

    def remove_step(self, step_id: str) -> None:
        """Remove every per-step key so the id cannot be rescheduled."""
        for key in keys.step_keys(step_id):
            self.store.remove(key)

    def retire_step(self, step_id: str) -> None:
        """Remove a step for good, along with the snooze map entry pointing at it."""
        origin = self.snooze_origin(step_id)
        if origin and self.snooze_replacement(origin) == step_id:
            self.store.remove(keys.snooze_map(origin))
        self.remove_step(step_id)

    def delete_chain(self, stack_id: str) -> list[str]:
        """Tear down a stack's keys. Returns the ids that were active."""
        ids = self.store.get_string_array(keys.active_ids(stack_id)) or []
        for step_id in ids:
            self.retire_step(step_id)

        self.store.remove(keys.active_ids(stack_id))
        self.store.remove(keys.first_target(stack_id))
        logger.info(f"Deleted chain {stack_id} ({len(ids)} active steps)")
        return ids

    # Lookups

    def stack_id_for(self, step_id: str) -> str | None:
        return self.store.get_string(keys.stack_id(step_id))

    def is_active(self, step_id: str) -> bool:
        stack_id = self.stack_id_for(step_id)
        if stack_id is None:
            return False
        ids = self.store.get_string_array(keys.active_ids(stack_id)) or []
        return step_id in ids

    # Snooze mapping

    def snooze_replacement(self, base_id: str) -> str | None:
        """Id currently scheduled for a logical step, if it was ever snoozed."""
        return self.store.get_string(keys.snooze_map(base_id))

    def snooze_origin(self, step_id: str) -> str | None:
        """Original base id of a snooze replacement."""
        return self.store.get_string(keys.snooze_origin(step_id))

    def record_snooze(self, base_id: str, new_id: str) -> None:
        self.store.set_string(new_id, keys.snooze_map(base_id))
        self.store.set_string(base_id, keys.snooze_origin(new_id))
