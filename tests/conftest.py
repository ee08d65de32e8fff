"""Shared fixtures for chain tests."""

import itertools
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from alarmstacks.db import keys
from alarmstacks.db.kv_store import MemoryKeyValueStore
from alarmstacks.db.repository import ChainRepository
from alarmstacks.engine.chain_shift import ChainShiftEngine

UTC = ZoneInfo("UTC")

NOW = 1_700_000_000
FIRST_TARGET = 1_700_000_600


class Clock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, epoch: float):
        self.epoch = epoch

    def __call__(self) -> datetime:
        return datetime.fromtimestamp(self.epoch, tz=UTC)


def make_stack(
    store,
    stack,
    ids,
    kinds,
    offsets,
    first_target=FIRST_TARGET,
    allow_snooze=None,
):
    """Write a stack's keys the way an activated chain leaves them."""
    store.set_double(float(first_target), keys.first_target(stack))
    store.set_string_array(list(ids), keys.active_ids(stack))
    for i, step_id in enumerate(ids):
        store.set_string(stack, keys.stack_id(step_id))
        store.set_double(float(offsets[i]), keys.offset_from_first(step_id))
        store.set_string(kinds[i], keys.kind(step_id))
        allow = allow_snooze[i] if allow_snooze else True
        store.set_bool(allow, keys.allow_snooze(step_id))
        store.set_string("Pulse", keys.sound_name(step_id))
        store.set_string("#00AEEF", keys.accent_hex(step_id))
        store.set_string(f"Step {step_id}", keys.step_title(step_id))


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def repo(store):
    return ChainRepository(store)


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"new-{next(counter)}"


@pytest.fixture
def engine(repo, clock, id_factory):
    return ChainShiftEngine(repo, now=clock, id_factory=id_factory, min_lead_seconds=60)
