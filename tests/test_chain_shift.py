"""Tests for snooze planning and chain shifting."""

import pytest

from alarmstacks.db import keys
from alarmstacks.engine.chain_shift import ChainShiftEngine
from alarmstacks.utils.constants import KIND_FIXED, KIND_RELATIVE, KIND_TIMER
from conftest import FIRST_TARGET, NOW, Clock, make_stack


def fire_epoch(store, step_id, stack):
    return store.get_double(keys.first_target(stack)) + store.get_double(
        keys.offset_from_first(step_id)
    )


class TestFirstStepSnooze:
    def test_plan(self, store, engine):
        """Test snoozing the first step moves the anchor by the full delta."""
        make_stack(store, "stack-A", ["S1", "S2", "S3"],
                   [KIND_TIMER, KIND_TIMER, KIND_RELATIVE], [0, 120, 180])

        plan = engine.build_plan_for_snooze("S1", 3)

        assert plan.is_first_step
        assert plan.delta_seconds == 180
        assert plan.replace_ids == ("S1", "S2", "S3")
        assert plan.new_first_target_epoch == FIRST_TARGET + 180

    def test_apply_moves_whole_chain(self, store, engine):
        """Test every step fires delta later under new ids."""
        make_stack(store, "stack-A", ["S1", "S2", "S3"],
                   [KIND_TIMER, KIND_TIMER, KIND_RELATIVE], [0, 120, 180])
        before = [fire_epoch(store, s, "stack-A") for s in ("S1", "S2", "S3")]

        results = engine.apply(engine.build_plan_for_snooze("S1", 3))

        ids = store.get_string_array(keys.active_ids("stack-A"))
        assert ids == ["new-1", "new-2", "new-3"]
        assert [r.old_id for r in results] == ["S1", "S2", "S3"]
        assert store.get_double(keys.first_target("stack-A")) == FIRST_TARGET + 180

        after = [fire_epoch(store, s, "stack-A") for s in ids]
        assert [a - b for a, b in zip(after, before)] == [180, 180, 180]

    def test_old_keys_removed_and_mapping_recorded(self, store, engine):
        """Test replaced ids lose their keys and the base maps to its replacement."""
        make_stack(store, "stack-A", ["S1", "S2", "S3"],
                   [KIND_TIMER, KIND_TIMER, KIND_RELATIVE], [0, 120, 180])

        engine.apply(engine.build_plan_for_snooze("S1", 3))

        for old in ("S1", "S2", "S3"):
            assert store.get_string(keys.stack_id(old)) is None
            assert store.get_double(keys.offset_from_first(old)) is None
            assert store.get_string(keys.kind(old)) is None
        assert store.get_string(keys.snooze_map("S1")) == "new-1"
        assert store.get_bool(keys.is_snooze("new-1")) is True
        assert store.get_bool(keys.is_snooze("new-2")) is None
        assert store.get_string(keys.kind("new-3")) == KIND_RELATIVE


class TestMiddleStepSnooze:
    def test_only_later_steps_move(self, store, engine):
        """Test only the snoozed step and later steps get new offsets."""
        make_stack(store, "stack-B", ["S1", "S2", "S3"],
                   [KIND_TIMER, KIND_TIMER, KIND_TIMER], [0, 120, 180])

        plan = engine.build_plan_for_snooze("S2", 3)
        assert not plan.is_first_step
        assert plan.replace_ids == ("S2", "S3")
        assert plan.new_first_target_epoch is None

        engine.apply(plan)

        ids = store.get_string_array(keys.active_ids("stack-B"))
        assert ids == ["S1", "new-1", "new-2"]
        assert store.get_double(keys.first_target("stack-B")) == FIRST_TARGET
        assert store.get_double(keys.offset_from_first("S1")) == 0
        assert store.get_double(keys.offset_from_first("new-1")) == 300
        assert store.get_double(keys.offset_from_first("new-2")) == 360

    def test_metadata_and_allow_snooze_carried_forward(self, store, engine):
        """Test display metadata and allowSnooze survive the shift."""
        make_stack(store, "stack-B", ["S1", "S2", "S3"],
                   [KIND_TIMER, KIND_TIMER, KIND_TIMER], [0, 120, 180],
                   allow_snooze=[True, False, True])

        engine.apply(engine.build_plan_for_snooze("S2", 3))

        assert store.get_bool(keys.allow_snooze("new-1")) is False
        assert store.get_bool(keys.allow_snooze("new-2")) is True
        assert store.get_string(keys.sound_name("new-1")) == "Pulse"
        assert store.get_string(keys.accent_hex("new-2")) == "#00AEEF"
        assert store.get_string(keys.step_title("new-1")) == "Step S2"

    def test_equal_offsets_do_not_move_and_order_is_kept(self, store, engine):
        """Test steps tied with the snoozed offset stay put."""
        make_stack(store, "stack-B", ["S1", "S2", "S3"],
                   [KIND_TIMER, KIND_TIMER, KIND_TIMER], [0, 120, 120])

        plan = engine.build_plan_for_snooze("S2", 3)
        engine.apply(plan)

        assert plan.replace_ids == ("S2",)
        assert store.get_string_array(keys.active_ids("stack-B")) == ["S1", "S3", "new-1"]


class TestFixedTimeImmunity:
    def test_interleaved_fixed_steps(self, store, engine):
        """Test fixed-time steps keep their id and schedule."""
        make_stack(store, "stack-C", ["S1", "S2", "S3"],
                   [KIND_FIXED, KIND_TIMER, KIND_FIXED], [0, 120, 1800])

        plan = engine.build_plan_for_snooze("S1", 5)
        # Fixed-time steps never count as the chain's anchor step
        assert not plan.is_first_step
        assert plan.replace_ids == ("S1", "S2")

        engine.apply(plan)

        ids = store.get_string_array(keys.active_ids("stack-C"))
        assert ids == ["new-1", "new-2", "S3"]
        assert store.get_string(keys.kind("S3")) == KIND_FIXED
        assert store.get_double(keys.offset_from_first("S3")) == 1800
        assert store.get_double(keys.eff_target("new-1")) == FIRST_TARGET + 300
        assert store.get_double(keys.offset_from_first("new-2")) == 420
        assert store.get_double(keys.first_target("stack-C")) == FIRST_TARGET

    def test_first_step_snooze_skips_fixed(self, store, engine):
        """Test fixed-time steps are left out of a whole-chain shift."""
        make_stack(store, "stack-C", ["S1", "S2", "S3"],
                   [KIND_TIMER, KIND_FIXED, KIND_TIMER], [0, 60, 300])

        plan = engine.build_plan_for_snooze("S1", 2)

        assert plan.is_first_step
        assert plan.replace_ids == ("S1", "S3")


class TestRapidReSnooze:
    def test_second_snooze_supersedes_first(self, store, engine, clock):
        """Test a second snooze replaces the first replacement."""
        make_stack(store, "stack-D", ["S1", "S2", "S3"],
                   [KIND_TIMER, KIND_TIMER, KIND_TIMER], [0, 120, 180])

        engine.apply(engine.build_plan_for_snooze("S2", 3))
        first_replacement = store.get_string(keys.snooze_map("S2"))
        assert first_replacement == "new-1"

        clock.epoch += 10
        plan = engine.build_plan_for_snooze("S2", 2)
        assert plan.base_id == "S2"
        assert plan.resolved_id == "new-1"
        engine.apply(plan)

        ids = store.get_string_array(keys.active_ids("stack-D"))
        current = store.get_string(keys.snooze_map("S2"))
        assert current == "new-3"
        assert ids == ["S1", "new-3", "new-4"]
        # Exactly one active id stands in for S2
        assert [i for i in ids if store.get_string(keys.snooze_origin(i)) == "S2"] == [current]
        assert store.get_string(keys.stack_id(first_replacement)) is None
        assert store.get_double(keys.offset_from_first("new-3")) == 420
        assert store.get_double(keys.offset_from_first("new-4")) == 480

    def test_snoozing_the_replacement_id_resolves_to_original(self, store, engine):
        """Test a replacement id resolves back to its base id."""
        make_stack(store, "stack-D", ["S1", "S2", "S3"],
                   [KIND_TIMER, KIND_TIMER, KIND_TIMER], [0, 120, 180])
        engine.apply(engine.build_plan_for_snooze("S2", 3))

        plan = engine.build_plan_for_snooze("new-1", 2)

        assert plan.base_id == "S2"
        assert plan.resolved_id == "new-1"

    def test_mapping_follows_replacement_moved_downstream(self, store, engine):
        """Test an earlier replacement keeps its mapping when shifted again."""
        make_stack(store, "stack-D", ["S1", "S2", "S3"],
                   [KIND_TIMER, KIND_TIMER, KIND_TIMER], [0, 120, 180])
        engine.apply(engine.build_plan_for_snooze("S2", 3))

        engine.apply(engine.build_plan_for_snooze("S1", 1))

        assert store.get_string(keys.snooze_map("S1")) == "new-3"
        assert store.get_string(keys.snooze_map("S2")) == "new-4"
        assert engine.resolve("S2") == ("S2", "new-4")


class TestUnresolvable:
    def test_unknown_id(self, store, engine):
        """Test an unknown id yields no plan."""
        make_stack(store, "stack-E", ["S1"], [KIND_TIMER], [0])

        assert engine.build_plan_for_snooze("nope", 3) is None

    def test_fired_step_no_longer_active(self, store, engine):
        """Test an id missing from the active set yields no plan."""
        make_stack(store, "stack-E", ["S1", "S2"], [KIND_TIMER, KIND_TIMER], [0, 60])
        store.set_string_array(["S2"], keys.active_ids("stack-E"))

        assert engine.build_plan_for_snooze("S1", 3) is None

    def test_retired_chain(self, store, engine):
        """Test a chain without an anchor yields no plan."""
        make_stack(store, "stack-E", ["S1"], [KIND_TIMER], [0])
        store.remove(keys.first_target("stack-E"))

        assert engine.build_plan_for_snooze("S1", 3) is None

    def test_non_positive_minutes_rejected(self, store, engine):
        """Test zero snooze minutes are rejected."""
        make_stack(store, "stack-E", ["S1"], [KIND_TIMER], [0])

        with pytest.raises(ValueError):
            engine.build_plan_for_snooze("S1", 0)


def test_minimum_lead_is_enforced(store, engine):
    """Test steps whose nominal time is already past are pushed to now + lead."""
    make_stack(store, "stack-F", ["S1", "S2", "S3"],
               [KIND_TIMER, KIND_TIMER, KIND_TIMER], [0, 120, 180],
               first_target=NOW - 1000)

    plan = engine.build_plan_for_snooze("S2", 1)

    base, after = plan.shifts
    assert base.nominal_target_epoch == NOW - 1000 + 180
    assert base.effective_target_epoch == NOW + 60
    assert base.enforced_lead_seconds == 60
    assert after.effective_target_epoch == NOW + 60

    results = engine.apply(plan)
    assert [r.effective_target_epoch for r in results] == [NOW + 60, NOW + 60]
    # Nominal offsets still carry the full delta
    assert store.get_double(keys.offset_from_first(results[0].new_id)) == 180


def test_plan_uses_one_clock_reading(store, repo, id_factory):
    """Test the injected clock is read once per plan."""
    calls = []

    def counting_clock():
        calls.append(1)
        return Clock(NOW)()

    make_stack(store, "stack-G", ["S1", "S2", "S3"],
               [KIND_TIMER, KIND_TIMER, KIND_TIMER], [0, 120, 180])
    engine = ChainShiftEngine(repo, now=counting_clock, id_factory=id_factory)

    engine.build_plan_for_snooze("S1", 3)

    assert len(calls) == 1
