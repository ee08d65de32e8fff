"""Tests for chain persistence."""

from alarmstacks.db import keys
from alarmstacks.db.models import Chain, ChainStep
from alarmstacks.utils.constants import KIND_FIXED, KIND_RELATIVE, KIND_TIMER
from conftest import FIRST_TARGET, make_stack


def test_load_chain_without_anchor(repo):
    """Test a stack without a first target has no chain."""
    assert repo.load_chain("missing") is None


def test_load_chain(store, repo):
    """Test a chain loads with its steps in active-id order."""
    make_stack(store, "morning", ["S1", "S2"], [KIND_FIXED, KIND_TIMER], [0, 600])

    chain = repo.load_chain("morning")

    assert chain.first_target_epoch == FIRST_TARGET
    assert chain.active_ids == ["S1", "S2"]
    assert chain.steps[0].is_fixed
    assert chain.steps[1].offset_from_first == 600
    assert chain.steps[1].title == "Step S2"


def test_load_step_defaults(store, repo):
    """Test missing keys fall back to store defaults."""
    step = repo.load_step("ghost")

    assert step.kind == KIND_TIMER
    assert step.offset_from_first == 0
    assert step.allow_snooze is True
    assert step.is_snooze is False
    assert step.effective_target is None


def test_save_and_reload(store, repo):
    """Test a saved chain loads back equal."""
    chain = Chain(
        stack_id="evening",
        first_target_epoch=1000.0,
        steps=[
            ChainStep("A", KIND_TIMER, 0, effective_target=1000.0, title="Dim lights"),
            ChainStep("B", KIND_RELATIVE, 900, allow_snooze=False, is_snooze=True,
                      snooze_minutes=5, sound_name="Chime"),
        ],
    )

    repo.save_chain(chain)
    loaded = repo.load_chain("evening")

    assert loaded == chain
    assert store.get_string_array(keys.active_ids("evening")) == ["A", "B"]
    assert store.get_double(keys.offset_from_first("B")) == 900.0
    assert store.get_string(keys.stack_id("A")) == "evening"


def test_save_step_clears_snooze_flag(store, repo):
    """Test saving a non-snooze step removes its isSnooze key."""
    step = ChainStep("A", KIND_TIMER, 0, is_snooze=True)
    repo.save_step("s", step)
    assert store.get_bool(keys.is_snooze("A")) is True

    step.is_snooze = False
    repo.save_step("s", step)
    assert store.get_bool(keys.is_snooze("A")) is None


def test_is_active(store, repo):
    """Test only ids in the active set are active."""
    make_stack(store, "morning", ["S1", "S2"], [KIND_TIMER, KIND_TIMER], [0, 60])
    store.set_string_array(["S2"], keys.active_ids("morning"))

    assert repo.is_active("S2")
    assert not repo.is_active("S1")
    assert not repo.is_active("unknown")


def test_snooze_mapping(repo):
    """Test the mapping is readable in both directions."""
    repo.record_snooze("S2", "X1")

    assert repo.snooze_replacement("S2") == "X1"
    assert repo.snooze_origin("X1") == "S2"
    assert repo.snooze_replacement("S1") is None


def test_delete_chain_removes_everything(store, repo):
    """Test deleting a chain leaves no keys behind."""
    make_stack(store, "morning", ["S1", "X1"], [KIND_TIMER, KIND_TIMER], [0, 60])
    repo.record_snooze("S2", "X1")

    ids = repo.delete_chain("morning")

    assert ids == ["S1", "X1"]
    assert len(store) == 0


def test_retire_step_clears_mapping_to_it(store, repo):
    """Test retiring a replacement removes the base's mapping as well as its keys."""
    make_stack(store, "morning", ["S1", "X1"], [KIND_TIMER, KIND_TIMER], [0, 60])
    repo.record_snooze("S2", "X1")
    repo.record_snooze("S3", "X9")

    repo.retire_step("X1")
    repo.retire_step("S1")

    assert repo.snooze_replacement("S2") is None
    assert repo.snooze_replacement("S3") == "X9"
    assert repo.stack_id_for("X1") is None
    assert repo.stack_id_for("S1") is None
