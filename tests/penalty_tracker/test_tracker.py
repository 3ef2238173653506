"""
Tests for PenaltyDecayTracker and item valuation.

Tests cover:
- Decay schedule (+60s 30%, +180s 30%, +300s 40%)
- Removal after full recovery
- Hard expiry
- Flat mode fallback (never stacks with decay)
- Item valuation
"""

import pytest

from penalty_tracker.config import PENALTY_MODE_FLAT, PenaltyConfig
from penalty_tracker.models import LossRecord
from penalty_tracker.tracker import PenaltyDecayTracker
from penalty_tracker.valuation import LostItem, value_item, value_lost_items


@pytest.fixture
def decay_calls():
    return []


@pytest.fixture
def tracker(scheduler, clock, decay_calls):
    return PenaltyDecayTracker(
        PenaltyConfig(),
        scheduler=scheduler,
        clock=clock,
        on_decay=decay_calls.append,
    )


# =============================================================
# TEST: Decay schedule
# =============================================================

class TestDecay:
    """A loss of 100 starts at 0.1 and converges to zero."""

    def test_initial_penalty(self, tracker, participant_id):
        record_id = tracker.register_loss(participant_id, 100.0)
        assert record_id is not None
        assert tracker.current_penalty(participant_id) == pytest.approx(0.1)

    def test_schedule(self, tracker, scheduler, participant_id, decay_calls):
        tracker.register_loss(participant_id, 100.0)

        scheduler.advance(60)
        assert tracker.current_penalty(participant_id) == pytest.approx(0.07)

        scheduler.advance(120)
        assert tracker.current_penalty(participant_id) == pytest.approx(0.04)

        scheduler.advance(120)
        assert tracker.current_penalty(participant_id) == 0.0
        assert tracker.active_records(participant_id) == []
        assert tracker.tracked_participants == 0
        assert decay_calls == [participant_id] * 3

    def test_penalty_never_increases(self, tracker, scheduler, participant_id):
        tracker.register_loss(participant_id, 500.0)
        previous = tracker.current_penalty(participant_id)
        for _ in range(40):
            scheduler.advance(10)
            current = tracker.current_penalty(participant_id)
            assert current <= previous
            previous = current
        assert previous == 0.0

    def test_records_are_independent(self, tracker, scheduler, participant_id):
        tracker.register_loss(participant_id, 100.0)
        scheduler.advance(60)
        tracker.register_loss(participant_id, 200.0)
        assert tracker.current_penalty(participant_id) == pytest.approx(0.07 + 0.2)

    def test_non_positive_value_is_ignored(self, tracker, scheduler, participant_id):
        assert tracker.register_loss(participant_id, 0) is None
        assert tracker.register_loss(participant_id, -10) is None
        assert scheduler.pending_count == 0
        assert tracker.current_penalty(participant_id) == 0.0

    def test_hard_expiry(self, tracker, clock, scheduler, participant_id):
        tracker.register_loss(participant_id, 100.0)
        # Move time without firing decay steps
        clock.advance(3601)
        assert tracker.current_penalty(participant_id) == 0.0
        assert tracker.tracked_participants == 0
        assert scheduler.pending_count == 0

    def test_clear_cancels_pending_steps(self, tracker, scheduler, participant_id, decay_calls):
        tracker.register_loss(participant_id, 100.0)
        tracker.register_loss(participant_id, 50.0)
        assert tracker.clear(participant_id) == 2
        assert scheduler.pending_count == 0
        scheduler.advance(400)
        assert decay_calls == []

    def test_disabled_tracker(self, scheduler, clock, participant_id):
        tracker = PenaltyDecayTracker(PenaltyConfig(enabled=False), scheduler=scheduler, clock=clock)
        assert tracker.register_loss(participant_id, 100.0) is None
        assert tracker.penalty_for(participant_id, loss_events=5) == 0.0


# =============================================================
# TEST: Flat mode
# =============================================================

class TestFlatMode:
    @pytest.fixture
    def flat_tracker(self, scheduler, clock):
        return PenaltyDecayTracker(PenaltyConfig(mode=PENALTY_MODE_FLAT), scheduler=scheduler, clock=clock)

    def test_no_records_created(self, flat_tracker, scheduler, participant_id):
        assert flat_tracker.register_loss(participant_id, 100.0) is None
        assert scheduler.pending_count == 0

    def test_per_event_penalty(self, flat_tracker, participant_id):
        assert flat_tracker.penalty_for(participant_id, loss_events=3) == pytest.approx(1.5)

    def test_capped(self, flat_tracker, participant_id):
        assert flat_tracker.penalty_for(participant_id, loss_events=1000) == 50.0


# =============================================================
# TEST: LossRecord
# =============================================================

class TestLossRecord:
    def test_recover_clamps(self, participant_id):
        record = LossRecord(participant_id=participant_id, total_value=100.0, created_at=0.0)
        assert record.recover(60.0) is False
        assert record.recover(60.0) is True
        assert record.recovered_value == 100.0
        assert record.is_recovered
        assert record.penalty(1000) == 0.0

    def test_float_sum_counts_as_recovered(self, participant_id):
        record = LossRecord(participant_id=participant_id, total_value=0.7, created_at=0.0)
        for fraction in (0.3, 0.3, 0.4):
            record.recover(record.total_value * fraction)
        assert record.is_recovered


# =============================================================
# TEST: Item valuation
# =============================================================

class TestValuation:
    def test_enchanted_sword(self):
        sword = LostItem("DIAMOND_SWORD", enchantments={"SHARPNESS": 5})
        assert value_item(sword) == pytest.approx(125.0)

    def test_durability_and_amount(self):
        sword = LostItem("DIAMOND_SWORD", amount=2, enchantments={"SHARPNESS": 5}, durability_pct=50)
        assert value_item(sword) == pytest.approx(125.0)

    def test_special_items(self):
        assert value_item(LostItem("ELYTRA")) == pytest.approx(150.0)
        assert value_item(LostItem("totem_of_undying")) == pytest.approx(200.0)

    def test_worthless_items(self):
        assert value_item(LostItem("DIRT", amount=64)) == 0.0

    def test_total(self):
        items = [LostItem("NETHERITE_PICKAXE"), LostItem("IRON_INGOT", amount=3)]
        assert value_lost_items(items) == pytest.approx(100.0 + 90.0)
