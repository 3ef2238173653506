"""
Penalty Tracker - Package.

Time-decaying loss penalties. A loss registers a record whose
penalty shrinks on a fixed schedule and disappears after the
hard expiry.

Usage:
    from penalty_tracker import PenaltyDecayTracker, PenaltyConfig

    tracker = PenaltyDecayTracker(PenaltyConfig())
    tracker.register_loss(participant_id, 100.0)
    tracker.current_penalty(participant_id)   # 0.1
"""

from .config import (
    PENALTY_MODE_DECAY,
    PENALTY_MODE_FLAT,
    PENALTY_MODES,
    ItemValuationConfig,
    PenaltyConfig,
)
from .models import LossRecord
from .tracker import PenaltyDecayTracker
from .valuation import LostItem, value_item, value_lost_items


__all__ = [
    "PENALTY_MODE_DECAY",
    "PENALTY_MODE_FLAT",
    "PENALTY_MODES",
    "ItemValuationConfig",
    "PenaltyConfig",
    "LossRecord",
    "PenaltyDecayTracker",
    "LostItem",
    "value_item",
    "value_lost_items",
]
