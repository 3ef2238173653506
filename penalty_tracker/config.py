"""
Penalty Tracker - Configuration.

============================================================
PURPOSE
============================================================
Decay schedule, expiry and valuation tables for loss penalties.

============================================================
PENALTY MODES
============================================================
- decay (default): each loss creates a record whose penalty
  shrinks on the decay schedule and vanishes after hard expiry
- flat: a fixed amount per recorded loss event, capped; used
  when the host cannot report lost item value

The two modes never stack.

============================================================
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from core.constants import (
    DECAY_FRACTIONS,
    DECAY_OFFSETS_SECONDS,
    MAX_FLAT_PENALTY,
    PENALTY_HARD_EXPIRY_SECONDS,
    PENALTY_PER_LOSS_EVENT,
    PENALTY_SCALE_CONSTANT,
)


PENALTY_MODE_DECAY = "decay"
PENALTY_MODE_FLAT = "flat"
PENALTY_MODES = (PENALTY_MODE_DECAY, PENALTY_MODE_FLAT)


# ============================================================
# ITEM VALUATION
# ============================================================


@dataclass(frozen=True)
class ItemValuationConfig:
    """
    Values lost items to size a loss record.

    material_values are matched by substring in declaration
    order; the first match wins.
    """

    material_values: Tuple[Tuple[str, float], ...] = (
        ("NETHERITE", 100.0),
        ("DIAMOND", 75.0),
        ("GOLDEN", 50.0),
        ("IRON", 30.0),
        ("STONE", 15.0),
        ("CHAINMAIL", 15.0),
        ("LEATHER", 5.0),
        ("WOODEN", 5.0),
    )
    special_values: Dict[str, float] = field(default_factory=lambda: {
        "ELYTRA": 150.0,
        "TRIDENT": 120.0,
        "TOTEM_OF_UNDYING": 200.0,
        "NETHER_STAR": 250.0,
    })
    value_per_enchant_level: float = 10.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ItemValuationConfig":
        default = cls()
        materials = data.get("material_values")
        specials = data.get("special_values")
        return cls(
            material_values=tuple(
                (str(k).upper(), float(v)) for k, v in materials.items()
            ) if materials else default.material_values,
            special_values={
                str(k).upper(): float(v) for k, v in specials.items()
            } if specials else default.special_values,
            value_per_enchant_level=float(
                data.get("value_per_enchant_level", default.value_per_enchant_level)
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "material_values": dict(self.material_values),
            "special_values": dict(self.special_values),
            "value_per_enchant_level": self.value_per_enchant_level,
        }


# ============================================================
# PENALTY CONFIG
# ============================================================


@dataclass(frozen=True)
class PenaltyConfig:
    """
    Loss penalty configuration.

    A record of value V starts at penalty V / scale_constant and
    loses decay_fractions[i] of V at decay_offsets_seconds[i].
    """

    enabled: bool = True
    mode: str = PENALTY_MODE_DECAY
    decay_offsets_seconds: Tuple[float, ...] = DECAY_OFFSETS_SECONDS
    decay_fractions: Tuple[float, ...] = DECAY_FRACTIONS
    hard_expiry_seconds: float = PENALTY_HARD_EXPIRY_SECONDS
    scale_constant: float = PENALTY_SCALE_CONSTANT

    # Flat mode
    penalty_per_loss_event: float = PENALTY_PER_LOSS_EVENT
    max_flat_penalty: float = MAX_FLAT_PENALTY

    # Custom milestone granted on a participant's first loss event
    first_loss_milestone: Optional[str] = None

    valuation: ItemValuationConfig = field(default_factory=ItemValuationConfig)

    @property
    def decay_schedule(self) -> Tuple[Tuple[float, float], ...]:
        """(offset_seconds, fraction) pairs."""
        return tuple(zip(self.decay_offsets_seconds, self.decay_fractions))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PenaltyConfig":
        return cls(
            enabled=bool(data.get("enabled", True)),
            mode=str(data.get("mode", PENALTY_MODE_DECAY)),
            decay_offsets_seconds=tuple(data.get("decay_offsets_seconds", DECAY_OFFSETS_SECONDS)),
            decay_fractions=tuple(data.get("decay_fractions", DECAY_FRACTIONS)),
            hard_expiry_seconds=data.get("hard_expiry_seconds", PENALTY_HARD_EXPIRY_SECONDS),
            scale_constant=data.get("scale_constant", PENALTY_SCALE_CONSTANT),
            penalty_per_loss_event=data.get("penalty_per_loss_event", PENALTY_PER_LOSS_EVENT),
            max_flat_penalty=data.get("max_flat_penalty", MAX_FLAT_PENALTY),
            first_loss_milestone=(
                str(data["first_loss_milestone"]) if data.get("first_loss_milestone") else None
            ),
            valuation=ItemValuationConfig.from_dict(data.get("valuation") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "mode": self.mode,
            "decay_offsets_seconds": list(self.decay_offsets_seconds),
            "decay_fractions": list(self.decay_fractions),
            "hard_expiry_seconds": self.hard_expiry_seconds,
            "scale_constant": self.scale_constant,
            "penalty_per_loss_event": self.penalty_per_loss_event,
            "max_flat_penalty": self.max_flat_penalty,
            "first_loss_milestone": self.first_loss_milestone,
            "valuation": self.valuation.to_dict(),
        }
