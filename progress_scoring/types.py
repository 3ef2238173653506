"""
Progress Scoring - Types.

============================================================
PURPOSE
============================================================
Input snapshots and output structures for progress scoring.

Inputs (snapshots) are pulled from the host on each recompute
and never persisted. Outputs are created fresh per recompute.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


# ============================================================
# CATEGORIES
# ============================================================


class Category(str, Enum):
    """The six weighted signal categories."""

    MILESTONES = "milestones"
    EXPERIENCE = "experience"
    EQUIPMENT = "equipment"
    WEALTH = "wealth"
    STATISTICS = "statistics"
    CUSTOM = "custom"

    @classmethod
    def names(cls) -> List[str]:
        return [c.value for c in cls]


# Categories whose input comes from the host snapshot
SNAPSHOT_CATEGORIES = frozenset({
    Category.MILESTONES,
    Category.EXPERIENCE,
    Category.EQUIPMENT,
    Category.STATISTICS,
})


# ============================================================
# INPUT SNAPSHOTS
# ============================================================


@dataclass(frozen=True)
class GroupProgress:
    """Completed/defined milestone counts for one sub-group."""

    completed: int = 0
    total: int = 0

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(self.completed, self.total) / self.total * 100.0


@dataclass(frozen=True)
class MilestoneSnapshot:
    """World-state milestone completion, grouped (story, nether, ...)."""

    groups: Dict[str, GroupProgress] = field(default_factory=dict)
    completed_keys: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class ExperienceSnapshot:
    level: int = 0


@dataclass(frozen=True)
class EquipmentItem:
    """
    A single item as seen by the equipment scorer.

    item_type is the host's material name, e.g. DIAMOND_SWORD.
    enchantments maps enchantment name to level.
    """

    item_type: str
    enchantments: Dict[str, int] = field(default_factory=dict)
    durability_pct: float = 100.0


@dataclass(frozen=True)
class EquipmentSnapshot:
    """Equipped armor plus everything else the host chose to include."""

    armor: Tuple[EquipmentItem, ...] = ()
    inventory: Tuple[EquipmentItem, ...] = ()


@dataclass(frozen=True)
class StatisticsSnapshot:
    """
    Activity counters.

    kills_by_type / blocks_by_type are keyed by the host's
    entity/material names. Distance is in centimetres (host
    native unit), playtime in hours.
    """

    kills_by_type: Dict[str, int] = field(default_factory=dict)
    blocks_by_type: Dict[str, int] = field(default_factory=dict)
    distance_cm: float = 0.0
    playtime_hours: float = 0.0

    @property
    def total_kills(self) -> int:
        return sum(self.kills_by_type.values())

    @property
    def total_blocks(self) -> int:
        return sum(self.blocks_by_type.values())


@dataclass(frozen=True)
class ParticipantSnapshot:
    """Everything the host reports about a participant at one instant."""

    milestones: MilestoneSnapshot = field(default_factory=MilestoneSnapshot)
    experience: ExperienceSnapshot = field(default_factory=ExperienceSnapshot)
    equipment: EquipmentSnapshot = field(default_factory=EquipmentSnapshot)
    statistics: StatisticsSnapshot = field(default_factory=StatisticsSnapshot)


# ============================================================
# OUTPUTS
# ============================================================


@dataclass(frozen=True)
class CategoryScore:
    """
    One category's contribution before weighting.

    value is always within [0, 100]. A failed or disabled category
    reports 0 with enabled/error set accordingly.
    """

    category: Category
    value: float
    enabled: bool = True
    error: Optional[str] = None

    @classmethod
    def disabled(cls, category: Category) -> "CategoryScore":
        return cls(category=category, value=0.0, enabled=False)

    @classmethod
    def failed(cls, category: Category, error: str) -> "CategoryScore":
        return cls(category=category, value=0.0, enabled=True, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "value": round(self.value, 4),
            "enabled": self.enabled,
            "error": self.error,
        }


@dataclass(frozen=True)
class ProgressResult:
    """
    Final output of one recompute.

    final_score is within the configured [min, max] bounds.
    total_before_clamp is the weighted sum minus penalty.
    """

    final_score: float
    total_before_clamp: float
    weighted_total: float
    penalty_applied: float
    category_scores: Dict[Category, CategoryScore]
    weights: Dict[str, float]
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def score_for(self, category: Category) -> float:
        score = self.category_scores.get(category)
        return score.value if score else 0.0

    @property
    def failed_categories(self) -> List[Category]:
        return [c for c, s in self.category_scores.items() if s.error]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "final_score": round(self.final_score, 4),
            "total_before_clamp": round(self.total_before_clamp, 4),
            "weighted_total": round(self.weighted_total, 4),
            "penalty_applied": round(self.penalty_applied, 4),
            "category_scores": {
                c.value: s.to_dict() for c, s in self.category_scores.items()
            },
            "weights": dict(self.weights),
            "computed_at": self.computed_at.isoformat(),
        }
